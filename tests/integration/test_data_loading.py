"""
Data Loading and Read Model Integration Tests

These tests verify that JSON documents load into DuckDB with the expected
upsert semantics, and that the poll, candidate and parliament read models
return what was loaded.
"""

import json

import duckdb
import pytest

from analysis import ParliamentVisualizer
from data.errors import InvalidInput, NotFound
from polling import CandidateDirectory, PollRepository, VoteIntegrityGuard

AL = "Bangladesh Awami League"
BNP = "Bangladesh Nationalist Party"


def count_rows(db, table):
    return int(db.query(f"SELECT COUNT(*) AS n FROM {table}").iloc[0]["n"])


@pytest.mark.integration
class TestElectionDataLoader:
    def test_ensure_schema(self, loader):
        assert loader.ensure_schema() == 10

    def test_load_file(self, loader, tmp_path, result_factory, sample_poll, sample_candidates_2026):
        document = {
            "election_results": [result_factory("c-1", 9, AL, 100, BNP, "2008-12-29")],
            "parliament_seats": [
                {
                    "parliament": 2008,
                    "constituency_number": 1,
                    "constituency_name": "Panchagarh-1",
                    "party": AL,
                    "candidate": "Candidate A",
                }
            ],
            "candidates_2026": sample_candidates_2026,
            "polls": [sample_poll],
        }
        json_path = tmp_path / "election.json"
        json_path.write_text(json.dumps(document, ensure_ascii=False), encoding="utf-8")

        stats = loader.load_file(str(json_path))

        assert stats == {
            "election_results": 1,
            "parliament_seats": 1,
            "candidates_2026": 3,
            "polls": 1,
        }
        summary = loader.get_summary().set_index("collection")["row_count"]
        assert summary["election_results"] == 1
        assert summary["poll_votes"] == 0

    def test_empty_collections(self, loader, result_factory, sample_poll):
        assert loader.get_empty_collections() == [
            "election_results",
            "parliament_seats",
            "candidates_2026",
            "polls",
        ]

        loader.load_election_results([result_factory("c-1", 9, AL)])
        loader.load_polls([sample_poll])

        assert loader.get_empty_collections() == ["parliament_seats", "candidates_2026"]

    def test_unrecognised_document(self, loader, tmp_path):
        json_path = tmp_path / "empty.json"
        json_path.write_text(json.dumps({"posts": []}))

        assert loader.load_file(str(json_path)) == {}

    def test_results_reload_replaces_candidates(self, loader, temp_db, result_factory):
        loader.load_election_results([result_factory("c-1", 9, AL, 100, BNP)])
        loader.load_election_results([result_factory("c-1", 9, BNP, 250, AL)])

        assert count_rows(temp_db, "election_results") == 1
        assert count_rows(temp_db, "result_candidates") == 2
        row = temp_db.query("SELECT winner, difference FROM election_results").iloc[0]
        assert row["winner"] == BNP
        assert int(row["difference"]) == 250

    def test_reload_only_touches_its_own_term(self, loader, temp_db, result_factory):
        earlier = result_factory("c-1", 8, AL, 100, BNP)
        later = result_factory("c-1", 9, AL, 200, BNP)
        for record in (earlier, later):
            record["constituencyName"] = "8"
        loader.load_election_results([earlier, later])

        later["candidates"].append({"name": "Third", "party": "Jatiya Party", "votes": 10})
        loader.load_election_results([later])

        counts = temp_db.query(
            """
            SELECT parliament_number, COUNT(*) AS n FROM result_candidates
            GROUP BY parliament_number ORDER BY parliament_number
            """
        )
        assert counts["parliament_number"].tolist() == [8, 9]
        assert counts["n"].tolist() == [2, 3]

    def test_failed_reload_keeps_previous_rows(self, loader, temp_db, result_factory):
        loader.load_election_results([result_factory("c-1", 9, AL, 100, BNP)])

        broken = result_factory("c-1", 9, BNP, 250, AL)
        broken["candidates"][0]["votes"] = "many"
        with pytest.raises(duckdb.Error):
            loader.load_election_results([broken])

        assert count_rows(temp_db, "result_candidates") == 2
        row = temp_db.query("SELECT winner FROM election_results").iloc[0]
        assert row["winner"] == AL

    def test_candidate_reload_keeps_popularity(self, loader, temp_db, sample_candidates_2026):
        loader.load_candidates_2026(sample_candidates_2026)
        VoteIntegrityGuard(temp_db).cast_popularity_vote("device-1", "Karim", "dhaka-1")

        sample_candidates_2026[0]["candidate_list"][1]["electoral_vote"] = 61000
        loader.load_candidates_2026(sample_candidates_2026)

        row = temp_db.query(
            "SELECT popularity_vote, electoral_vote FROM candidates_2026 WHERE candidate_name = 'Karim'"
        ).iloc[0]
        assert int(row["popularity_vote"]) == 1
        assert int(row["electoral_vote"]) == 61000

    def test_poll_upsert_by_slug(self, loader, temp_db, sample_poll):
        loader.load_polls([sample_poll])
        first_id = PollRepository(temp_db).get_by_slug("election-mood").poll_id

        sample_poll["title"] = {"bn": "নতুন", "en": "Renamed"}
        sample_poll["questions"] = sample_poll["questions"][:1]
        loader.load_polls([sample_poll])

        poll = PollRepository(temp_db).get_by_slug("election-mood")
        assert poll.poll_id == first_id
        assert poll.title["en"] == "Renamed"
        assert len(poll.questions) == 1
        assert count_rows(temp_db, "polls") == 1

    def test_poll_reset_discards_votes(self, loader, temp_db, sample_poll):
        loader.load_polls([sample_poll])
        poll_id = PollRepository(temp_db).get_by_slug("election-mood").poll_id
        VoteIntegrityGuard(temp_db).cast_poll_vote(poll_id, 0, "yes", "10.0.0.1", "fp-1")

        loader.load_polls([sample_poll])
        assert count_rows(temp_db, "poll_votes") == 1

        loader.load_polls([sample_poll], reset=True)
        assert count_rows(temp_db, "poll_votes") == 0

    def test_poll_without_questions_rejected(self, loader):
        with pytest.raises(ValueError, match="has no questions"):
            loader.load_polls([{"slug": "empty", "title": "Empty", "questions": []}])

    def test_plain_string_text_used_for_both_languages(self, loader, temp_db):
        loader.load_polls(
            [
                {
                    "slug": "plain",
                    "title": "Plain",
                    "questions": [
                        {"question": "Yes or no?", "options": [{"key": "y", "label": "Yes"}]}
                    ],
                }
            ]
        )
        poll = PollRepository(temp_db).get_by_slug("plain")
        assert poll.title == {"bn": "Plain", "en": "Plain"}
        assert poll.questions[0].tooltip == {"bn": "", "en": ""}


@pytest.mark.integration
class TestReadModels:
    def test_poll_repository(self, loader, temp_db, sample_poll):
        loader.load_polls([sample_poll])
        repository = PollRepository(temp_db)

        poll = repository.find_by_slug("election-mood")
        assert repository.get(poll.poll_id).slug == "election-mood"
        assert poll.to_dict()["createdAt"] is not None
        assert repository.find("missing") is None
        with pytest.raises(NotFound):
            repository.get_by_slug("missing")

    def test_candidate_directory_filters(self, loader, temp_db, sample_candidates_2026):
        loader.load_candidates_2026(sample_candidates_2026)
        directory = CandidateDirectory(temp_db)

        everything = directory.list_constituencies()
        assert [c["constituency_id"] for c in everything] == ["dhaka-1", "sylhet-1"]
        assert [c["candidate_name"] for c in everything[0]["candidate_list"]] == [
            "Rahim",
            "Karim",
        ]
        assert everything[0]["candidate_list"][0]["popularity_vote"] == 4

        assert directory.list_constituencies(constituency="sylhet-1")[0]["district"] == "Sylhet"
        assert directory.list_constituencies(party=BNP)[0]["constituency_id"] == "dhaka-1"
        assert directory.list_constituencies(division="Khulna") == []
        assert directory.constituency_exists("dhaka-1")
        assert not directory.constituency_exists("khulna-1")

    def test_parliament_visualization(self, loader, temp_db):
        loader.load_parliament_seats(
            [
                {
                    "parliament": 2001,
                    "constituency_number": n,
                    "constituency_name": f"Seat {n}",
                    "party": party,
                    "candidate": f"Candidate {n}",
                    "color": color,
                    "isWinner": True,
                }
                for n, party, color in [
                    (1, BNP, "#FF6B35"),
                    (2, AL, "#00A228"),
                    (3, BNP, "#FF6B35"),
                ]
            ]
        )
        visualizer = ParliamentVisualizer(temp_db)

        seat_map = visualizer.visualization(2001)
        assert seat_map["totalSeats"] == 3
        assert [p["name"] for p in seat_map["parties"]] == [BNP, AL]
        assert seat_map["parties"][0]["seats"] == 2
        assert seat_map["constituencies"]["2"]["isWinner"] is True

        rows = visualizer.constituency_results(2001)
        assert [r["constituency_number"] for r in rows] == [1, 2, 3]
        assert rows[0]["parliament"] == 2001

    def test_visualization_year_must_be_available(self, temp_db):
        with pytest.raises(InvalidInput, match="Available years: 1973"):
            ParliamentVisualizer(temp_db).visualization(2030)

    def test_visualization_of_year_without_rows(self, temp_db):
        seat_map = ParliamentVisualizer(temp_db).visualization(1973)
        assert seat_map == {
            "electionYear": "1973",
            "constituencies": {},
            "parties": [],
            "totalSeats": 0,
        }
