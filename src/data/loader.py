import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from data.database import SCHEMA_SCRIPT, ElectionDatabase

logger = logging.getLogger(__name__)

# Collections a document load fills; votes and fingerprints accrue at runtime
LOADED_COLLECTIONS = ("election_results", "parliament_seats", "candidates_2026", "polls")


def _parse_date(value: Any) -> Optional[str]:
    """Reduce ISO dates and datetimes to ``YYYY-MM-DD``."""
    if value in (None, ""):
        return None
    return str(value)[:10]


def _localized(value: Any, field: str) -> Dict[str, str]:
    if isinstance(value, str):
        return {"bn": value, "en": value}
    if not isinstance(value, dict) or not value.get("bn") or not value.get("en"):
        raise ValueError(f"{field} must have 'bn' and 'en' text")
    return {"bn": value["bn"], "en": value["en"]}


class ElectionDataLoader:
    """
    Loads election documents into the store.

    Accepts the JSON shapes exported from the public site's collections:
    per-term constituency results, parliament seat maps, 2026 candidate
    lists and polls.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize loader.

        Args:
            db_path: Path to DuckDB database file
        """
        self.db = ElectionDatabase(db_path)

    def ensure_schema(self) -> int:
        """Create missing tables and return the number of tables present."""
        result = self.db.execute_script(SCHEMA_SCRIPT)
        return int(result["table_count"].iloc[0]) if not result.empty else 0

    def load_file(self, json_path: str, reset_polls: bool = False) -> Dict[str, int]:
        """
        Load every recognised collection from a JSON document.

        Args:
            json_path: Path to a JSON object keyed by collection name
            reset_polls: Discard recorded votes for the loaded polls

        Returns:
            Dictionary with per-collection row counts
        """
        path = Path(json_path)
        logger.info(f"Loading election data from: {path}")

        with open(path, "r", encoding="utf-8") as f:
            document = json.load(f)

        stats = {}
        if "election_results" in document:
            stats["election_results"] = self.load_election_results(
                document["election_results"]
            )
        if "parliament_seats" in document:
            stats["parliament_seats"] = self.load_parliament_seats(
                document["parliament_seats"]
            )
        if "candidates_2026" in document:
            stats["candidates_2026"] = self.load_candidates_2026(
                document["candidates_2026"]
            )
        if "polls" in document:
            stats["polls"] = len(self.load_polls(document["polls"], reset=reset_polls))

        if not stats:
            logger.warning(f"No recognised collections in {path}")
        return stats

    def load_election_results(self, records: List[Dict[str, Any]]) -> int:
        """
        Insert or replace per-term constituency results.

        Each record needs ``constituencyId``, ``parliamentNumber`` and
        ``Winner``; ``candidates`` is a list of ``{name, party, votes}``.
        """
        result_rows = []
        candidate_rows = []
        for record in records:
            constituency_id = record["constituencyId"]
            parliament_number = int(record["parliamentNumber"])
            result_rows.append(
                (
                    constituency_id,
                    record.get("constituencyName") or constituency_id,
                    parliament_number,
                    record["Winner"],
                    record.get("Difference"),
                    record.get("Difference_Percentage"),
                    _parse_date(record.get("electionDate")),
                )
            )
            for index, candidate in enumerate(record.get("candidates") or []):
                candidate_rows.append(
                    (
                        constituency_id,
                        parliament_number,
                        index,
                        candidate.get("name"),
                        candidate.get("party"),
                        candidate.get("votes"),
                    )
                )

        with self.db.transaction() as conn:
            # Candidate rows are replaced wholesale; a failed load keeps the old ones
            for constituency_id, _, parliament_number, *_ in result_rows:
                conn.execute(
                    "DELETE FROM result_candidates WHERE constituency_id = ? AND parliament_number = ?",
                    [constituency_id, parliament_number],
                )
            if result_rows:
                conn.executemany(
                    "INSERT OR REPLACE INTO election_results VALUES (?, ?, ?, ?, ?, ?, ?)",
                    result_rows,
                )
            if candidate_rows:
                conn.executemany(
                    "INSERT INTO result_candidates VALUES (?, ?, ?, ?, ?, ?)",
                    candidate_rows,
                )

        logger.info(
            f"Loaded {len(result_rows)} election results with {len(candidate_rows)} candidates"
        )
        return len(result_rows)

    def load_parliament_seats(self, records: List[Dict[str, Any]]) -> int:
        """Insert or replace parliament seat map rows."""
        rows = [
            (
                int(record["parliament"]),
                int(record["constituency_number"]),
                record["constituency_name"],
                record["party"],
                record["candidate"],
                record.get("total_voters"),
                record.get("color"),
                record.get("votes"),
                bool(record.get("isWinner", False)),
            )
            for record in records
        ]
        if rows:
            with self.db.transaction() as conn:
                conn.executemany(
                    "INSERT OR REPLACE INTO parliament_seats VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    rows,
                )
        logger.info(f"Loaded {len(rows)} parliament seats")
        return len(rows)

    def load_candidates_2026(self, records: List[Dict[str, Any]]) -> int:
        """
        Upsert 2026 constituencies and their candidate lists.

        Popularity counters already in the store are preserved.

        Returns:
            Number of candidates loaded
        """
        loaded = 0
        with self.db.transaction() as conn:
            for record in records:
                constituency_id = record["constituency_id"]
                conn.execute(
                    """
                    INSERT INTO constituencies_2026 VALUES (?, ?, ?, ?)
                    ON CONFLICT (constituency_id) DO UPDATE SET
                        division = excluded.division,
                        district = excluded.district,
                        election_date = excluded.election_date
                    """,
                    [
                        constituency_id,
                        record["division"],
                        record["district"],
                        _parse_date(record.get("election_date")),
                    ],
                )
                for index, candidate in enumerate(record.get("candidate_list") or []):
                    conn.execute(
                        """
                        INSERT INTO candidates_2026 VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        ON CONFLICT (constituency_id, candidate_name) DO UPDATE SET
                            candidate_index = excluded.candidate_index,
                            candidate_ref = excluded.candidate_ref,
                            candidate_img = excluded.candidate_img,
                            party_name = excluded.party_name,
                            party_ref = excluded.party_ref,
                            party_symbol_img = excluded.party_symbol_img,
                            electoral_vote = excluded.electoral_vote
                        """,
                        [
                            constituency_id,
                            index,
                            candidate["candidate_name"],
                            candidate.get("candidate_ref", ""),
                            candidate.get("candidate_img", ""),
                            candidate["party_name"],
                            candidate.get("party_ref", ""),
                            candidate.get("party_symbol_img", ""),
                            int(candidate.get("popularity_vote", 0)),
                            int(candidate.get("electoral_vote", 0)),
                        ],
                    )
                    loaded += 1

        logger.info(f"Loaded {loaded} candidates across {len(records)} constituencies")
        return loaded

    def load_polls(self, polls: List[Dict[str, Any]], reset: bool = False) -> List[str]:
        """
        Upsert polls by slug.

        Questions and options are replaced wholesale with the incoming
        definition, including their starting vote counts.

        Args:
            polls: Poll documents with ``slug``, ``title`` and ``questions``
            reset: Also delete recorded votes for these polls

        Returns:
            Slugs that were written
        """
        written = []
        for poll in polls:
            slug = poll["slug"]
            title = _localized(poll["title"], "title")
            questions = poll.get("questions") or []
            if not questions:
                raise ValueError(f"Poll {slug} has no questions")

            existing = self.db.query("SELECT poll_id FROM polls WHERE slug = ?", [slug])
            if existing.empty:
                poll_id = uuid.uuid4().hex
                self.db.execute(
                    "INSERT INTO polls (poll_id, slug, title_bn, title_en, is_group) VALUES (?, ?, ?, ?, ?)",
                    [poll_id, slug, title["bn"], title["en"], bool(poll.get("isGroup"))],
                )
            else:
                poll_id = existing["poll_id"].iloc[0]
                self.db.execute(
                    """
                    UPDATE polls
                    SET title_bn = ?, title_en = ?, is_group = ?, updated_at = current_timestamp
                    WHERE poll_id = ?
                    """,
                    [title["bn"], title["en"], bool(poll.get("isGroup")), poll_id],
                )
                # Committed before the inserts: DuckDB rejects re-inserting a
                # primary key deleted in the same transaction
                self.db.execute("DELETE FROM poll_options WHERE poll_id = ?", [poll_id])
                self.db.execute("DELETE FROM poll_questions WHERE poll_id = ?", [poll_id])

            if reset:
                self.db.execute("DELETE FROM poll_votes WHERE poll_id = ?", [poll_id])

            self._insert_questions(poll_id, questions)
            written.append(slug)
            logger.info(f"Loaded poll {slug} ({len(questions)} questions)")

        return written

    def _insert_questions(self, poll_id: str, questions: List[Dict[str, Any]]):
        question_rows = []
        option_rows = []
        for question_index, question in enumerate(questions):
            text = _localized(question["question"], "question")
            tooltip = question.get("tooltip") or {}
            question_rows.append(
                (
                    poll_id,
                    question_index,
                    text["bn"],
                    text["en"],
                    tooltip.get("bn", ""),
                    tooltip.get("en", ""),
                )
            )
            for option_index, option in enumerate(question["options"]):
                label = _localized(option["label"], "label")
                option_rows.append(
                    (
                        poll_id,
                        question_index,
                        option_index,
                        option["key"],
                        label["bn"],
                        label["en"],
                        int(option.get("votes", 0)),
                    )
                )

        with self.db.transaction() as conn:
            conn.executemany(
                "INSERT INTO poll_questions VALUES (?, ?, ?, ?, ?, ?)", question_rows
            )
            if option_rows:
                conn.executemany(
                    "INSERT INTO poll_options VALUES (?, ?, ?, ?, ?, ?, ?)",
                    option_rows,
                )

    def get_summary(self) -> pd.DataFrame:
        """Row counts for every table in the store."""
        return self.db.query(
            """
            SELECT 'election_results' AS collection, COUNT(*) AS row_count FROM election_results
            UNION ALL SELECT 'parliament_seats', COUNT(*) FROM parliament_seats
            UNION ALL SELECT 'candidates_2026', COUNT(*) FROM candidates_2026
            UNION ALL SELECT 'polls', COUNT(*) FROM polls
            UNION ALL SELECT 'poll_votes', COUNT(*) FROM poll_votes
            UNION ALL SELECT 'fingerprint_log', COUNT(*) FROM fingerprint_log
            """
        )

    def get_empty_collections(self) -> List[str]:
        """Loadable collections that hold no rows yet."""
        summary = self.get_summary().set_index("collection")["row_count"]
        return [name for name in LOADED_COLLECTIONS if int(summary[name]) == 0]

    def close(self):
        self.db.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
