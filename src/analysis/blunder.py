"""
Blunder (Near-Miss) Analyzer

For one parliamentary term, finds the runner-up party's narrowest losses and
totals the extra votes it would have needed in them to close its seat gap
with the leading party.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from data.database import ElectionDatabase
from data.serialization import format_date, is_missing, optional_int

logger = logging.getLogger(__name__)

# Near misses fetched for display even when the seat gap is smaller
CANDIDATE_POOL_SIZE = 30


@dataclass
class NearMiss:
    """A constituency the runner-up contested and lost."""

    constituency_id: str
    constituency_name: str
    winner: str
    difference: int
    difference_percentage: Optional[str]
    election_date: Optional[str]
    candidates: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "constituencyId": self.constituency_id,
            "constituencyName": self.constituency_name,
            "Winner": self.winner,
            "Difference": self.difference,
            "Difference_Percentage": self.difference_percentage,
            "electionDate": self.election_date,
            "candidates": self.candidates,
        }


@dataclass
class BlunderResult:
    """Near-miss analysis for one parliamentary term."""

    parliament: int
    year: int
    top_party: str = ""
    second_party: str = ""
    top_party_seats: int = 0
    second_party_seats: int = 0
    seat_difference: int = 0
    total_votes_needed: int = 0
    constituencies: List[NearMiss] = field(default_factory=list)

    @property
    def constituency_ids(self) -> List[str]:
        return [c.constituency_id for c in self.constituencies]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parliament": self.parliament,
            "year": self.year,
            "topParty": self.top_party,
            "secondParty": self.second_party,
            "topPartySeats": self.top_party_seats,
            "secondPartySeats": self.second_party_seats,
            "seatDifference": self.seat_difference,
            "totalVotesNeeded": self.total_votes_needed,
            "constituencyIds": self.constituency_ids,
            "constituencies": [c.to_dict() for c in self.constituencies],
        }


class BlunderAnalyzer:
    """
    Computes the runner-up's cheapest path to parity in seats.

    The vote total is naive: it sums the winning margins of the selected
    constituencies and ignores any knock-on effect of moving those votes.
    """

    def __init__(self, db: ElectionDatabase):
        """
        Initialize analyzer.

        Args:
            db: Database with election results
        """
        self.db = db

    def get_top_two(self, parliament: int) -> List[Dict[str, Any]]:
        """
        Top two parties by seats won in a term.

        Equal seat counts are ordered by party name.
        """
        seats = self.db.query(
            """
            SELECT winner AS party, COUNT(*) AS seats
            FROM election_results
            WHERE parliament_number = ?
            GROUP BY winner
            ORDER BY seats DESC, party ASC
            LIMIT 2
            """,
            [parliament],
        )
        return [
            {"party": row.party, "seats": int(row.seats)}
            for row in seats.itertuples(index=False)
        ]

    def get_near_misses(self, parliament: int, party: str, limit: int) -> List[NearMiss]:
        """
        Constituencies where a party fielded a candidate but lost.

        Args:
            parliament: Parliamentary term
            party: Party whose losses to find
            limit: Maximum number of constituencies

        Returns:
            Losses ordered by winning margin, smallest first
        """
        losses = self.db.query(
            f"""
            SELECT r.constituency_id, r.constituency_name, r.winner,
                   r.difference, r.difference_percentage, r.election_date
            FROM election_results r
            WHERE r.parliament_number = ?
              AND r.winner <> ?
              AND EXISTS (
                  SELECT 1 FROM result_candidates c
                  WHERE c.constituency_id = r.constituency_id
                    AND c.parliament_number = r.parliament_number
                    AND c.party = ?
              )
            ORDER BY r.difference ASC NULLS LAST, r.constituency_id ASC
            LIMIT {int(limit)}
            """,
            [parliament, party, party],
        )
        if losses.empty:
            return []

        candidates = self.db.query(
            """
            SELECT constituency_id, name, party, votes
            FROM result_candidates
            WHERE parliament_number = ? AND list_contains(?, constituency_id)
            ORDER BY constituency_id, candidate_index
            """,
            [parliament, losses["constituency_id"].tolist()],
        )
        by_constituency: Dict[str, List[Dict[str, Any]]] = {}
        for candidate in candidates.itertuples(index=False):
            by_constituency.setdefault(candidate.constituency_id, []).append(
                {
                    "name": candidate.name,
                    "party": candidate.party,
                    "votes": optional_int(candidate.votes),
                }
            )

        return [
            NearMiss(
                constituency_id=row.constituency_id,
                constituency_name=row.constituency_name,
                winner=row.winner,
                difference=optional_int(row.difference) or 0,
                difference_percentage=(
                    None if is_missing(row.difference_percentage) else row.difference_percentage
                ),
                election_date=format_date(row.election_date),
                candidates=by_constituency.get(row.constituency_id, []),
            )
            for row in losses.itertuples(index=False)
        ]

    def analyze(self, parliament: int) -> BlunderResult:
        """
        Run the near-miss analysis for a term.

        Args:
            parliament: Parliamentary term

        Returns:
            BlunderResult; zeroed, with year set to the term number, when
            fewer than two parties won seats
        """
        top_two = self.get_top_two(parliament)
        if len(top_two) < 2:
            logger.warning(f"Fewer than two parties won seats in parliament {parliament}")
            # No election to date it by, so the term number stands in for the year
            return BlunderResult(parliament=parliament, year=parliament)

        first, second = top_two
        seat_difference = max(0, first["seats"] - second["seats"])

        pool = self.get_near_misses(
            parliament, second["party"], max(seat_difference, CANDIDATE_POOL_SIZE)
        )
        selected = pool[: max(1, seat_difference)]
        total_votes_needed = sum(max(0, c.difference) for c in selected)

        year = date.today().year
        if selected and selected[0].election_date:
            year = int(selected[0].election_date[:4])

        logger.info(
            f"Parliament {parliament}: {second['party']} needed {total_votes_needed} votes "
            f"across {len(selected)} constituencies"
        )
        return BlunderResult(
            parliament=parliament,
            year=year,
            top_party=first["party"],
            second_party=second["party"],
            top_party_seats=first["seats"],
            second_party_seats=second["seats"],
            seat_difference=seat_difference,
            total_votes_needed=total_votes_needed,
            constituencies=selected,
        )
