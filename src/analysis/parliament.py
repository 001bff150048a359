"""Parliament seat maps and per-term constituency result listings."""

import logging
from typing import Any, Dict, List

from data.database import ElectionDatabase
from data.errors import InvalidInput
from data.serialization import is_missing, optional_int

logger = logging.getLogger(__name__)

AVAILABLE_ELECTION_YEARS = (
    1973,
    1979,
    1986,
    1988,
    1991,
    1996,
    2001,
    2009,
    2014,
    2019,
    2024,
)


class ParliamentVisualizer:
    """Builds seat-map data for the parliament visualization."""

    def __init__(self, db: ElectionDatabase):
        self.db = db

    def _seats(self, parliament: int):
        return self.db.query(
            """
            SELECT constituency_number, constituency_name, party, candidate,
                   total_voters, color, votes, is_winner
            FROM parliament_seats
            WHERE parliament = ?
            ORDER BY constituency_number
            """,
            [parliament],
        )

    def visualization(self, year: int) -> Dict[str, Any]:
        """
        Seat map for one election year.

        Args:
            year: Election year, one of AVAILABLE_ELECTION_YEARS

        Returns:
            Seat colours keyed by constituency number, parties ordered by
            seats won, and the total seat count
        """
        if year not in AVAILABLE_ELECTION_YEARS:
            raise InvalidInput(
                f"No data available for election year {year}. Available years: "
                f"{', '.join(str(y) for y in AVAILABLE_ELECTION_YEARS)}"
            )

        seats = self._seats(year)
        constituencies: Dict[str, Dict[str, Any]] = {}
        parties: Dict[str, Dict[str, Any]] = {}
        for seat in seats.itertuples(index=False):
            constituencies[str(int(seat.constituency_number))] = {
                "party": seat.party,
                "color": seat.color,
                "candidate": seat.candidate,
                "isWinner": bool(seat.is_winner) if not is_missing(seat.is_winner) else False,
            }
            party = parties.setdefault(
                seat.party, {"name": seat.party, "color": seat.color, "seats": 0}
            )
            party["seats"] += 1

        ranked = sorted(parties.values(), key=lambda p: (-p["seats"], p["name"]))
        logger.info(f"Built seat map for {year}: {len(seats)} seats, {len(ranked)} parties")
        return {
            "electionYear": str(year),
            "constituencies": constituencies,
            "parties": ranked,
            "totalSeats": len(seats),
        }

    def constituency_results(self, parliament: int) -> List[Dict[str, Any]]:
        """All seat rows for a term, ordered by constituency number."""
        seats = self._seats(parliament)
        return [
            {
                "constituency_number": int(seat.constituency_number),
                "constituency_name": seat.constituency_name,
                "party": seat.party,
                "candidate": seat.candidate,
                "total_voters": optional_int(seat.total_voters),
                "parliament": parliament,
                "color": seat.color,
                "votes": optional_int(seat.votes),
                "isWinner": bool(seat.is_winner) if not is_missing(seat.is_winner) else False,
            }
            for seat in seats.itertuples(index=False)
        ]
