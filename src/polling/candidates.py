"""2026 constituency candidate lists with their popularity counters."""

import logging
from typing import Any, Dict, List, Optional

from data.database import ElectionDatabase
from data.serialization import format_date

logger = logging.getLogger(__name__)


class CandidateDirectory:
    """Read access to 2026 constituencies and their candidates."""

    def __init__(self, db: ElectionDatabase):
        self.db = db

    def constituency_exists(self, constituency_id: str) -> bool:
        result = self.db.execute(
            "SELECT COUNT(*) FROM constituencies_2026 WHERE constituency_id = ?",
            [constituency_id],
        ).fetchone()
        return result[0] > 0

    def list_constituencies(
        self,
        constituency: Optional[str] = None,
        party: Optional[str] = None,
        division: Optional[str] = None,
        district: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        List constituencies with their full candidate lists.

        Args:
            constituency: Only this constituency id
            party: Only constituencies where this party fields a candidate
            division: Only constituencies in this division
            district: Only constituencies in this district

        Returns:
            One record per constituency, ordered by constituency id
        """
        conditions = []
        params: List[Any] = []
        if constituency:
            conditions.append("c.constituency_id = ?")
            params.append(constituency)
        if division:
            conditions.append("c.division = ?")
            params.append(division)
        if district:
            conditions.append("c.district = ?")
            params.append(district)
        if party:
            conditions.append(
                "EXISTS (SELECT 1 FROM candidates_2026 p WHERE p.constituency_id = c.constituency_id AND p.party_name = ?)"
            )
            params.append(party)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        constituencies = self.db.query(
            f"""
            SELECT c.constituency_id, c.division, c.district, c.election_date
            FROM constituencies_2026 c
            {where}
            ORDER BY c.constituency_id
            """,
            params,
        )
        logger.debug(f"Candidate listing matched {len(constituencies)} constituencies")
        if constituencies.empty:
            return []

        ids = constituencies["constituency_id"].tolist()
        candidates = self.db.query(
            """
            SELECT constituency_id, candidate_name, candidate_ref, candidate_img,
                   party_name, party_ref, party_symbol_img, popularity_vote, electoral_vote
            FROM candidates_2026
            WHERE list_contains(?, constituency_id)
            ORDER BY constituency_id, candidate_index
            """,
            [ids],
        )

        by_constituency: Dict[str, List[Dict[str, Any]]] = {}
        for candidate in candidates.itertuples(index=False):
            by_constituency.setdefault(candidate.constituency_id, []).append(
                {
                    "candidate_name": candidate.candidate_name,
                    "candidate_ref": candidate.candidate_ref or "",
                    "candidate_img": candidate.candidate_img or "",
                    "party_name": candidate.party_name,
                    "party_ref": candidate.party_ref or "",
                    "party_symbol_img": candidate.party_symbol_img or "",
                    "popularity_vote": int(candidate.popularity_vote),
                    "electoral_vote": int(candidate.electoral_vote),
                }
            )

        return [
            {
                "constituency_id": row.constituency_id,
                "division": row.division,
                "district": row.district,
                "election_date": format_date(row.election_date),
                "candidate_list": by_constituency.get(row.constituency_id, []),
            }
            for row in constituencies.itertuples(index=False)
        ]
