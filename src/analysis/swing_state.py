"""
Constituency Pattern Classifier

Labels every constituency by how consistently one party has held it across
a fixed set of parliamentary terms: solid, leaning, toss-up or competitive.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from data.database import ElectionDatabase

logger = logging.getLogger(__name__)

DEFAULT_PARLIAMENTS = (5, 7, 8, 9)

DEFAULT_PARTY_COLOR = "#9CA3AF"
PARTY_COLORS = {
    "Bangladesh Awami League": "#00A228",
    "Bangladesh Nationalist Party": "#FF6B35",
    "Jatiya Party": "#FDD60F",
    "Workers Party": "#E50305",
    "Jatiya Samajtantrik Dal": "#2C61E3",
}

SOLID = "solid"
LEANING = "leaning"
TOSS_UP = "toss_up"
COMPETITIVE = "competitive"

STABILITY = {
    SOLID: "very_high",
    LEANING: "high",
    TOSS_UP: "low",
    COMPETITIVE: "moderate",
}


def get_party_color(party: str) -> str:
    return PARTY_COLORS.get(party, DEFAULT_PARTY_COLOR)


def classify_pattern(
    win_counts: Dict[str, int], terms_considered: int
) -> Tuple[str, Optional[str]]:
    """
    Classify a constituency from its per-party win counts.

    Rules, in order, with N = terms_considered:
    all N terms to one party is solid; N-1 terms to one party is leaning,
    which takes a 1-1 split over two terms; an even split between exactly
    two parties is a toss-up; anything else is competitive.

    Args:
        win_counts: Party -> terms won, in first-seen order
        terms_considered: Number of terms the counts were tallied over

    Returns:
        Tuple of (label, dominant party or None)
    """
    if not win_counts:
        return COMPETITIVE, None

    max_wins = max(win_counts.values())
    tied_parties = [party for party, wins in win_counts.items() if wins == max_wins]

    if max_wins == terms_considered:
        return SOLID, tied_parties[0]
    if max_wins == terms_considered - 1:
        return LEANING, tied_parties[0]
    if max_wins * 2 == terms_considered and len(tied_parties) == 2:
        return TOSS_UP, None
    return COMPETITIVE, tied_parties[0] if tied_parties else None


@dataclass
class PartyWins:
    party: str
    color: str
    wins: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"party": self.party, "color": self.color, "wins": self.wins}


@dataclass
class SwingStateClassification:
    """Stability label for one constituency."""

    constituency_id: str
    constituency_name: str
    swing_state: str
    stability: str
    dominant_party: Optional[PartyWins]
    total_wins: int
    terms_considered: int
    complete_history: bool
    party_breakdown: List[PartyWins] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "constituency_id": self.constituency_id,
            "constituency_name": self.constituency_name,
            "swingState": self.swing_state,
            "stability": self.stability,
            "dominantParty": (
                {"party": self.dominant_party.party, "color": self.dominant_party.color}
                if self.dominant_party
                else None
            ),
            "wins": self.total_wins,
            "termsConsidered": self.terms_considered,
            "completeHistory": self.complete_history,
            "partyBreakdown": [p.to_dict() for p in self.party_breakdown],
        }


class SwingStateClassifier:
    """
    Classifies constituencies from their historical winners.

    Each constituency is judged against the terms it actually has results
    for. A constituency missing some of the target terms is still labelled,
    and is flagged with ``complete_history = False``.
    """

    def __init__(
        self, db: ElectionDatabase, parliaments: Sequence[int] = DEFAULT_PARLIAMENTS
    ):
        """
        Initialize classifier.

        Args:
            db: Database with election results
            parliaments: Parliamentary terms to classify over
        """
        self.db = db
        self.parliaments = sorted(set(int(p) for p in parliaments))

    def load_winners(self) -> pd.DataFrame:
        """Winners per constituency for the target terms, ordered by term."""
        return self.db.query(
            """
            SELECT constituency_id, constituency_name, parliament_number, winner
            FROM election_results
            WHERE list_contains(?, parliament_number)
            ORDER BY constituency_id, parliament_number
            """,
            [self.parliaments],
        )

    def classify_results(self, winners: pd.DataFrame) -> List[SwingStateClassification]:
        """
        Classify constituencies from a winners table.

        Args:
            winners: DataFrame with constituency_id, constituency_name,
                parliament_number and winner columns

        Returns:
            One classification per constituency, ordered by constituency id
        """
        target = set(self.parliaments)
        histories: Dict[str, Dict[str, Any]] = OrderedDict()

        ordered = winners.sort_values(
            ["constituency_id", "parliament_number"], kind="mergesort"
        )
        for row in ordered.itertuples(index=False):
            if int(row.parliament_number) not in target:
                continue
            history = histories.setdefault(
                row.constituency_id,
                {
                    "name": row.constituency_name or row.constituency_id,
                    "terms": set(),
                    "parties": OrderedDict(),
                },
            )
            history["terms"].add(int(row.parliament_number))
            party = history["parties"].setdefault(
                row.winner, PartyWins(party=row.winner, color=get_party_color(row.winner))
            )
            party.wins += 1

        results = []
        for constituency_id, history in histories.items():
            parties: Dict[str, PartyWins] = history["parties"]
            total_wins = sum(p.wins for p in parties.values())
            label, dominant = classify_pattern(
                {name: p.wins for name, p in parties.items()}, total_wins
            )
            results.append(
                SwingStateClassification(
                    constituency_id=constituency_id,
                    constituency_name=history["name"],
                    swing_state=label,
                    stability=STABILITY[label],
                    dominant_party=parties[dominant] if dominant else None,
                    total_wins=total_wins,
                    terms_considered=len(history["terms"]),
                    complete_history=history["terms"] == target,
                    party_breakdown=list(parties.values()),
                )
            )

        return results

    def classify(self) -> List[SwingStateClassification]:
        winners = self.load_winners()
        results = self.classify_results(winners)
        incomplete = sum(1 for r in results if not r.complete_history)
        if incomplete:
            logger.warning(
                f"{incomplete} constituencies lack results for some of terms {self.parliaments}"
            )
        logger.info(f"Classified {len(results)} constituencies")
        return results

    def get_summary(self) -> Dict[str, Any]:
        """Classification envelope for the public API."""
        results = self.classify()
        return {
            "parliaments": list(self.parliaments),
            "totalConstituencies": len(results),
            "swingStates": [r.to_dict() for r in results],
        }
