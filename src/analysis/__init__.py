"""
Analysis module for historical election results.

- SwingStateClassifier: constituency stability labels across a fixed set of terms
- BlunderAnalyzer: the runner-up party's narrowest losses for a term
- ParliamentVisualizer: seat maps and per-term constituency listings
"""

from .blunder import BlunderAnalyzer, BlunderResult, NearMiss
from .parliament import AVAILABLE_ELECTION_YEARS, ParliamentVisualizer
from .swing_state import (
    DEFAULT_PARLIAMENTS,
    SwingStateClassification,
    SwingStateClassifier,
    classify_pattern,
    get_party_color,
)

__all__ = [
    "SwingStateClassifier",
    "SwingStateClassification",
    "classify_pattern",
    "get_party_color",
    "DEFAULT_PARLIAMENTS",
    "BlunderAnalyzer",
    "BlunderResult",
    "NearMiss",
    "ParliamentVisualizer",
    "AVAILABLE_ELECTION_YEARS",
]
