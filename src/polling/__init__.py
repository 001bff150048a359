"""
Polling module for the public election site.

- VoteIntegrityGuard: poll and candidate popularity voting with duplicate-vote prevention
- PollRepository: poll aggregates with their option counters
- CandidateDirectory: 2026 constituency candidate lists
"""

from .candidates import CandidateDirectory
from .integrity import VoteIntegrityGuard
from .polls import Poll, PollOption, PollQuestion, PollRepository

__all__ = [
    "VoteIntegrityGuard",
    "PollRepository",
    "Poll",
    "PollQuestion",
    "PollOption",
    "CandidateDirectory",
]
