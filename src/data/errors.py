"""
Error taxonomy shared by the storage, polling and analysis layers.

Every failure the service reports carries an HTTP-style status code and a
human-readable message; the web layer renders them as ``{"error": message}``.
"""

from typing import Optional

import duckdb

DUPLICATE_POLL_VOTE_MESSAGE = "You have already voted in this poll."
DUPLICATE_POPULARITY_VOTE_MESSAGE = "You have already voted for this candidate"


class ElectionDataError(Exception):
    """Base class for all reportable service failures."""

    status_code = 500
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(ElectionDataError):
    """Poll, question, constituency or candidate does not exist."""

    status_code = 404
    default_message = "Resource not found"


class InvalidOption(ElectionDataError):
    """Option key does not belong to the question."""

    status_code = 400
    default_message = "Option not found"


class InvalidInput(ElectionDataError):
    """Missing or malformed request fields."""

    status_code = 400
    default_message = "Invalid input"


class DuplicateVote(ElectionDataError):
    """The identity has already voted."""

    status_code = 409
    default_message = DUPLICATE_POLL_VOTE_MESSAGE


class StorageFailure(ElectionDataError):
    """Backing store unreachable or failed in an unclassified way."""

    status_code = 500
    default_message = "Storage failure"


def is_unique_violation(error: Exception) -> bool:
    """Return True when a DuckDB error is a primary key / unique violation."""
    if isinstance(error, duckdb.ConstraintException):
        message = str(error).lower()
        return "duplicate key" in message or "unique" in message
    return False
