"""
Vote Integrity Guard

Accepts or rejects ballots so that no identity (IP address or device
fingerprint) records more than one vote per poll question, and no device
records more than one popularity vote per candidate.

The existence checks here are a fast path only. The store's unique
constraints on (poll, question, ip), (poll, question, fingerprint) and
(fingerprint, candidate) decide races: a constraint violation is reported
exactly like a duplicate found by the pre-check. Identities come from
client-controlled headers and browser storage, so this is best-effort abuse
resistance rather than proof against a motivated adversary.
"""

import logging
import uuid

import duckdb

from data.database import ElectionDatabase
from data.errors import (
    DUPLICATE_POLL_VOTE_MESSAGE,
    DUPLICATE_POPULARITY_VOTE_MESSAGE,
    DuplicateVote,
    InvalidInput,
    InvalidOption,
    NotFound,
    StorageFailure,
    is_unique_violation,
)
from polling.candidates import CandidateDirectory
from polling.polls import Poll, PollRepository

logger = logging.getLogger(__name__)


class VoteIntegrityGuard:
    """
    Gatekeeper for every vote write.

    A vote row is inserted and the matching counter incremented inside a
    single transaction, so a rejected insert never touches a counter and a
    counter never moves without its audit row.
    """

    def __init__(self, db: ElectionDatabase):
        """
        Initialize the guard.

        Args:
            db: Database unit of work for this request
        """
        self.db = db
        self.polls = PollRepository(db)
        self.candidates = CandidateDirectory(db)

    def has_poll_vote(
        self, poll_id: str, question_index: int, ip: str, fingerprint: str
    ) -> bool:
        """Check whether either identity already voted on the question."""
        result = self.db.execute(
            """
            SELECT COUNT(*) FROM poll_votes
            WHERE poll_id = ? AND question_index = ?
              AND (ip = ? OR fingerprint = ?)
            """,
            [poll_id, question_index, ip, fingerprint],
        ).fetchone()
        return result[0] > 0

    def cast_poll_vote(
        self,
        poll_id: str,
        question_index: int,
        option_key: str,
        ip: str,
        fingerprint: str,
    ) -> Poll:
        """
        Record one ballot for a poll question.

        Args:
            poll_id: Poll identifier
            question_index: Zero-based index into the poll's questions
            option_key: Key of the chosen option
            ip: Submitter IP address
            fingerprint: Submitter device fingerprint

        Returns:
            The poll aggregate with updated counters

        Raises:
            InvalidInput: Required fields are missing
            NotFound: Poll or question does not exist
            InvalidOption: Option key is not part of the question
            DuplicateVote: The IP or fingerprint already voted on the question
            StorageFailure: The write failed for any other reason
        """
        if not poll_id or not option_key or not fingerprint or not ip:
            raise InvalidInput("Invalid vote payload")

        poll = self.polls.find(poll_id)
        if poll is None:
            raise NotFound("Poll not found")

        if question_index < 0 or question_index >= len(poll.questions):
            raise NotFound("Question not found")

        if poll.questions[question_index].find_option(option_key) is None:
            raise InvalidOption("Option not found")

        if self.has_poll_vote(poll_id, question_index, ip, fingerprint):
            logger.warning(
                f"Duplicate vote rejected for poll {poll_id} question {question_index}"
            )
            raise DuplicateVote(DUPLICATE_POLL_VOTE_MESSAGE)

        try:
            with self.db.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO poll_votes (vote_id, poll_id, question_index, option_key, ip, fingerprint)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [uuid.uuid4().hex, poll_id, question_index, option_key, ip, fingerprint],
                )
                updated = conn.execute(
                    """
                    UPDATE poll_options SET votes = votes + 1
                    WHERE poll_id = ? AND question_index = ? AND option_key = ?
                    """,
                    [poll_id, question_index, option_key],
                ).fetchone()
                if not updated or updated[0] != 1:
                    raise StorageFailure("Failed to submit vote")
        except duckdb.ConstraintException as e:
            if is_unique_violation(e):
                logger.warning(
                    f"Duplicate vote rejected by constraint for poll {poll_id} question {question_index}"
                )
                raise DuplicateVote(DUPLICATE_POLL_VOTE_MESSAGE) from e
            logger.error(f"Vote insert failed: {e}")
            raise StorageFailure("Failed to submit vote") from e
        except duckdb.Error as e:
            logger.error(f"Vote submission failed: {e}")
            raise StorageFailure("Failed to submit vote") from e

        logger.info(
            f"Accepted vote for poll {poll_id} question {question_index} option {option_key}"
        )
        return self.polls.get(poll_id)

    def has_popularity_vote(self, fingerprint: str, candidate_name: str) -> bool:
        """Check whether a device already voted for a candidate."""
        if not fingerprint or not candidate_name:
            raise InvalidInput("Missing required parameters: fp, candidate_name")

        result = self.db.execute(
            "SELECT COUNT(*) FROM fingerprint_log WHERE fingerprint = ? AND candidate_name = ?",
            [fingerprint, candidate_name],
        ).fetchone()
        return result[0] > 0

    def cast_popularity_vote(
        self, fingerprint: str, candidate_name: str, constituency_id: str
    ) -> int:
        """
        Record one popularity vote for a 2026 candidate.

        The counter is incremented with a single UPDATE scoped to the
        (constituency, candidate) row; there is no read-modify-write.

        Returns:
            The candidate's new popularity counter

        Raises:
            InvalidInput: Required fields are missing
            DuplicateVote: The fingerprint already voted for the candidate
            NotFound: Constituency or candidate does not exist
            StorageFailure: The write failed for any other reason
        """
        if not fingerprint or not candidate_name or not constituency_id:
            raise InvalidInput(
                "Missing required fields: fp, candidate_name, constituency_id"
            )

        if self.has_popularity_vote(fingerprint, candidate_name):
            logger.warning(f"Duplicate popularity vote rejected for {candidate_name}")
            raise DuplicateVote(DUPLICATE_POPULARITY_VOTE_MESSAGE)

        if not self.candidates.constituency_exists(constituency_id):
            raise NotFound("Constituency not found")

        try:
            with self.db.transaction() as conn:
                conn.execute(
                    "INSERT INTO fingerprint_log (fingerprint, candidate_name, constituency_id) VALUES (?, ?, ?)",
                    [fingerprint, candidate_name, constituency_id],
                )
                row = conn.execute(
                    """
                    UPDATE candidates_2026 SET popularity_vote = popularity_vote + 1
                    WHERE constituency_id = ? AND candidate_name = ?
                    RETURNING popularity_vote
                    """,
                    [constituency_id, candidate_name],
                ).fetchone()
                if row is None:
                    raise NotFound("Candidate not found in this constituency")
        except duckdb.ConstraintException as e:
            if is_unique_violation(e):
                logger.warning(
                    f"Duplicate popularity vote rejected by constraint for {candidate_name}"
                )
                raise DuplicateVote(DUPLICATE_POPULARITY_VOTE_MESSAGE) from e
            logger.error(f"Popularity vote insert failed: {e}")
            raise StorageFailure("Failed to record vote") from e
        except duckdb.Error as e:
            logger.error(f"Error recording vote: {e}")
            raise StorageFailure("Failed to record vote") from e

        popularity_vote = int(row[0])
        logger.info(
            f"Recorded popularity vote for {candidate_name} in {constituency_id} ({popularity_vote})"
        )
        return popularity_vote
