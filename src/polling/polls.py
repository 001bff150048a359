"""
Poll read model.

Assembles poll aggregates (questions, options and their vote counters)
from the store and renders them in the shape the public site consumes.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from data.database import ElectionDatabase
from data.errors import NotFound
from data.serialization import format_timestamp

logger = logging.getLogger(__name__)


@dataclass
class PollOption:
    key: str
    label: Dict[str, str]
    votes: int

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "label": self.label, "votes": self.votes}


@dataclass
class PollQuestion:
    question: Dict[str, str]
    tooltip: Dict[str, str]
    options: List[PollOption] = field(default_factory=list)

    def find_option(self, option_key: str) -> Optional[PollOption]:
        for option in self.options:
            if option.key == option_key:
                return option
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "tooltip": self.tooltip,
            "options": [option.to_dict() for option in self.options],
        }


@dataclass
class Poll:
    """A poll aggregate with its ordered questions and option counters."""

    poll_id: str
    slug: str
    title: Dict[str, str]
    is_group: bool
    questions: List[PollQuestion] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.poll_id,
            "slug": self.slug,
            "title": self.title,
            "isGroup": self.is_group,
            "questions": [question.to_dict() for question in self.questions],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


class PollRepository:
    """Loads poll aggregates by id or slug."""

    def __init__(self, db: ElectionDatabase):
        self.db = db

    def find(self, poll_id: str) -> Optional[Poll]:
        return self._load("poll_id", poll_id)

    def find_by_slug(self, slug: str) -> Optional[Poll]:
        return self._load("slug", slug)

    def get(self, poll_id: str) -> Poll:
        poll = self.find(poll_id)
        if poll is None:
            raise NotFound("Poll not found")
        return poll

    def get_by_slug(self, slug: str) -> Poll:
        poll = self.find_by_slug(slug)
        if poll is None:
            raise NotFound("Poll not found")
        return poll

    def _load(self, column: str, value: str) -> Optional[Poll]:
        polls = self.db.query(
            f"""
            SELECT poll_id, slug, title_bn, title_en, is_group, created_at, updated_at
            FROM polls
            WHERE {column} = ?
            """,
            [value],
        )
        if polls.empty:
            return None

        row = polls.iloc[0]
        poll = Poll(
            poll_id=row["poll_id"],
            slug=row["slug"],
            title={"bn": row["title_bn"], "en": row["title_en"]},
            is_group=bool(row["is_group"]),
            created_at=format_timestamp(row["created_at"]),
            updated_at=format_timestamp(row["updated_at"]),
        )

        questions = self.db.query(
            """
            SELECT question_index, question_bn, question_en, tooltip_bn, tooltip_en
            FROM poll_questions
            WHERE poll_id = ?
            ORDER BY question_index
            """,
            [poll.poll_id],
        )
        options = self.db.query(
            """
            SELECT question_index, option_key, label_bn, label_en, votes
            FROM poll_options
            WHERE poll_id = ?
            ORDER BY question_index, option_index
            """,
            [poll.poll_id],
        )

        options_by_question: Dict[int, List[PollOption]] = {}
        for option in options.itertuples(index=False):
            options_by_question.setdefault(int(option.question_index), []).append(
                PollOption(
                    key=option.option_key,
                    label={"bn": option.label_bn, "en": option.label_en},
                    votes=int(option.votes),
                )
            )

        for question in questions.itertuples(index=False):
            poll.questions.append(
                PollQuestion(
                    question={"bn": question.question_bn, "en": question.question_en},
                    tooltip={
                        "bn": question.tooltip_bn or "",
                        "en": question.tooltip_en or "",
                    },
                    options=options_by_question.get(int(question.question_index), []),
                )
            )

        return poll
