"""Research question and search query models."""

import re
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from research_rounds.core.research.models.enums import Priority, QuestionCategory

STOP_WORDS: frozenset[str] = frozenset(
    {
        "the", "and", "for", "are", "but", "not", "you", "all", "can", "had",
        "her", "was", "one", "our", "out", "day", "get", "has", "him", "his",
        "how", "its", "may", "new", "now", "old", "see", "two", "way", "who",
        "with", "that", "this", "from", "they", "know", "want", "been", "good",
        "much", "some", "time", "very", "when", "come", "here", "just", "like",
        "long", "make", "many", "over", "such", "take", "than", "them", "well",
        "will", "what", "which", "where", "does", "into", "about",
    }
)

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def extract_keywords(text: str, min_length: int = 4) -> list[str]:
    """Extract distinct keywords from free text, preserving first-seen order.

    Words are stripped of non-alphanumeric characters and lowercased; words
    shorter than ``min_length`` or in ``STOP_WORDS`` are skipped.
    """
    seen: dict[str, None] = {}
    for word in text.split():
        clean = _NON_ALNUM.sub("", word).lower()
        if len(clean) >= min_length and clean not in STOP_WORDS:
            seen.setdefault(clean, None)
    return list(seen)


class ResearchQuestion(BaseModel):
    """A research question planned for one round.

    Questions are created by the query set generator each round and marked
    researched once their round completes. They are never deleted from the
    session.
    """

    id: str = Field(default_factory=lambda: f"rq-{uuid4().hex[:8]}")
    text: str = Field(..., min_length=1, description="The question text")
    category: QuestionCategory = Field(default=QuestionCategory.GENERAL)
    priority: Priority = Field(default=Priority.MEDIUM)
    rationale: str = Field(default="", description="Why this question is worth researching")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    researched: bool = False

    def keywords(self) -> list[str]:
        """Keywords of the question: words longer than 3 characters, no stop words."""
        return extract_keywords(self.text)

    def mark_researched(self) -> None:
        self.researched = True


class SearchQuery(BaseModel):
    """A concrete search string dispatched to the search provider.

    Derived from a ResearchQuestion (or from a coverage gap / fallback) and
    scheduled by priority tier.
    """

    id: str = Field(default_factory=lambda: f"sq-{uuid4().hex[:8]}")
    text: str = Field(..., min_length=1, description="The search string")
    query_type: str = Field(default="Primary", description="Label such as Primary, Gap-Fill, Fallback")
    priority: Priority = Field(default=Priority.MEDIUM)
    rationale: str = Field(default="")
    expected_sources: Optional[str] = Field(
        default=None,
        description="Kind of sources the query is expected to surface",
    )
    question_id: Optional[str] = Field(
        default=None,
        description="ID of the ResearchQuestion this query was expanded from",
    )
    metadata: dict[str, Any] = Field(default_factory=dict)
