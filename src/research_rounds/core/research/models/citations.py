"""Citation model for retrieved evidence."""

from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator


def extract_domain(url: str) -> str:
    """Extract the lowercased host of a URL without a leading ``www.``.

    Returns an empty string when the URL has no parseable host.
    """
    if not url:
        return ""
    try:
        netloc = urlparse(url).netloc.lower()
    except ValueError:
        return ""
    if netloc.startswith("www."):
        netloc = netloc[4:]
    return netloc


class CitationResult(BaseModel):
    """A single retrieved source.

    Created by the search executor. May be dropped by the quality filter or
    the deduplicator; otherwise it persists for the rest of the session.
    The relevance score is clamped into [0, 1] on construction and on
    assignment.
    """

    model_config = {"validate_assignment": True}

    title: str = ""
    url: str = ""
    domain: str = ""
    snippet: Optional[str] = None
    content: str = ""
    relevance_score: float = 0.0
    retrieved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    published_at: Optional[datetime] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("relevance_score", mode="before")
    @classmethod
    def _clamp_relevance(cls, value: Any) -> float:
        if value is None:
            return 0.0
        return max(0.0, min(1.0, float(value)))

    @field_validator("title", "url", "content", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @model_validator(mode="after")
    def _derive_domain(self) -> "CitationResult":
        if not self.domain and self.url:
            # object.__setattr__ avoids re-entering validation on assignment
            object.__setattr__(self, "domain", extract_domain(self.url))
        return self

    @property
    def is_valid(self) -> bool:
        """A citation is valid when it has a non-blank title and url."""
        return bool(self.title.strip()) and bool(self.url.strip())

    @property
    def has_content(self) -> bool:
        return bool(self.content.strip())
