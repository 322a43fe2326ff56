"""Coverage report model."""

from pydantic import BaseModel, Field


class CoverageReport(BaseModel):
    """How well a citation set covers the expected topical areas.

    ``overall_score`` is the mean of ``area_scores``; structural checks
    (domain diversity, recency) add gap descriptors but do not change the
    score.
    """

    area_scores: dict[str, float] = Field(default_factory=dict)
    gaps: list[str] = Field(default_factory=list)
    overall_score: float = 0.0
    distinct_domains: int = 0
    recent_fraction: float = 0.0
    citation_count: int = 0

    @property
    def has_gaps(self) -> bool:
        return bool(self.gaps)
