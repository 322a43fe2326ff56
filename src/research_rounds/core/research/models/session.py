"""Session, round outcome and result models for round-based research."""

import logging
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from research_rounds.core.research.models.citations import CitationResult
from research_rounds.core.research.models.coverage import CoverageReport
from research_rounds.core.research.models.enums import RoundState, TerminationReason
from research_rounds.core.research.models.questions import ResearchQuestion

logger = logging.getLogger(__name__)


class RoundOutcome(BaseModel):
    """What a single research round did.

    A round that raised during dispatch is recorded with ``error`` set and
    zero counts; the session continues with the next round.
    """

    round_number: int
    questions: list[str] = Field(default_factory=list)
    queries_dispatched: int = 0
    raw_citations: int = 0
    accepted_citations: int = 0
    new_citations: int = 0
    total_citations: int = 0
    coverage: Optional[CoverageReport] = None
    error: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.error is not None


class ResearchSession(BaseModel):
    """Mutable accumulator for one research session.

    Only the controller mutates a session, and only between rounds, so no
    locking is needed here. Citation URLs are unique within
    ``citations``.
    """

    id: str = Field(default_factory=lambda: f"rs-{uuid4().hex[:12]}")
    query: str = Field(..., min_length=1)
    config: Any = Field(default=None, exclude=True, description="RoundsConfig for this session")
    citations: list[CitationResult] = Field(default_factory=list)
    insights: dict[str, str] = Field(default_factory=dict, description="Insight text keyed by question")
    explored_topics: set[str] = Field(default_factory=set)
    processed_questions: set[str] = Field(
        default_factory=set,
        description="Normalized text of every question already planned",
    )
    questions: list[ResearchQuestion] = Field(default_factory=list)
    round_number: int = 0
    state: RoundState = RoundState.PLANNING
    cancelled: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def cancel(self) -> None:
        if not self.cancelled:
            logger.info("Research session %s marked cancelled", self.id)
        self.cancelled = True


class ResearchResult(BaseModel):
    """Final result of a research session.

    A result is always produced. ``degraded`` is set when the session ended
    with no usable evidence at all.
    """

    session_id: str
    query: str
    citations: list[CitationResult] = Field(default_factory=list)
    insights: dict[str, str] = Field(default_factory=dict)
    rounds_executed: int = 0
    rounds: list[RoundOutcome] = Field(default_factory=list)
    coverage: Optional[CoverageReport] = None
    termination_reason: TerminationReason = TerminationReason.ROUND_BUDGET_EXHAUSTED
    degraded: bool = False
    elapsed_seconds: float = 0.0
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def citation_count(self) -> int:
        return len(self.citations)
