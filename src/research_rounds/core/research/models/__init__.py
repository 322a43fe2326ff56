"""Research models package.

Re-exports all public symbols so callers can use:
    from research_rounds.core.research.models import X, Y, Z
"""

from research_rounds.core.research.models.citations import CitationResult, extract_domain
from research_rounds.core.research.models.coverage import CoverageReport
from research_rounds.core.research.models.enums import (
    Priority,
    QuestionCategory,
    ResearchDepth,
    RoundState,
    TerminationReason,
)
from research_rounds.core.research.models.questions import (
    STOP_WORDS,
    ResearchQuestion,
    SearchQuery,
    extract_keywords,
)
from research_rounds.core.research.models.session import (
    ResearchResult,
    ResearchSession,
    RoundOutcome,
)

__all__ = [
    # Citations
    "CitationResult",
    "extract_domain",
    # Coverage
    "CoverageReport",
    # Enums
    "Priority",
    "QuestionCategory",
    "ResearchDepth",
    "RoundState",
    "TerminationReason",
    # Questions
    "STOP_WORDS",
    "ResearchQuestion",
    "SearchQuery",
    "extract_keywords",
    # Session
    "ResearchResult",
    "ResearchSession",
    "RoundOutcome",
]
