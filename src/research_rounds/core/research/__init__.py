"""Round-based research: models, providers and workflows.

The workflow package is imported on demand::

    from research_rounds.core.research.workflows.rounds import RoundController
"""

from research_rounds.core.research.models import (
    CitationResult,
    CoverageReport,
    Priority,
    QuestionCategory,
    ResearchDepth,
    ResearchQuestion,
    ResearchResult,
    ResearchSession,
    RoundOutcome,
    SearchQuery,
    TerminationReason,
)
from research_rounds.core.research.providers import (
    SearchProvider,
    TavilySearchProvider,
    TextGenerationProvider,
)

__all__ = [
    # Models
    "CitationResult",
    "CoverageReport",
    "Priority",
    "QuestionCategory",
    "ResearchDepth",
    "ResearchQuestion",
    "ResearchResult",
    "ResearchSession",
    "RoundOutcome",
    "SearchQuery",
    "TerminationReason",
    # Providers
    "SearchProvider",
    "TavilySearchProvider",
    "TextGenerationProvider",
]
