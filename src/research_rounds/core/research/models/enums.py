"""Shared enums for the round-based research workflow."""

from enum import Enum


class Priority(str, Enum):
    """Priority tier of a research question or search query.

    Ordering is total: HIGH > MEDIUM > LOW. Use ``rank`` for comparisons
    and ``Priority.parse`` for free-text labels coming from a model.
    """

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANKS[self]

    @classmethod
    def parse(cls, label: str) -> "Priority":
        """Parse a free-text label such as ``"High"`` or ``" low "``.

        Raises:
            ValueError: If the label is not a known tier.
        """
        return cls(label.strip().lower())


_PRIORITY_RANKS = {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}


class QuestionCategory(str, Enum):
    """Topical category of a research question.

    The category selects the expected coverage areas and the query
    expansion suffixes used for a question.
    """

    IMPLEMENTATION = "implementation"
    PERFORMANCE = "performance"
    ANALYSIS = "analysis"
    CASE_STUDY = "case-study"
    TECHNICAL = "technical"
    OVERVIEW = "overview"
    GENERAL = "general"

    @classmethod
    def parse(cls, label: str) -> "QuestionCategory":
        """Parse a free-text label such as ``"Case-Study"`` or ``"case study"``.

        Raises:
            ValueError: If the label is not a known category.
        """
        normalized = label.strip().lower().replace("_", "-").replace(" ", "-")
        return cls(normalized)


class ResearchDepth(str, Enum):
    """Depth tier controlling source budgets and sufficiency thresholds."""

    BASIC = "basic"
    STANDARD = "standard"
    COMPREHENSIVE = "comprehensive"
    EXPERT = "expert"


class RoundState(str, Enum):
    """States of the round controller state machine."""

    PLANNING = "planning"
    SEARCHING = "searching"
    FILTERING = "filtering"
    ANALYZING_COVERAGE = "analyzing_coverage"
    DECIDING = "deciding"
    TERMINATED = "terminated"


class TerminationReason(str, Enum):
    """Why a research session stopped."""

    MAX_SOURCES = "max_sources"  # Source budget reached
    COVERAGE_SATISFIED = "coverage_satisfied"  # Coverage and insight thresholds met
    SUFFICIENT = "sufficient"  # Depth-tier sufficiency met
    STAGNATION = "stagnation"  # A round added no new citations
    ROUND_BUDGET_EXHAUSTED = "round_budget_exhausted"
    CANCELLED = "cancelled"
