"""Round-based research workflow.

Components, leaves first:
    - SearchExecutor: one paced, retried, time-bounded search per query
    - Deduplicator: URL and near-duplicate-title merging
    - QualityFilter: blacklist/allowlist/relevance admission
    - CoverageAnalyzer: topical coverage, diversity and recency gaps
    - PriorityScheduler: priority-ordered dispatch over fixed worker lanes
    - QuerySetGenerator / QueryExpander: questions and search queries
    - RoundController: the state machine tying them together
"""

from research_rounds.core.research.workflows.rounds.controller import RoundController
from research_rounds.core.research.workflows.rounds.coverage import CoverageAnalyzer
from research_rounds.core.research.workflows.rounds.dedup import Deduplicator, MergeResult, dedupe
from research_rounds.core.research.workflows.rounds.executor import LanePacer, SearchExecutor
from research_rounds.core.research.workflows.rounds.expansion import QueryExpander
from research_rounds.core.research.workflows.rounds.quality import QualityFilter
from research_rounds.core.research.workflows.rounds.questions import QuerySetGenerator
from research_rounds.core.research.workflows.rounds.scheduler import PriorityScheduler

__all__ = [
    "CoverageAnalyzer",
    "Deduplicator",
    "LanePacer",
    "MergeResult",
    "PriorityScheduler",
    "QualityFilter",
    "QueryExpander",
    "QuerySetGenerator",
    "RoundController",
    "SearchExecutor",
    "dedupe",
]
