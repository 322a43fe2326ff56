"""Round-based research configuration.

Contains RoundsConfig, the configuration dataclass consumed by the round
controller, plus the frozen sub-configs that group relevance thresholds
and depth-tier budgets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional

from research_rounds.config.parsing import _parse_bool, _parse_enum, _parse_list
from research_rounds.core.errors.config import ConfigValidationError
from research_rounds.core.research.models.enums import ResearchDepth

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThresholdConfig:
    """Relevance, similarity and coverage thresholds.

    Every score floor used while filtering, deduplicating and analyzing
    coverage lives here so a session applies one consistent policy.

    Attributes:
        min_relevance_score: Relevance at or above which a non-allowlisted
            citation is admitted; also the mean-relevance bar for sufficiency
        title_similarity_threshold: Title Jaccard above which two citations
            are duplicates
        min_content_length: Citations with shorter content are dropped
        area_gap_threshold: Area coverage below which the area is a gap
        coverage_threshold: Overall coverage above which a session may stop
        min_distinct_domains: Fewer distinct domains raise a diversity gap
        recent_window_days: Age limit for a citation to count as recent
        min_recent_fraction: Lower recent fractions raise a recency gap
    """

    min_relevance_score: float = 0.6
    title_similarity_threshold: float = 0.8
    min_content_length: int = 150
    area_gap_threshold: float = 0.5
    coverage_threshold: float = 0.8
    min_distinct_domains: int = 3
    recent_window_days: int = 182  # ~6 months
    min_recent_fraction: float = 0.3

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "ThresholdConfig":
        return cls(
            min_relevance_score=float(data.get("min_relevance_score", 0.6)),
            title_similarity_threshold=float(data.get("title_similarity_threshold", 0.8)),
            min_content_length=int(data.get("min_content_length", 150)),
            area_gap_threshold=float(data.get("area_gap_threshold", 0.5)),
            coverage_threshold=float(data.get("coverage_threshold", 0.8)),
            min_distinct_domains=int(data.get("min_distinct_domains", 3)),
            recent_window_days=int(data.get("recent_window_days", 182)),
            min_recent_fraction=float(data.get("min_recent_fraction", 0.3)),
        )


@dataclass(frozen=True)
class DepthTierConfig:
    """Budgets and sufficiency thresholds for one research depth tier."""

    min_sources: int
    insights_per_round: int = 3
    result_limit: int = 15


def _default_depth_tiers() -> Dict[ResearchDepth, DepthTierConfig]:
    return {
        ResearchDepth.BASIC: DepthTierConfig(min_sources=15, result_limit=8),
        ResearchDepth.STANDARD: DepthTierConfig(min_sources=25, result_limit=15),
        ResearchDepth.COMPREHENSIVE: DepthTierConfig(min_sources=35, result_limit=25),
        ResearchDepth.EXPERT: DepthTierConfig(min_sources=50, result_limit=40),
    }


@dataclass
class RoundsConfig:
    """Configuration for round-based research sessions.

    Attributes:
        max_rounds: Maximum plan/search/filter/analyze/decide rounds per session
        max_parallel_searches: Worker lanes, i.e. maximum in-flight searches
        max_sources: Cap on accumulated unique citations per session
        max_questions_per_round: Questions requested from the generator per round
        max_queries_per_question: Search variants expanded from each question
        min_questions_to_proceed: Below this many new questions, template questions are added
        min_sources_for_quality: Below this many citations after all rounds, broad fallback research runs
        search_rate_limit: Minimum seconds between two dispatches on the same lane
        per_query_timeout: Wall-clock budget in seconds for one query including retries
        max_search_attempts: Attempts per query (first try included)
        retry_base_delay: Backoff base in seconds; retry n waits base * 2**n
        retry_max_delay: Upper bound on a single backoff wait in seconds
        inter_round_delay: Pause in seconds between rounds
        research_depth: Depth tier selecting min sources, insights and result limits
        enable_fallback_research: Run broad fallback queries when evidence is thin
        enable_insights: Ask the text generator for a per-question insight
        enable_llm_query_expansion: Ask the text generator for search queries per
            question instead of rule-based suffix variants
        blocked_patterns: Extra url/domain substrings rejected by the quality filter
        search_provider: Search provider name used by the CLI
        tavily_api_key: API key for Tavily (falls back to TAVILY_API_KEY env var)
        log_level: Root log level used by the CLI
        thresholds: Relevance, dedup and coverage thresholds
        depth_tiers: Per-tier budgets
    """

    max_rounds: int = 4
    max_parallel_searches: int = 8
    max_sources: int = 50
    max_questions_per_round: int = 6
    max_queries_per_question: int = 4
    min_questions_to_proceed: int = 2
    min_sources_for_quality: int = 15
    search_rate_limit: float = 0.5  # 500 ms between dispatches on a lane
    per_query_timeout: float = 30.0
    max_search_attempts: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 30.0
    inter_round_delay: float = 0.0
    research_depth: ResearchDepth = ResearchDepth.STANDARD
    enable_fallback_research: bool = True
    enable_insights: bool = True
    enable_llm_query_expansion: bool = False
    blocked_patterns: List[str] = field(default_factory=list)
    search_provider: str = "tavily"
    tavily_api_key: Optional[str] = None
    log_level: str = "INFO"
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    depth_tiers: Dict[ResearchDepth, DepthTierConfig] = field(default_factory=_default_depth_tiers)

    @property
    def depth_tier(self) -> DepthTierConfig:
        """Budgets for the configured research depth."""
        return self.depth_tiers[self.research_depth]

    @property
    def min_relevance_score(self) -> float:
        return self.thresholds.min_relevance_score

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigValidationError: On the first out-of-range value.
        """
        for name in (
            "max_rounds",
            "max_parallel_searches",
            "max_sources",
            "max_questions_per_round",
            "max_queries_per_question",
            "max_search_attempts",
        ):
            if getattr(self, name) < 1:
                raise ConfigValidationError(name, "must be >= 1")
        for name in ("search_rate_limit", "retry_base_delay", "retry_max_delay", "inter_round_delay"):
            if getattr(self, name) < 0:
                raise ConfigValidationError(name, "must be >= 0")
        if self.per_query_timeout <= 0:
            raise ConfigValidationError("per_query_timeout", "must be > 0")
        for name in (
            "min_relevance_score",
            "title_similarity_threshold",
            "area_gap_threshold",
            "coverage_threshold",
            "min_recent_fraction",
        ):
            value = getattr(self.thresholds, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigValidationError(name, f"must be within [0, 1], got {value}")
        if self.research_depth not in self.depth_tiers:
            raise ConfigValidationError("research_depth", f"no tier configured for '{self.research_depth.value}'")

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "RoundsConfig":
        """Create config from TOML dict (typically the [research] section).

        Nested ``[research.thresholds]`` and ``[research.depth_tiers.<tier>]``
        tables override the matching sub-configs. Unknown keys are ignored
        with a warning.

        Args:
            data: Dict from TOML parsing

        Returns:
            RoundsConfig instance
        """
        defaults = cls()
        known = {f.name for f in fields(cls)}
        for key in data:
            if key not in known:
                logger.warning("Ignoring unknown research config key '%s'", key)

        depth_tiers = dict(defaults.depth_tiers)
        for tier_name, tier_data in data.get("depth_tiers", {}).items():
            tier = _parse_enum(ResearchDepth, tier_name, None, "depth_tiers")
            if tier is None:
                continue
            depth_tiers[tier] = replace(
                depth_tiers.get(tier, DepthTierConfig(min_sources=15)),
                **{k: int(v) for k, v in tier_data.items() if k in {"min_sources", "insights_per_round", "result_limit"}},
            )

        return cls(
            max_rounds=int(data.get("max_rounds", defaults.max_rounds)),
            max_parallel_searches=int(data.get("max_parallel_searches", defaults.max_parallel_searches)),
            max_sources=int(data.get("max_sources", defaults.max_sources)),
            max_questions_per_round=int(data.get("max_questions_per_round", defaults.max_questions_per_round)),
            max_queries_per_question=int(data.get("max_queries_per_question", defaults.max_queries_per_question)),
            min_questions_to_proceed=int(data.get("min_questions_to_proceed", defaults.min_questions_to_proceed)),
            min_sources_for_quality=int(data.get("min_sources_for_quality", defaults.min_sources_for_quality)),
            search_rate_limit=float(data.get("search_rate_limit", defaults.search_rate_limit)),
            per_query_timeout=float(data.get("per_query_timeout", defaults.per_query_timeout)),
            max_search_attempts=int(data.get("max_search_attempts", defaults.max_search_attempts)),
            retry_base_delay=float(data.get("retry_base_delay", defaults.retry_base_delay)),
            retry_max_delay=float(data.get("retry_max_delay", defaults.retry_max_delay)),
            inter_round_delay=float(data.get("inter_round_delay", defaults.inter_round_delay)),
            research_depth=_parse_enum(
                ResearchDepth,
                data.get("research_depth", defaults.research_depth),
                defaults.research_depth,
                "research_depth",
            ),
            enable_fallback_research=_parse_bool(data.get("enable_fallback_research", True)),
            enable_insights=_parse_bool(data.get("enable_insights", True)),
            enable_llm_query_expansion=_parse_bool(data.get("enable_llm_query_expansion", False)),
            blocked_patterns=_parse_list(data.get("blocked_patterns")),
            search_provider=str(data.get("search_provider", defaults.search_provider)),
            tavily_api_key=data.get("tavily_api_key"),
            log_level=str(data.get("log_level", defaults.log_level)).upper(),
            thresholds=ThresholdConfig.from_toml_dict(data.get("thresholds", {})),
            depth_tiers=depth_tiers,
        )
