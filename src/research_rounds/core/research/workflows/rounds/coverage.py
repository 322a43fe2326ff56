"""Coverage and gap analysis over a citation set.

Coverage is measured against a fixed list of expected topical areas per
question category. Each area scores the fraction of citations whose title
plus content mention the area phrase; areas below the gap threshold become
gap descriptors. Two structural checks (distinct domain count, share of
recently retrieved citations) add further gaps without affecting the
score. Gaps are turned into follow-up search queries through a declarative
keyword-to-suffix table.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Sequence

from research_rounds.config.research import ThresholdConfig
from research_rounds.core.research.models.citations import CitationResult
from research_rounds.core.research.models.coverage import CoverageReport
from research_rounds.core.research.models.enums import Priority, QuestionCategory
from research_rounds.core.research.models.questions import SearchQuery

logger = logging.getLogger(__name__)

# =============================================================================
# Expected areas and gap-to-query table
# =============================================================================

EXPECTED_AREAS: dict[QuestionCategory, tuple[str, ...]] = {
    QuestionCategory.IMPLEMENTATION: ("code examples", "tutorials", "documentation", "best practices"),
    QuestionCategory.PERFORMANCE: ("benchmarks", "optimization", "metrics", "comparison"),
    QuestionCategory.CASE_STUDY: ("real world examples", "success stories", "lessons learned", "applications"),
    QuestionCategory.TECHNICAL: ("specifications", "architecture", "design patterns", "technical details"),
}
DEFAULT_EXPECTED_AREAS: tuple[str, ...] = ("overview", "examples", "analysis", "recommendations")

# First matching keyword wins; order matters where keywords overlap
GAP_QUERY_SUFFIXES: tuple[tuple[str, str], ...] = (
    ("code examples", "code example implementation"),
    ("tutorials", "step by step tutorial"),
    ("benchmarks", "performance benchmark comparison"),
    ("real world examples", "case study real world application"),
    ("specifications", "technical specification documentation"),
    ("recent sources", "2024 2025 latest"),
    ("source diversity", "academic research paper"),
)
DEFAULT_GAP_SUFFIX = "comprehensive guide"

GAP_QUERY_TYPE = "Gap-Fill"


def expected_areas_for(category: Optional[QuestionCategory]) -> tuple[str, ...]:
    if category is None:
        return DEFAULT_EXPECTED_AREAS
    return EXPECTED_AREAS.get(category, DEFAULT_EXPECTED_AREAS)


def suffix_for_gap(gap: str) -> str:
    """Look up the query suffix for a gap descriptor."""
    lowered = gap.lower()
    for keyword, suffix in GAP_QUERY_SUFFIXES:
        if keyword in lowered:
            return suffix
    return DEFAULT_GAP_SUFFIX


def area_coverage(citations: Sequence[CitationResult], area: str) -> float:
    """Fraction of citations whose title+content mention ``area`` (case-insensitive)."""
    if not citations:
        return 0.0
    needle = area.lower()
    hits = sum(1 for c in citations if needle in f"{c.title} {c.content}".lower())
    return hits / len(citations)


class CoverageAnalyzer:
    """Scores topical coverage and structural diversity of citations.

    Args:
        thresholds: Gap, diversity and recency thresholds
        now: Injectable clock returning an aware UTC datetime
    """

    def __init__(
        self,
        thresholds: Optional[ThresholdConfig] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.thresholds = thresholds or ThresholdConfig()
        self._now = now or (lambda: datetime.now(timezone.utc))

    def analyze(
        self,
        citations: Sequence[CitationResult],
        expected_areas: Optional[Sequence[str]] = None,
        *,
        category: Optional[QuestionCategory] = None,
    ) -> CoverageReport:
        """Build a CoverageReport.

        Args:
            citations: Evidence to score
            expected_areas: Explicit areas; defaults to the category's areas
            category: Used to pick areas when ``expected_areas`` is None

        Returns:
            CoverageReport; an empty citation list scores 0.0 with every
            area flagged
        """
        areas = list(expected_areas) if expected_areas is not None else list(expected_areas_for(category))
        t = self.thresholds

        area_scores: dict[str, float] = {}
        gaps: list[str] = []
        for area in areas:
            score = area_coverage(citations, area)
            area_scores[area] = score
            if score < t.area_gap_threshold:
                gaps.append(f"Insufficient coverage of {area}")

        domains = {c.domain for c in citations if c.domain}
        if len(domains) < t.min_distinct_domains:
            gaps.append(f"Limited source diversity (only {len(domains)} domains)")

        recent_fraction = self._recent_fraction(citations)
        if citations and recent_fraction < t.min_recent_fraction:
            gaps.append("Limited recent sources")

        overall = sum(area_scores.values()) / len(area_scores) if area_scores else 0.0

        return CoverageReport(
            area_scores=area_scores,
            gaps=gaps,
            overall_score=overall,
            distinct_domains=len(domains),
            recent_fraction=recent_fraction,
            citation_count=len(citations),
        )

    def _recent_fraction(self, citations: Sequence[CitationResult]) -> float:
        if not citations:
            return 0.0
        cutoff = self._now() - timedelta(days=self.thresholds.recent_window_days)
        recent = 0
        for c in citations:
            retrieved = c.retrieved_at
            if retrieved.tzinfo is None:
                retrieved = retrieved.replace(tzinfo=timezone.utc)
            if retrieved >= cutoff:
                recent += 1
        return recent / len(citations)

    def gap_queries(self, report: CoverageReport, base_query: str) -> list[SearchQuery]:
        """Turn each gap of ``report`` into a medium-priority gap-fill query."""
        queries: list[SearchQuery] = []
        seen: set[str] = set()
        for gap in report.gaps:
            text = f"{base_query} {suffix_for_gap(gap)}"
            if text.lower() in seen:
                continue
            seen.add(text.lower())
            queries.append(
                SearchQuery(
                    text=text,
                    query_type=GAP_QUERY_TYPE,
                    priority=Priority.MEDIUM,
                    rationale=f"Filling research gap: {gap}",
                )
            )
        return queries
