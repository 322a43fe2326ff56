"""Citation quality filtering and contextual relevance adjustment.

Admission is a two-tier heuristic: a blacklist of low-authority url/domain
substrings is a hard veto; otherwise a citation is admitted when it comes
from an authority allowlist or when its relevance score clears the
configured floor.
"""

import logging
from typing import Iterable, Optional, Sequence

from research_rounds.core.research.models.citations import CitationResult

logger = logging.getLogger(__name__)

# Substrings of url/domain that veto a citation outright
BLACKLISTED_PATTERNS: tuple[str, ...] = (
    "ads",
    "spam",
    "clickbait",
    "pinterest",
    "instagram",
    "facebook",
    "twitter",
    "tiktok",
    "reddit.com/r/",
    "quora",
)

# Substrings of url/domain that admit a citation regardless of relevance
AUTHORITATIVE_PATTERNS: tuple[str, ...] = (
    ".edu",
    ".gov",
    ".org",
    "wikipedia",
    "github",
    "stackoverflow",
    "medium",
    "docs.",
    "blog.",
    "research",
    "arxiv",
    "ieee",
)

QUERY_MATCH_BOOST = 0.1
CATEGORY_MATCH_BOOST = 0.05


def _matches_any(citation: CitationResult, patterns: Iterable[str]) -> Optional[str]:
    url = citation.url.lower()
    domain = citation.domain.lower()
    for pattern in patterns:
        if pattern in url or pattern in domain:
            return pattern
    return None


def is_blacklisted(citation: CitationResult) -> bool:
    return _matches_any(citation, BLACKLISTED_PATTERNS) is not None


def is_authoritative(citation: CitationResult) -> bool:
    return _matches_any(citation, AUTHORITATIVE_PATTERNS) is not None


class QualityFilter:
    """Admits or rejects individual citations.

    Args:
        min_relevance_score: Relevance at or above which a citation that is
            neither blacklisted nor allowlisted is admitted
        extra_blocked: Additional url/domain substrings to veto
    """

    def __init__(self, min_relevance_score: float = 0.6, extra_blocked: Sequence[str] = ()):
        self.min_relevance_score = min_relevance_score
        self.blocked_patterns = BLACKLISTED_PATTERNS + tuple(p.lower() for p in extra_blocked if p)

    def accept(self, citation: CitationResult) -> bool:
        vetoed_by = _matches_any(citation, self.blocked_patterns)
        if vetoed_by is not None:
            logger.debug("Rejected %s (blacklisted pattern '%s')", citation.url, vetoed_by)
            return False
        if is_authoritative(citation):
            return True
        return citation.relevance_score >= self.min_relevance_score

    def filter(self, citations: Iterable[Optional[CitationResult]]) -> list[CitationResult]:
        """Keep admitted citations in their original order; None entries are skipped."""
        return [c for c in citations if c is not None and self.accept(c)]


def apply_contextual_boost(
    citation: CitationResult,
    original_query: str,
    category: Optional[str] = None,
) -> CitationResult:
    """Return a copy whose relevance reflects overlap with the session context.

    +0.1 when the content contains the original query, +0.05 when it
    contains the category label; the score stays capped at 1.0.
    """
    content = citation.content.lower()
    boost = 0.0
    if original_query and original_query.lower() in content:
        boost += QUERY_MATCH_BOOST
    if category and category.lower() in content:
        boost += CATEGORY_MATCH_BOOST
    if not boost:
        return citation
    return citation.model_copy(update={"relevance_score": min(1.0, citation.relevance_score + boost)})
