"""Citation deduplication by URL and near-duplicate title.

Two citations are the same logical item when their URLs are equal or when
the Jaccard similarity of their canonical title token sets exceeds the
configured threshold. Titles are tokenized on whitespace, lowercased,
stripped of surrounding punctuation, and each token is canonicalized
(common abbreviations expanded, trailing plural ``s`` folded) so that
"Intro to Kubernetes Pods" and "Introduction to Kubernetes Pod" compare
equal.

Output order follows first occurrence. When a later copy of an item has a
higher relevance score it takes over the earlier copy's slot, unless the
swap would make that slot collide with a different retained item.
"""

from __future__ import annotations

import logging
import string
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from research_rounds.core.errors.research import CitationValidationError
from research_rounds.core.research.models.citations import CitationResult

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.8
DEFAULT_MIN_CONTENT_LENGTH = 150

_TOKEN_ALIASES: dict[str, str] = {
    "intro": "introduction",
    "docs": "documentation",
    "doc": "documentation",
    "config": "configuration",
    "perf": "performance",
    "impl": "implementation",
    "k8s": "kubernetes",
    "db": "database",
    "app": "application",
    "apps": "application",
    "vs": "versus",
    "dev": "development",
    "env": "environment",
    "auth": "authentication",
    "repo": "repository",
}

_STRIP_CHARS = string.punctuation + "‘’“”"


def _canonical_token(token: str) -> str:
    token = token.strip(_STRIP_CHARS).lower()
    token = _TOKEN_ALIASES.get(token, token)
    if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
        token = token[:-1]
    return token


def title_tokens(title: Optional[str]) -> frozenset[str]:
    """Canonical token set of a title."""
    if not title:
        return frozenset()
    return frozenset(t for t in (_canonical_token(w) for w in title.split()) if t)


def jaccard(a: frozenset[str], b: frozenset[str]) -> float:
    """Jaccard similarity of two sets; 0.0 when both are empty."""
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def title_similarity(title_a: Optional[str], title_b: Optional[str]) -> float:
    return jaccard(title_tokens(title_a), title_tokens(title_b))


@dataclass
class MergeResult:
    """Outcome of merging incoming citations into a retained list."""

    citations: list[CitationResult]
    added: int = 0
    replaced: int = 0
    dropped: int = 0


class Deduplicator:
    """Removes invalid, thin and duplicate citations.

    Args:
        similarity_threshold: Title Jaccard above which two citations are duplicates
        min_content_length: Citations with shorter content are dropped
    """

    def __init__(
        self,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        min_content_length: int = DEFAULT_MIN_CONTENT_LENGTH,
    ):
        self.similarity_threshold = similarity_threshold
        self.min_content_length = min_content_length

    def validate(self, citation: Optional[CitationResult]) -> CitationResult:
        """Return ``citation`` if it may be retained.

        Raises:
            CitationValidationError: If it is missing, lacks a title or url,
                or its content is shorter than ``min_content_length``.
        """
        if citation is None:
            raise CitationValidationError("missing citation")
        if not citation.is_valid:
            raise CitationValidationError("blank title or url", citation.url or None)
        if len(citation.content) < self.min_content_length:
            raise CitationValidationError(
                f"content shorter than {self.min_content_length} characters", citation.url
            )
        return citation

    def is_usable(self, citation: Optional[CitationResult]) -> bool:
        """Validation gate applied before any duplicate check."""
        try:
            self.validate(citation)
        except CitationValidationError as e:
            logger.debug("Dropping citation: %s", e)
            return False
        return True

    def dedupe(self, citations: Iterable[Optional[CitationResult]]) -> list[CitationResult]:
        """Drop unusable citations and collapse duplicates.

        Idempotent: ``dedupe(dedupe(x)) == dedupe(x)``.
        """
        return self.merge([], citations).citations

    def merge(
        self,
        existing: Sequence[CitationResult],
        incoming: Iterable[Optional[CitationResult]],
        max_total: Optional[int] = None,
    ) -> MergeResult:
        """Merge ``incoming`` into an already-deduplicated ``existing`` list.

        The result never has fewer entries than ``existing``: existing items
        are only ever upgraded in place, never removed.

        Args:
            existing: Retained citations (assumed duplicate-free)
            incoming: Candidate citations, in arrival order
            max_total: Optional cap on the merged length; new items beyond it
                are dropped (in-place upgrades still apply)

        Returns:
            MergeResult with the merged list and counters
        """
        kept: list[CitationResult] = list(existing)
        kept_tokens: list[frozenset[str]] = [title_tokens(c.title) for c in kept]
        url_index: dict[str, int] = {c.url: i for i, c in enumerate(kept)}
        result = MergeResult(citations=kept)

        for citation in incoming:
            if citation is None or not self.is_usable(citation):
                result.dropped += 1
                continue
            tokens = title_tokens(citation.title)
            slot = url_index.get(citation.url)
            if slot is None:
                slot = self._find_similar(tokens, kept_tokens)

            if slot is None:
                if max_total is not None and len(kept) >= max_total:
                    result.dropped += 1
                    continue
                url_index[citation.url] = len(kept)
                kept.append(citation)
                kept_tokens.append(tokens)
                result.added += 1
                continue

            current = kept[slot]
            if citation.relevance_score > current.relevance_score and self._can_replace(
                slot, citation, tokens, kept_tokens, url_index
            ):
                del url_index[current.url]
                url_index[citation.url] = slot
                kept[slot] = citation
                kept_tokens[slot] = tokens
                result.replaced += 1
            else:
                result.dropped += 1

        if result.replaced or result.dropped:
            logger.debug(
                "Merged citations: %d added, %d upgraded, %d dropped (%d retained)",
                result.added,
                result.replaced,
                result.dropped,
                len(kept),
            )
        return result

    def _find_similar(
        self,
        tokens: frozenset[str],
        kept_tokens: Sequence[frozenset[str]],
        skip: Optional[int] = None,
    ) -> Optional[int]:
        for i, other in enumerate(kept_tokens):
            if i != skip and jaccard(tokens, other) > self.similarity_threshold:
                return i
        return None

    def _can_replace(
        self,
        slot: int,
        citation: CitationResult,
        tokens: frozenset[str],
        kept_tokens: Sequence[frozenset[str]],
        url_index: dict[str, int],
    ) -> bool:
        url_slot = url_index.get(citation.url)
        if url_slot is not None and url_slot != slot:
            return False
        return self._find_similar(tokens, kept_tokens, skip=slot) is None


def dedupe(
    citations: Iterable[Optional[CitationResult]],
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    min_content_length: int = DEFAULT_MIN_CONTENT_LENGTH,
) -> list[CitationResult]:
    """Module-level convenience wrapper around ``Deduplicator.dedupe``."""
    return Deduplicator(similarity_threshold, min_content_length).dedupe(citations)
