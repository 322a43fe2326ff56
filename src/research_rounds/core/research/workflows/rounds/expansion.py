"""Query expansion: research questions to concrete search queries.

Rule-based expansion adds category-specific suffix variants to the
question text. Optionally the text generation provider proposes queries
in ``QUERY:`` blocks; those are parsed, de-duplicated, ordered by priority
and capped, with a small fixed fallback set when nothing usable comes
back.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional, Sequence

from research_rounds.core.errors.research import TextGenerationError
from research_rounds.core.observability import audit_log
from research_rounds.core.research.models.citations import CitationResult
from research_rounds.core.research.models.enums import Priority, QuestionCategory
from research_rounds.core.research.models.questions import (
    STOP_WORDS,
    ResearchQuestion,
    SearchQuery,
    extract_keywords,
)
from research_rounds.core.research.providers.base import TextGenerationProvider
from research_rounds.core.research.workflows.rounds.scheduler import order_by_priority

logger = logging.getLogger(__name__)

CATEGORY_QUERY_SUFFIXES: dict[QuestionCategory, tuple[str, ...]] = {
    QuestionCategory.IMPLEMENTATION: ("implementation guide", "step by step tutorial", "code examples"),
    QuestionCategory.PERFORMANCE: ("performance analysis", "benchmark results", "optimization techniques"),
    QuestionCategory.CASE_STUDY: ("case study examples", "real world applications", "success stories"),
    QuestionCategory.TECHNICAL: ("technical specification", "architecture design", "technical documentation"),
    QuestionCategory.ANALYSIS: ("comparative analysis", "pros and cons", "evaluation criteria"),
}
DEFAULT_QUERY_SUFFIXES: tuple[str, ...] = ("comprehensive overview", "complete guide", "fundamentals")

BROAD_QUERY_SUFFIXES: tuple[str, ...] = ("overview", "guide", "tutorial", "examples", "best practices")
MAX_KEYWORD_QUERIES = 3
MIN_TOPIC_LENGTH = 5

_QUERY_FIELD = re.compile(
    r"^\s*[-*•]?\s*\**\s*(query|type|priority|expected_sources|expected sources|rationale)\s*\**\s*:\s*(.*)$",
    re.IGNORECASE,
)
_TOPIC_STRIP = re.compile(r"[^a-z0-9]")


def _unique_by_text(queries: Iterable[SearchQuery]) -> list[SearchQuery]:
    seen: set[str] = set()
    unique = []
    for query in queries:
        key = query.text.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(query)
    return unique


def prioritize_queries(queries: Iterable[SearchQuery], limit: Optional[int] = None) -> list[SearchQuery]:
    """De-duplicate by lowercased text, order HIGH→LOW (stable) and cap at ``limit``."""
    ordered = order_by_priority(_unique_by_text(queries))
    return ordered if limit is None else ordered[:limit]


def expand_question(
    question: ResearchQuestion,
    original_query: str,
    max_queries: int = 4,
) -> list[SearchQuery]:
    """Rule-based search variants for one question.

    The question text itself comes first, then the category's suffix
    variants, then the original query prefixed to the question when the
    question does not already mention it.
    """
    suffixes = CATEGORY_QUERY_SUFFIXES.get(question.category, DEFAULT_QUERY_SUFFIXES)
    texts = [question.text] + [f"{question.text} {suffix}" for suffix in suffixes]
    if original_query and original_query.lower() not in question.text.lower():
        texts.append(f"{original_query} {question.text}")

    queries = [
        SearchQuery(
            text=text,
            query_type="Primary" if i == 0 else "Variant",
            priority=question.priority,
            rationale=question.rationale,
            question_id=question.id,
        )
        for i, text in enumerate(texts)
    ]
    return _unique_by_text(queries)[:max_queries]


def parse_query_blocks(raw: Optional[str], question_id: Optional[str] = None) -> list[SearchQuery]:
    """Parse ``QUERY:/TYPE:/PRIORITY:/EXPECTED_SOURCES:/RATIONALE:`` blocks."""
    if not raw:
        return []

    blocks: list[dict[str, str]] = []
    for line in raw.splitlines():
        match = _QUERY_FIELD.match(line)
        if not match:
            continue
        key = match.group(1).lower().replace(" ", "_")
        value = match.group(2).strip().strip("*").strip().strip('"')
        if key == "query":
            blocks.append({"query": value})
        elif blocks and value:
            blocks[-1][key] = value

    queries = []
    for block in blocks:
        text = block.get("query", "")
        if not text:
            continue
        try:
            priority = Priority.parse(block.get("priority", "medium"))
        except ValueError:
            logger.debug("Unknown query priority '%s', using medium", block.get("priority"))
            priority = Priority.MEDIUM
        queries.append(
            SearchQuery(
                text=text,
                query_type=block.get("type", "Primary"),
                priority=priority,
                rationale=block.get("rationale", ""),
                expected_sources=block.get("expected_sources"),
                question_id=question_id,
            )
        )
    return queries


def fallback_queries(base: str, question_id: Optional[str] = None) -> list[SearchQuery]:
    return [
        SearchQuery(text=base, query_type="Fallback", priority=Priority.HIGH, question_id=question_id),
        SearchQuery(text=f"{base} guide", query_type="Fallback", priority=Priority.MEDIUM, question_id=question_id),
        SearchQuery(text=f"{base} example", query_type="Fallback", priority=Priority.MEDIUM, question_id=question_id),
    ]


def broad_query(original_query: str) -> SearchQuery:
    """Single query against the original text, used when a round has no new questions."""
    return SearchQuery(
        text=original_query,
        query_type="Broad",
        priority=Priority.HIGH,
        rationale="No new questions for this round",
    )


def broad_fallback_queries(original_query: str, topics: Sequence[str] = ()) -> list[SearchQuery]:
    """Broad queries used when the rounds left the session short of sources."""
    queries = [
        SearchQuery(
            text=f"{original_query} {suffix}",
            query_type="Broad-Fallback",
            priority=Priority.MEDIUM,
            rationale="Broad search to reach the minimum source count",
        )
        for suffix in BROAD_QUERY_SUFFIXES
    ]
    keywords = list(topics) or extract_keywords(original_query)
    for keyword in keywords[:MAX_KEYWORD_QUERIES]:
        queries.append(
            SearchQuery(
                text=f"{keyword} {original_query}",
                query_type="Broad-Fallback",
                priority=Priority.LOW,
                rationale=f"Keyword-focused search on '{keyword}'",
            )
        )
    return _unique_by_text(queries)


def extract_topics(citations: Iterable[CitationResult]) -> set[str]:
    """Title words longer than 4 characters that are not stop words."""
    topics: set[str] = set()
    for citation in citations:
        for word in citation.title.lower().split():
            clean = _TOPIC_STRIP.sub("", word)
            if len(clean) >= MIN_TOPIC_LENGTH and clean not in STOP_WORDS:
                topics.add(clean)
    return topics


class QueryExpander:
    """Expands questions into search queries.

    With ``text_provider`` set, the provider is asked for query blocks
    first; anything that fails or parses to nothing uses
    ``fallback_queries``. Without a provider the rule-based
    ``expand_question`` variants are used.
    """

    def __init__(
        self,
        text_provider: Optional[TextGenerationProvider] = None,
        *,
        max_queries_per_question: int = 4,
    ):
        self.text_provider = text_provider
        self.max_queries_per_question = max_queries_per_question

    def build_prompt(self, question: ResearchQuestion, original_query: str) -> str:
        return "\n".join(
            [
                f'Generate up to {self.max_queries_per_question} web search queries for the research question: "{question.text}"',
                f'Overall research topic: "{original_query}"',
                f"Question category: {question.category.value}",
                "",
                "FORMAT EACH QUERY AS:",
                "QUERY: [search string]",
                "TYPE: [Primary/Technical/Academic/Practical]",
                "PRIORITY: [High/Medium/Low]",
                "EXPECTED_SOURCES: [kind of sources]",
                "RATIONALE: [why this query]",
            ]
        )

    async def expand(
        self,
        question: ResearchQuestion,
        original_query: str,
        session_id: Optional[str] = None,
    ) -> list[SearchQuery]:
        if self.text_provider is None:
            return expand_question(question, original_query, self.max_queries_per_question)

        provider_name = self.text_provider.get_provider_name()
        try:
            raw = await self.text_provider.complete(self.build_prompt(question, original_query))
            queries = prioritize_queries(
                parse_query_blocks(raw, question_id=question.id),
                self.max_queries_per_question,
            )
            if not queries:
                raise TextGenerationError(provider_name, "no queries could be parsed from completion")
        except Exception as e:
            logger.warning("Query generation failed for '%s': %s", question.text[:80], e)
            audit_log(
                "text_generation_fallback",
                session_id=session_id,
                provider=provider_name,
                stage="query_expansion",
                error=str(e),
            )
            queries = []

        if not queries:
            queries = fallback_queries(question.text, question_id=question.id)
        return queries
