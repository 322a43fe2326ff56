"""Round controller: the top-level research state machine.

A session runs bounded rounds of

    PLANNING → SEARCHING → FILTERING → ANALYZING_COVERAGE → DECIDING

until a termination condition holds, then optionally runs one batch of
broad fallback queries when the evidence is still thin. Rounds run
strictly one after another; only the searches inside a round run
concurrently, through one PriorityScheduler that lives for the whole
session.

Failure containment:
    - A failing search yields no citations (handled by the executor)
    - A round that raises is logged, audited and skipped
    - ``execute_rounds`` always returns a ResearchResult; with no evidence
      at all the result is marked ``degraded``
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from datetime import datetime
from typing import Callable, Optional, Sequence

from research_rounds.config.research import RoundsConfig
from research_rounds.core.errors.research import SessionCancelledError
from research_rounds.core.observability import audit_log, get_audit_logger
from research_rounds.core.research.models.citations import CitationResult
from research_rounds.core.research.models.coverage import CoverageReport
from research_rounds.core.research.models.enums import QuestionCategory, RoundState, TerminationReason
from research_rounds.core.research.models.questions import ResearchQuestion, SearchQuery, extract_keywords
from research_rounds.core.research.models.session import ResearchResult, ResearchSession, RoundOutcome
from research_rounds.core.research.providers.base import SearchProvider, TextGenerationProvider
from research_rounds.core.research.providers.resilience import ClockFunc, SleepFunc
from research_rounds.core.research.workflows.rounds.coverage import CoverageAnalyzer
from research_rounds.core.research.workflows.rounds.dedup import Deduplicator
from research_rounds.core.research.workflows.rounds.executor import SearchExecutor
from research_rounds.core.research.workflows.rounds.expansion import (
    QueryExpander,
    broad_fallback_queries,
    broad_query,
    extract_topics,
    prioritize_queries,
)
from research_rounds.core.research.workflows.rounds.quality import QualityFilter, apply_contextual_boost
from research_rounds.core.research.workflows.rounds.questions import (
    QuerySetGenerator,
    normalize_question_text,
)
from research_rounds.core.research.workflows.rounds.scheduler import PriorityScheduler

logger = logging.getLogger(__name__)

INSIGHT_SOURCE_LIMIT = 5
DIGEST_TITLE_LIMIT = 3


class _SessionTools:
    """Per-session components built from one RoundsConfig."""

    def __init__(
        self,
        controller: "RoundController",
        config: RoundsConfig,
    ):
        t = config.thresholds
        self.executor = SearchExecutor.from_config(
            controller.search_provider,
            config,
            sleep_func=controller._sleep,
            clock=controller._clock,
        )
        self.scheduler = PriorityScheduler(self.executor, config.max_parallel_searches)
        self.generator = QuerySetGenerator(
            controller.text_provider,
            max_questions=config.max_questions_per_round,
            min_questions_to_proceed=config.min_questions_to_proceed,
            max_rounds=config.max_rounds,
        )
        self.expander = QueryExpander(
            controller.text_provider if config.enable_llm_query_expansion else None,
            max_queries_per_question=config.max_queries_per_question,
        )
        self.quality = QualityFilter(t.min_relevance_score, extra_blocked=config.blocked_patterns)
        self.deduplicator = Deduplicator(t.title_similarity_threshold, t.min_content_length)
        self.analyzer = CoverageAnalyzer(t, now=controller._now)


class RoundController:
    """Runs round-based research sessions.

    One controller can run several sessions concurrently; each session
    gets its own scheduler and components. Sessions in flight are listed
    in ``active_sessions`` and can be cancelled with ``cancel``.

    Args:
        search_provider: Backend used for every search
        text_provider: Optional backend for questions, queries and insights;
            without it templates and rule-based expansion are used
        sleep_func: Injectable async sleep (backoff, pacing, inter-round delay)
        clock: Injectable monotonic clock (pacing, elapsed time)
        now: Injectable wall clock for recency checks
    """

    def __init__(
        self,
        search_provider: SearchProvider,
        text_provider: Optional[TextGenerationProvider] = None,
        *,
        sleep_func: Optional[SleepFunc] = None,
        clock: Optional[ClockFunc] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.search_provider = search_provider
        self.text_provider = text_provider
        self._sleep = sleep_func or asyncio.sleep
        self._clock = clock or time.monotonic
        self._now = now
        self.active_sessions: dict[str, ResearchSession] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def cancel(self, session_id: str) -> bool:
        """Request cooperative cancellation of a running session.

        Results that arrive after cancellation are discarded before merge.

        Returns:
            True if the session was active, False otherwise
        """
        session = self.active_sessions.get(session_id)
        if session is None:
            return False
        session.cancel()
        audit_log("session_cancelled", session_id=session_id, round=session.round_number)
        return True

    async def execute_rounds(
        self,
        query: str,
        config: Optional[RoundsConfig] = None,
        *,
        session: Optional[ResearchSession] = None,
    ) -> ResearchResult:
        """Run a full research session for ``query``.

        Args:
            query: The open-ended research query
            config: Session configuration (defaults to ``RoundsConfig()``)
            session: Pre-built session, e.g. to know its id before it starts

        Returns:
            ResearchResult; never raises for provider failures

        Raises:
            ValueError: If ``query`` is blank
            ConfigValidationError: If ``config`` is out of range
        """
        if not query or not query.strip():
            raise ValueError("query must not be empty")
        config = config or RoundsConfig()
        config.validate()

        if session is None:
            session = ResearchSession(query=query.strip(), config=config)
        else:
            session.config = config
        tools = _SessionTools(self, config)
        self.active_sessions[session.id] = session
        started = self._clock()

        audit_log(
            "session_started",
            session_id=session.id,
            query=session.query[:200],
            max_rounds=config.max_rounds,
            depth=config.research_depth.value,
        )
        logger.info("Starting research session %s: %s", session.id, session.query[:80])

        outcomes: list[RoundOutcome] = []
        coverage: Optional[CoverageReport] = None
        try:
            reason = await self._run_round_loop(session, config, tools, outcomes)
            for outcome in reversed(outcomes):
                if outcome.coverage is not None:
                    coverage = outcome.coverage
                    break

            if self._needs_fallback(session, config, reason):
                coverage = await self._run_broad_fallback(session, config, tools) or coverage
        finally:
            tools.scheduler.close()
            self.active_sessions.pop(session.id, None)
            session.state = RoundState.TERMINATED

        if session.cancelled:
            reason = TerminationReason.CANCELLED
        degraded = not session.citations
        if degraded:
            logger.warning("Research session %s produced no usable citations", session.id)

        result = ResearchResult(
            session_id=session.id,
            query=session.query,
            citations=list(session.citations),
            insights=dict(session.insights),
            rounds_executed=session.round_number,
            rounds=outcomes,
            coverage=coverage,
            termination_reason=reason,
            degraded=degraded,
            elapsed_seconds=max(0.0, self._clock() - started),
        )
        get_audit_logger().session_terminated(
            session.id,
            reason.value,
            rounds=result.rounds_executed,
            citations=result.citation_count,
            degraded=degraded,
            elapsed_seconds=round(result.elapsed_seconds, 3),
        )
        logger.info(
            "Research session %s finished after %d rounds (%s): %d citations",
            session.id,
            result.rounds_executed,
            reason.value,
            result.citation_count,
        )
        return result

    # ------------------------------------------------------------------
    # Round loop
    # ------------------------------------------------------------------

    async def _run_round_loop(
        self,
        session: ResearchSession,
        config: RoundsConfig,
        tools: _SessionTools,
        outcomes: list[RoundOutcome],
    ) -> TerminationReason:
        gap_queries: list[SearchQuery] = []
        gap_hints: list[str] = []

        while True:
            if session.cancelled:
                return TerminationReason.CANCELLED
            if session.round_number >= config.max_rounds:
                return TerminationReason.ROUND_BUDGET_EXHAUSTED

            session.round_number += 1
            round_number = session.round_number
            audit_log("round_started", session_id=session.id, round=round_number)

            try:
                outcome = await self._run_round(session, config, tools, gap_queries, gap_hints)
            except asyncio.CancelledError:
                raise
            except SessionCancelledError:
                logger.info("Session %s cancelled during round %d, discarding results", session.id, round_number)
                outcomes.append(RoundOutcome(round_number=round_number, total_citations=len(session.citations)))
                return TerminationReason.CANCELLED
            except Exception as e:
                logger.error("Research round %d failed, skipping: %s", round_number, e, exc_info=True)
                audit_log("round_failed", session_id=session.id, round=round_number, error=str(e))
                outcomes.append(
                    RoundOutcome(
                        round_number=round_number,
                        total_citations=len(session.citations),
                        error=str(e),
                    )
                )
                continue

            outcomes.append(outcome)
            get_audit_logger().round_completed(
                session.id,
                round_number,
                new_citations=outcome.new_citations,
                total_citations=outcome.total_citations,
                queries=outcome.queries_dispatched,
                coverage=outcome.coverage.overall_score if outcome.coverage else None,
            )

            if outcome.coverage is not None:
                gap_hints = list(outcome.coverage.gaps)
                gap_queries = tools.analyzer.gap_queries(outcome.coverage, session.query)

            session.state = RoundState.DECIDING
            reason = self._decide(session, config, outcome)
            if reason is not None:
                return reason

            if config.inter_round_delay > 0:
                await self._sleep(config.inter_round_delay)

    async def _run_round(
        self,
        session: ResearchSession,
        config: RoundsConfig,
        tools: _SessionTools,
        gap_queries: Sequence[SearchQuery],
        gap_hints: Sequence[str],
    ) -> RoundOutcome:
        round_number = session.round_number

        # PLANNING
        session.state = RoundState.PLANNING
        questions = await tools.generator.generate(session, round_number, gap_hints)
        for question in questions:
            session.processed_questions.add(normalize_question_text(question.text))
        session.questions.extend(questions)

        if questions:
            expanded = await asyncio.gather(
                *(tools.expander.expand(q, session.query, session.id) for q in questions)
            )
            planned = [query for batch in expanded for query in batch]
        else:
            logger.info("No new questions for round %d, searching the original query", round_number)
            planned = [broad_query(session.query)]
        queries = prioritize_queries(list(planned) + list(gap_queries))

        # SEARCHING
        session.state = RoundState.SEARCHING
        completed = await tools.scheduler.run(queries)
        raw_count = sum(len(citations) for _, citations in completed)

        if session.cancelled:
            raise SessionCancelledError(session.id)

        outcome = RoundOutcome(
            round_number=round_number,
            questions=[q.text for q in questions],
            queries_dispatched=len(queries),
            raw_citations=raw_count,
            total_citations=len(session.citations),
        )

        # FILTERING
        session.state = RoundState.FILTERING
        by_id = {q.id: q for q in questions}
        new_citations, accepted, origin = self._merge_results(session, config, tools, completed, by_id)
        outcome.accepted_citations = accepted
        outcome.new_citations = len(new_citations)
        outcome.total_citations = len(session.citations)

        # ANALYZING_COVERAGE
        session.state = RoundState.ANALYZING_COVERAGE
        outcome.coverage = tools.analyzer.analyze(
            session.citations,
            category=self._dominant_category(questions),
        )
        session.explored_topics |= extract_topics(new_citations)
        await self._record_insights(session, config, questions, new_citations, origin)
        for question in questions:
            question.mark_researched()

        logger.info(
            "Round %d: %d queries, %d raw, %d accepted, %d new, %d total (coverage %.2f)",
            round_number,
            outcome.queries_dispatched,
            outcome.raw_citations,
            outcome.accepted_citations,
            outcome.new_citations,
            outcome.total_citations,
            outcome.coverage.overall_score,
        )
        return outcome

    def _merge_results(
        self,
        session: ResearchSession,
        config: RoundsConfig,
        tools: _SessionTools,
        completed: Sequence[tuple[SearchQuery, list[CitationResult]]],
        questions_by_id: dict[str, ResearchQuestion],
    ) -> tuple[list[CitationResult], int, dict[str, str]]:
        """Filter, boost and merge one batch of search results into the session.

        Returns:
            (citations appended to the session, citations accepted by the
            quality filter, url -> originating question id)
        """
        candidates: list[CitationResult] = []
        origin: dict[str, str] = {}
        for query, citations in completed:
            question = questions_by_id.get(query.question_id or "")
            category = question.category.value if question else None
            for citation in tools.quality.filter(citations):
                candidates.append(apply_contextual_boost(citation, session.query, category))
                if question is not None:
                    origin.setdefault(citation.url, question.id)

        before = len(session.citations)
        merged = tools.deduplicator.merge(session.citations, candidates, max_total=config.max_sources)
        session.citations = merged.citations
        return session.citations[before:], len(candidates), origin

    @staticmethod
    def _dominant_category(questions: Sequence[ResearchQuestion]) -> Optional[QuestionCategory]:
        if not questions:
            return None
        return Counter(q.category for q in questions).most_common(1)[0][0]

    def _decide(
        self,
        session: ResearchSession,
        config: RoundsConfig,
        outcome: RoundOutcome,
    ) -> Optional[TerminationReason]:
        """Termination check after a completed round; None means continue."""
        tier = config.depth_tier
        t = config.thresholds
        count = len(session.citations)
        min_insights = session.round_number * tier.insights_per_round

        if session.cancelled:
            return TerminationReason.CANCELLED
        if count >= config.max_sources:
            return TerminationReason.MAX_SOURCES
        if (
            outcome.coverage is not None
            and outcome.coverage.overall_score > t.coverage_threshold
            and len(session.insights) >= min_insights
        ):
            return TerminationReason.COVERAGE_SATISFIED
        if count and count >= tier.min_sources and len(session.insights) >= min_insights:
            mean_relevance = sum(c.relevance_score for c in session.citations) / count
            if mean_relevance >= t.min_relevance_score:
                return TerminationReason.SUFFICIENT
        if outcome.new_citations == 0:
            logger.info("Round %d added no new citations, stopping", session.round_number)
            return TerminationReason.STAGNATION
        if session.round_number >= config.max_rounds:
            return TerminationReason.ROUND_BUDGET_EXHAUSTED
        return None

    # ------------------------------------------------------------------
    # Insights
    # ------------------------------------------------------------------

    async def _record_insights(
        self,
        session: ResearchSession,
        config: RoundsConfig,
        questions: Sequence[ResearchQuestion],
        new_citations: Sequence[CitationResult],
        origin: dict[str, str],
    ) -> None:
        for question in questions:
            sources = [c for c in new_citations if origin.get(c.url) == question.id]
            if not sources:
                continue
            session.insights[question.text] = await self._synthesize_insight(session, config, question, sources)

    async def _synthesize_insight(
        self,
        session: ResearchSession,
        config: RoundsConfig,
        question: ResearchQuestion,
        sources: Sequence[CitationResult],
    ) -> str:
        top = sorted(sources, key=lambda c: c.relevance_score, reverse=True)
        if self.text_provider is not None and config.enable_insights:
            prompt = "\n".join(
                [
                    f"Summarize the key insight that answers: {question.text}",
                    "",
                    "SOURCES:",
                    *(f"- {c.title}: {(c.snippet or c.content)[:300]}" for c in top[:INSIGHT_SOURCE_LIMIT]),
                    "",
                    "Answer in 2-3 sentences.",
                ]
            )
            try:
                insight = (await self.text_provider.complete(prompt)).strip()
                if insight:
                    return insight
                logger.debug("Empty insight for '%s', using title digest", question.text[:80])
            except Exception as e:
                logger.warning("Insight generation failed for '%s': %s", question.text[:80], e)
                audit_log(
                    "text_generation_fallback",
                    session_id=session.id,
                    provider=self.text_provider.get_provider_name(),
                    stage="insight",
                    error=str(e),
                )
        titles = "; ".join(c.title for c in top[:DIGEST_TITLE_LIMIT])
        return f"Key sources ({len(sources)}): {titles}"

    # ------------------------------------------------------------------
    # Broad fallback
    # ------------------------------------------------------------------

    @staticmethod
    def _needs_fallback(
        session: ResearchSession,
        config: RoundsConfig,
        reason: TerminationReason,
    ) -> bool:
        return (
            config.enable_fallback_research
            and reason is not TerminationReason.CANCELLED
            and not session.cancelled
            and len(session.citations) < min(config.min_sources_for_quality, config.max_sources)
        )

    async def _run_broad_fallback(
        self,
        session: ResearchSession,
        config: RoundsConfig,
        tools: _SessionTools,
    ) -> Optional[CoverageReport]:
        """Dispatch broad queries once; returns the refreshed coverage, or None on failure."""
        queries = broad_fallback_queries(session.query, extract_keywords(session.query))
        logger.info(
            "Only %d citations after %d rounds, running %d broad fallback queries",
            len(session.citations),
            session.round_number,
            len(queries),
        )
        try:
            session.state = RoundState.SEARCHING
            completed = await tools.scheduler.run(queries)
            if session.cancelled:
                return None
            session.state = RoundState.FILTERING
            added, _, _ = self._merge_results(session, config, tools, completed, {})
            session.explored_topics |= extract_topics(added)
            logger.info("Broad fallback added %d citations", len(added))
            session.state = RoundState.ANALYZING_COVERAGE
            return tools.analyzer.analyze(session.citations)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Broad fallback research failed: %s", e, exc_info=True)
            audit_log("round_failed", session_id=session.id, stage="broad_fallback", error=str(e))
            return None
