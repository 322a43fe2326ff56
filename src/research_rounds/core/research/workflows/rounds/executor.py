"""Search executor: one paced, retried, time-bounded search per query.

Each attempt runs while holding a worker lane handed out by the scheduler.
Before calling the provider the attempt waits until the lane's minimum
inter-request interval has elapsed since that lane's previous dispatch.
The lane is released before any backoff sleep, so a retrying query never
occupies a worker slot while it waits; the retry re-queues for a lane like
any other submission.

Retry policy:
    - Errors the provider classifies as non-retryable end the query at once
    - Other errors, and empty results, back off ``base_delay * 2**n``
    - After an empty result the next attempt rewrites the query
      (" tutorial", then " guide", then the terms AND-joined)
    - The whole query, retries included, is bounded by a timeout whose
      clock starts when the query first gets a lane; time spent queued
      behind other queries is not charged

A query that times out or runs out of attempts yields an empty list.
Nothing here raises for provider failures.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncContextManager, AsyncIterator, Callable, Optional, Union

from research_rounds.core.observability import audit_log
from research_rounds.core.research.models.citations import CitationResult
from research_rounds.core.research.models.questions import SearchQuery
from research_rounds.core.research.providers.base import SearchProvider
from research_rounds.core.research.providers.resilience import (
    ClockFunc,
    RetryPolicy,
    SleepFunc,
    compute_backoff_delay,
)

if TYPE_CHECKING:
    from research_rounds.config.research import RoundsConfig

logger = logging.getLogger(__name__)

LaneAcquirer = Callable[[], AsyncContextManager[int]]

_EMPTY_RESULT_REWRITES: tuple[Callable[[str], str], ...] = (
    lambda q: f"{q} tutorial",
    lambda q: f"{q} guide",
    lambda q: " AND ".join(q.split()),
)


def rewrite_query(query: str, empty_count: int) -> str:
    """Query to use after ``empty_count`` + 1 consecutive empty results."""
    if empty_count < len(_EMPTY_RESULT_REWRITES):
        return _EMPTY_RESULT_REWRITES[empty_count](query)
    return query


class _QueryBudgetExhausted(Exception):
    """A query used up its per-query time budget."""


@asynccontextmanager
async def _single_lane() -> AsyncIterator[int]:
    yield 0


class LanePacer:
    """Per-lane minimum interval between dispatches.

    ``_last_dispatch`` maps lane id to the clock reading of that lane's
    previous dispatch. Only the task currently holding a lane reads or
    writes that lane's entry, so no lock is needed.
    """

    def __init__(
        self,
        min_interval: float = 0.5,
        clock: Optional[ClockFunc] = None,
        sleep_func: Optional[SleepFunc] = None,
    ):
        self.min_interval = min_interval
        self._clock = clock or time.monotonic
        self._sleep = sleep_func or asyncio.sleep
        self._last_dispatch: dict[int, float] = {}

    async def wait_turn(self, lane: int) -> None:
        last = self._last_dispatch.get(lane)
        if last is not None:
            wait = self.min_interval - (self._clock() - last)
            if wait > 0:
                await self._sleep(wait)
        self._last_dispatch[lane] = self._clock()

    def last_dispatch(self, lane: int) -> Optional[float]:
        return self._last_dispatch.get(lane)


class SearchExecutor:
    """Runs single queries against a SearchProvider with pacing, retry and timeout.

    Args:
        provider: The search backend
        policy: Retry attempts and backoff shape
        per_query_timeout: Wall-clock seconds for a query including retries,
            counted from its first lane acquisition
        min_interval: Minimum seconds between dispatches on one lane
        max_results: ``max_results`` passed to the provider
        sleep_func: Injectable async sleep (backoff and pacing)
        clock: Injectable monotonic clock (pacing)
        rng: Injectable Random for backoff jitter
    """

    def __init__(
        self,
        provider: SearchProvider,
        *,
        policy: Optional[RetryPolicy] = None,
        per_query_timeout: float = 30.0,
        min_interval: float = 0.5,
        max_results: int = 10,
        sleep_func: Optional[SleepFunc] = None,
        clock: Optional[ClockFunc] = None,
        rng: Optional[random.Random] = None,
    ):
        self.provider = provider
        self.policy = policy or RetryPolicy()
        self.per_query_timeout = per_query_timeout
        self.max_results = max_results
        self._sleep = sleep_func or asyncio.sleep
        self._rng = rng
        self.pacer = LanePacer(min_interval, clock=clock, sleep_func=self._sleep)

    @classmethod
    def from_config(
        cls,
        provider: SearchProvider,
        config: "RoundsConfig",
        *,
        sleep_func: Optional[SleepFunc] = None,
        clock: Optional[ClockFunc] = None,
    ) -> "SearchExecutor":
        return cls(
            provider,
            policy=RetryPolicy(
                max_attempts=config.max_search_attempts,
                base_delay=config.retry_base_delay,
                max_delay=config.retry_max_delay,
            ),
            per_query_timeout=config.per_query_timeout,
            min_interval=config.search_rate_limit,
            max_results=config.depth_tier.result_limit,
            sleep_func=sleep_func,
            clock=clock,
        )

    async def execute(
        self,
        query: Union[SearchQuery, str],
        acquire_lane: Optional[LaneAcquirer] = None,
    ) -> list[CitationResult]:
        """Execute one query; never raises for provider failures.

        Args:
            query: The query (or raw query text)
            acquire_lane: Context manager factory yielding a lane id. Each
                attempt holds a lane only for the paced provider call.

        Returns:
            Citations from the first non-empty attempt, or an empty list
        """
        text = query.text if isinstance(query, SearchQuery) else query
        try:
            return await self._run_attempts(text, acquire_lane or _single_lane)
        except _QueryBudgetExhausted:
            logger.warning("Search timed out after %.1fs: %s", self.per_query_timeout, text[:80])
            audit_log(
                "search_timeout",
                provider=self.provider.get_provider_name(),
                query=text[:200],
                timeout_seconds=self.per_query_timeout,
            )
            return []

    async def _paced_search(self, lane: int, text: str) -> list[CitationResult]:
        await self.pacer.wait_turn(lane)
        return list(await self.provider.search(text, max_results=self.max_results))

    async def _search_within(self, lane: int, text: str, remaining: float) -> list[CitationResult]:
        """Run one paced search, raising ``_QueryBudgetExhausted`` past ``remaining`` seconds.

        Provider exceptions (including its own timeouts) propagate unchanged.
        """
        task = asyncio.ensure_future(self._paced_search(lane, text))
        try:
            done, _ = await asyncio.wait({task}, timeout=remaining)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if not done:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise _QueryBudgetExhausted()
        return task.result()

    async def _run_attempts(self, text: str, acquire_lane: LaneAcquirer) -> list[CitationResult]:
        provider_name = self.provider.get_provider_name()
        loop = asyncio.get_running_loop()
        current = text
        empty_count = 0
        last_error: Optional[Exception] = None
        deadline: Optional[float] = None

        for attempt in range(self.policy.max_attempts):
            error: Optional[Exception] = None
            results: list[CitationResult] = []
            async with acquire_lane() as lane:
                if deadline is None:
                    deadline = loop.time() + self.per_query_timeout
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise _QueryBudgetExhausted()
                try:
                    results = await self._search_within(lane, current, remaining)
                except _QueryBudgetExhausted:
                    raise
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    error = e

            if results:
                if attempt:
                    logger.info("Search succeeded on attempt %d for '%s'", attempt + 1, current[:80])
                return results

            backoff_hint: Optional[float] = None
            if error is not None:
                last_error = error
                classification = self.provider.classify_error(error)
                logger.warning(
                    "Search attempt %d/%d failed for '%s': %s",
                    attempt + 1,
                    self.policy.max_attempts,
                    current[:80],
                    error,
                )
                if not classification.retryable:
                    audit_log(
                        "search_exhausted",
                        provider=provider_name,
                        query=text[:200],
                        attempts=attempt + 1,
                        error=str(error),
                        error_type=classification.error_type.value,
                    )
                    return []
                backoff_hint = classification.backoff_seconds
            else:
                logger.debug("Search attempt %d returned no results for '%s'", attempt + 1, current[:80])
                current = rewrite_query(text, empty_count)
                empty_count += 1

            if attempt < self.policy.max_attempts - 1:
                if backoff_hint is not None:
                    delay = min(backoff_hint, self.policy.max_delay)
                else:
                    delay = compute_backoff_delay(self.policy, attempt, self._rng)
                audit_log(
                    "search_retry",
                    provider=provider_name,
                    query=text[:200],
                    attempt=attempt + 1,
                    delay_seconds=delay,
                    next_query=current[:200],
                    reason="error" if error is not None else "empty",
                )
                await self._sleep(delay)

        logger.warning(
            "All %d search attempts exhausted for '%s'%s",
            self.policy.max_attempts,
            text[:80],
            f": {last_error}" if last_error else "",
        )
        audit_log(
            "search_exhausted",
            provider=provider_name,
            query=text[:200],
            attempts=self.policy.max_attempts,
            error=str(last_error) if last_error else None,
        )
        return []
