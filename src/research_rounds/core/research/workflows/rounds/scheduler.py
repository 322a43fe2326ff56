"""Priority scheduler with a fixed pool of worker lanes.

All queries of a round run concurrently, but at most ``max_parallel`` of
them hold a lane (and so talk to the provider) at any time. Queries are
submitted HIGH before MEDIUM before LOW; lane waiters are served first in,
first out, so under contention higher tiers get a free lane first.

Results are collected in completion order behind an ``asyncio.Lock``.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Sequence

from research_rounds.core.research.models.citations import CitationResult
from research_rounds.core.research.models.questions import SearchQuery
from research_rounds.core.research.workflows.rounds.executor import SearchExecutor

logger = logging.getLogger(__name__)


def order_by_priority(queries: Iterable[SearchQuery]) -> list[SearchQuery]:
    """Stable sort: HIGH first, then MEDIUM, then LOW."""
    return sorted(queries, key=lambda q: -q.priority.rank)


class PriorityScheduler:
    """Dispatches search queries through a bounded set of worker lanes.

    One scheduler lives for a whole research session and is reused by
    every round.

    Args:
        executor: Runs individual queries
        max_parallel: Number of worker lanes (maximum in-flight searches)
    """

    def __init__(self, executor: SearchExecutor, max_parallel: int = 8):
        if max_parallel < 1:
            raise ValueError("max_parallel must be >= 1")
        self.executor = executor
        self.max_parallel = max_parallel
        self._free_lanes: asyncio.Queue[int] = asyncio.Queue()
        for lane_id in range(max_parallel):
            self._free_lanes.put_nowait(lane_id)
        self.in_flight = 0
        self.peak_in_flight = 0
        self._closed = False

    @asynccontextmanager
    async def lane(self) -> AsyncIterator[int]:
        """Hold a worker lane for the duration of the block."""
        lane_id = await self._free_lanes.get()
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            yield lane_id
        finally:
            self.in_flight -= 1
            self._free_lanes.put_nowait(lane_id)

    async def run(
        self,
        queries: Sequence[SearchQuery],
    ) -> list[tuple[SearchQuery, list[CitationResult]]]:
        """Run all queries concurrently and wait for every one of them.

        Args:
            queries: Queries of one round, any order

        Returns:
            (query, citations) pairs in completion order

        Raises:
            RuntimeError: If the scheduler was closed
        """
        if self._closed:
            raise RuntimeError("PriorityScheduler is closed")

        ordered = order_by_priority(queries)
        completed: list[tuple[SearchQuery, list[CitationResult]]] = []
        state_lock = asyncio.Lock()

        async def run_one(query: SearchQuery) -> None:
            citations = await self.executor.execute(query, acquire_lane=self.lane)
            async with state_lock:
                completed.append((query, citations))

        tasks = [asyncio.create_task(run_one(q)) for q in ordered]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        for query, outcome in zip(ordered, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Search task for '%s' failed: %s", query.text[:80], outcome)

        logger.debug(
            "Dispatched %d queries, %d returned citations (peak in flight: %d)",
            len(ordered),
            sum(1 for _, c in completed if c),
            self.peak_in_flight,
        )
        return completed

    def close(self) -> None:
        """Release the lane pool; further ``run`` calls fail."""
        self._closed = True
