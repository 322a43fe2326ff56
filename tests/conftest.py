"""Shared fixtures for research-rounds tests.

Provides scripted search/text providers, a citation builder and a
recording sleep so retry, pacing and round logic run without real time or
network access.
"""

import asyncio
import itertools
from typing import Any, Callable, Optional, Union

import pytest

from research_rounds.core.research.models import CitationResult
from research_rounds.core.research.providers.base import SearchProvider, TextGenerationProvider

LONG_CONTENT = (
    "This article walks through the topic in depth, covering background, "
    "practical usage, trade-offs and references to further reading so that "
    "readers can evaluate it for their own projects."
)


def build_citation(
    url: str = "https://example.org/a",
    title: str = "Example source",
    relevance_score: float = 0.8,
    content: Optional[str] = None,
    **kwargs: Any,
) -> CitationResult:
    """Build a valid CitationResult with content long enough to survive dedup."""
    return CitationResult(
        url=url,
        title=title,
        relevance_score=relevance_score,
        content=LONG_CONTENT if content is None else content,
        **kwargs,
    )


Responder = Callable[[str], Union[list[CitationResult], Exception]]


class FakeSearchProvider(SearchProvider):
    """Scripted search provider.

    ``responder(query)`` returns the citations for a call, or an exception
    instance to raise. Calls and concurrency are recorded.
    """

    def __init__(self, responder: Optional[Responder] = None, name: str = "fake"):
        self.responder = responder or (lambda query: [])
        self.name = name
        self.calls: list[str] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    def get_provider_name(self) -> str:
        return self.name

    async def search(self, query: str, max_results: int = 10, **kwargs: Any) -> list[CitationResult]:
        self.calls.append(query)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            outcome = self.responder(query)
            if isinstance(outcome, Exception):
                raise outcome
            return list(outcome)
        finally:
            self.in_flight -= 1


class FakeTextProvider(TextGenerationProvider):
    """Text provider returning canned completions (or raising ``error``)."""

    def __init__(
        self,
        responses: Union[list[str], Callable[[str], str], None] = None,
        error: Optional[Exception] = None,
    ):
        self.responses = responses if responses is not None else []
        self.error = error
        self.prompts: list[str] = []

    def get_provider_name(self) -> str:
        return "fake-llm"

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if callable(self.responses):
            return self.responses(prompt)
        if not self.responses:
            return ""
        return self.responses.pop(0)


class RecordingSleep:
    """Async sleep replacement that records requested delays and only yields."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        await asyncio.sleep(0)


def unique_source_responder(per_query: int = 2, relevance: float = 0.9) -> Responder:
    """Responder giving every call ``per_query`` brand-new citations."""
    counter = itertools.count(1)

    def respond(query: str) -> list[CitationResult]:
        results = []
        for _ in range(per_query):
            n = next(counter)
            results.append(
                build_citation(
                    url=f"https://site{n % 7}.example.org/page-{n}",
                    title=f"Source {n} item{n}x",
                    relevance_score=relevance,
                )
            )
        return results

    return respond


@pytest.fixture
def make_citation():
    """Factory fixture for valid citations."""
    return build_citation


@pytest.fixture
def fake_search_provider():
    """Factory fixture: ``fake_search_provider(responder)``."""
    return FakeSearchProvider


@pytest.fixture
def fake_text_provider():
    """Factory fixture: ``fake_text_provider(responses, error=None)``."""
    return FakeTextProvider


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def unique_sources():
    """Factory fixture for a responder producing fresh citations per call."""
    return unique_source_responder
