"""Backoff computation and error classification for search retries.

The executor owns the retry loop itself (it must release its worker lane
before sleeping), so this module only answers two questions: how long to
wait before retry ``n`` and whether an error is worth retrying at all.
"""

import asyncio
import random
from typing import Optional

from research_rounds.core.errors.search import (
    AuthenticationError,
    RateLimitError,
    SearchProviderError,
    SearchTimeoutError,
)
from research_rounds.core.research.providers.resilience.models import (
    ErrorClassification,
    ErrorType,
    RetryPolicy,
)


def compute_backoff_delay(
    policy: RetryPolicy,
    retry_index: int,
    rng: Optional[random.Random] = None,
) -> float:
    """Delay in seconds before retry ``retry_index`` (0-based).

    Example:
        >>> compute_backoff_delay(RetryPolicy(base_delay=1.0), 0)
        1.0
        >>> compute_backoff_delay(RetryPolicy(base_delay=1.0), 1)
        2.0
    """
    delay = min(policy.base_delay * (policy.exponential_base**retry_index), policy.max_delay)
    if policy.jitter:
        _rng = rng or random.Random()
        # Range: (1 - jitter) to (1 + jitter)
        delay *= 1.0 - policy.jitter + _rng.random() * 2 * policy.jitter
    return delay


def classify_error(error: Exception) -> ErrorClassification:
    """Classify a search error for retry decisions.

    Typed provider errors are trusted first; anything else is classified
    from its message using common HTTP patterns.
    """
    if isinstance(error, AuthenticationError):
        return ErrorClassification(retryable=False, error_type=ErrorType.AUTHENTICATION)
    if isinstance(error, RateLimitError):
        return ErrorClassification(
            retryable=True,
            backoff_seconds=error.retry_after,
            error_type=ErrorType.RATE_LIMIT,
        )
    if isinstance(error, (SearchTimeoutError, asyncio.TimeoutError, TimeoutError)):
        return ErrorClassification(retryable=True, error_type=ErrorType.TIMEOUT)
    if isinstance(error, SearchProviderError) and not error.retryable:
        return ErrorClassification(retryable=False, error_type=ErrorType.INVALID_REQUEST)

    error_str = str(error).lower()

    # Rate limit errors
    if "429" in error_str or "rate limit" in error_str or "too many requests" in error_str:
        return ErrorClassification(retryable=True, error_type=ErrorType.RATE_LIMIT)

    # Authentication errors
    if "401" in error_str or "403" in error_str or "unauthorized" in error_str:
        return ErrorClassification(retryable=False, error_type=ErrorType.AUTHENTICATION)

    # Server errors
    if any(code in error_str for code in ["500", "502", "503", "504"]):
        return ErrorClassification(retryable=True, error_type=ErrorType.SERVER_ERROR)

    if "timeout" in error_str or "timed out" in error_str:
        return ErrorClassification(retryable=True, error_type=ErrorType.TIMEOUT)

    if any(term in error_str for term in ["connection", "network", "dns", "refused", "reset"]):
        return ErrorClassification(retryable=True, error_type=ErrorType.NETWORK)

    # Unknown errors are retried
    return ErrorClassification(retryable=True, error_type=ErrorType.UNKNOWN)
