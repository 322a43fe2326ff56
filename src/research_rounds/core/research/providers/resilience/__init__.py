"""Retry policy, backoff and error classification for search providers."""

from research_rounds.core.research.providers.resilience.models import (
    ClockFunc,
    ErrorClassification,
    ErrorType,
    RetryPolicy,
    SleepFunc,
)
from research_rounds.core.research.providers.resilience.retry import (
    classify_error,
    compute_backoff_delay,
)

__all__ = [
    "ClockFunc",
    "ErrorClassification",
    "ErrorType",
    "RetryPolicy",
    "SleepFunc",
    "classify_error",
    "compute_backoff_delay",
]
