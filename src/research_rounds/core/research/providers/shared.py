"""Shared HTTP helpers for search providers."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)

_SECRET_PATTERN = re.compile(r"(tvly-|sk-|key=)[A-Za-z0-9_\-]{4,}")

_COMMON_DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d %b %Y",
    "%B %d, %Y",
)


def redact_secrets(text: str) -> str:
    """Mask API keys that providers sometimes echo back in error bodies."""
    return _SECRET_PATTERN.sub(lambda m: f"{m.group(1)}***", text)


def parse_retry_after(response: "httpx.Response") -> Optional[float]:
    """Parse the numeric ``Retry-After`` header, or None if absent/unparseable."""
    retry_after = response.headers.get("Retry-After")
    if retry_after:
        try:
            return float(retry_after)
        except ValueError:
            pass
    return None


def extract_error_message(response: "httpx.Response") -> str:
    """Extract a redacted, human-readable error message from an error response."""
    try:
        data = response.json()
        error_field = data.get("error") or data.get("detail")
        if isinstance(error_field, dict):
            msg = error_field.get("message") or error_field.get("error") or str(error_field)
        elif isinstance(error_field, str):
            msg = error_field
        else:
            msg = data.get("message", response.text[:200])
        return redact_secrets(str(msg))
    except (ValueError, AttributeError):
        text = response.text[:200] if response.text else "Unknown error"
        return redact_secrets(text)


def parse_iso_date(date_str: Optional[str]) -> Optional[datetime]:
    """Parse a date string, trying ISO 8601 first then common formats."""
    if not date_str:
        return None

    try:
        return datetime.fromisoformat(date_str.replace("Z", "+00:00"))
    except ValueError:
        pass

    for fmt in _COMMON_DATE_FORMATS:
        try:
            return datetime.strptime(date_str, fmt)
        except ValueError:
            continue

    logger.debug("Unparseable date '%s'", date_str)
    return None
