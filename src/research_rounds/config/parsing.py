"""Parsing and normalization helpers for configuration values."""

import logging
from typing import Any, List, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E")


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


def _parse_list(value: Any) -> List[str]:
    """Accept either a TOML array or a comma-separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [p.strip() for p in value.split(",") if p.strip()]
    return [str(p).strip() for p in value if str(p).strip()]


def _parse_enum(enum_cls: type[E], value: Any, default: E, field_name: str) -> E:
    """Parse an enum value by name or value, warning and falling back on bad input."""
    if isinstance(value, enum_cls):
        return value
    normalized = str(value).strip().lower()
    try:
        return enum_cls(normalized)  # type: ignore[call-arg]
    except ValueError:
        logger.warning(
            "Invalid value '%s' for %s. Falling back to '%s'.",
            value,
            field_name,
            getattr(default, "value", default),
        )
        return default

