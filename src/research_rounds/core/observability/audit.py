"""Audit logging for research sessions.

Audit events are structured records of what a research session did:
rounds started and finished, searches retried or abandoned, fallbacks
taken. They are written to a dedicated ``<module>.audit`` logger so they
can be routed or filtered independently of ordinary diagnostics.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class AuditEventType(Enum):
    """Types of audit events emitted by the research engine."""

    SESSION_STARTED = "session_started"
    SESSION_TERMINATED = "session_terminated"
    SESSION_CANCELLED = "session_cancelled"
    ROUND_STARTED = "round_started"
    ROUND_COMPLETED = "round_completed"
    ROUND_FAILED = "round_failed"
    SEARCH_RETRY = "search_retry"
    SEARCH_TIMEOUT = "search_timeout"
    SEARCH_EXHAUSTED = "search_exhausted"
    TEXT_GENERATION_FALLBACK = "text_generation_fallback"
    GENERIC = "generic"


@dataclass
class AuditEvent:
    """Structured audit event."""

    event_type: AuditEventType
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    session_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "details": self.details,
        }
        if self.session_id:
            result["session_id"] = self.session_id
        return result


class AuditLogger:
    """
    Structured audit logging for research sessions.

    Audit logs are written to a separate logger for easy filtering.
    """

    def __init__(self):
        self._logger = logging.getLogger(f"{__name__}.audit")

    def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        self._logger.info(f"AUDIT: {event.event_type.value}", extra={"audit": event.to_dict()})

    def round_completed(
        self,
        session_id: str,
        round_number: int,
        new_citations: int,
        total_citations: int,
        **details: Any,
    ) -> None:
        """Log a finished research round."""
        self.log(
            AuditEvent(
                event_type=AuditEventType.ROUND_COMPLETED,
                session_id=session_id,
                details={
                    "round": round_number,
                    "new_citations": new_citations,
                    "total_citations": total_citations,
                    **details,
                },
            )
        )

    def session_terminated(
        self,
        session_id: str,
        reason: str,
        rounds: int,
        citations: int,
        degraded: bool = False,
        **details: Any,
    ) -> None:
        """Log the end of a research session."""
        self.log(
            AuditEvent(
                event_type=AuditEventType.SESSION_TERMINATED,
                session_id=session_id,
                details={
                    "reason": reason,
                    "rounds": rounds,
                    "citations": citations,
                    "degraded": degraded,
                    **details,
                },
            )
        )


# Global audit logger
_audit = AuditLogger()


def get_audit_logger() -> AuditLogger:
    """Get the global audit logger."""
    return _audit


def audit_log(event_type: str, **details: Any) -> None:
    """
    Convenience function for audit logging.

    Args:
        event_type: Type of event (round_started, search_retry, ...).
            Unknown names are logged as ``generic`` with the original
            name kept under ``original_event_type``.
        **details: Additional details to include in the audit log. A
            ``session_id`` key is lifted onto the event itself.
    """
    try:
        event_enum = AuditEventType(event_type)
    except ValueError:
        event_enum = AuditEventType.GENERIC
        details["original_event_type"] = event_type

    session_id = details.pop("session_id", None)
    _audit.log(AuditEvent(event_type=event_enum, details=details, session_id=session_id))
