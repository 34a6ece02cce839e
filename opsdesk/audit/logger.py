"""
Audit Logger

DESIGN DECISION: Every mutation and every rejection is logged.
This provides:
1. Complete traceability of who credited or spent what, for which manager
2. A visible record of rejected expenses and intents
3. A record of storage syncs that failed (no rollback happens)

The audit logger:
- Is async so it composes with the storage collaborator
- Never raises: a broken audit sheet must not break a write
- Keeps the most recent session events in memory, queryable by correlation id
"""

import logging
from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from opsdesk.errors import OpsDeskError
from opsdesk.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from opsdesk.services.storage import AuditStorageInterface


def configure_logging(debug: bool = False) -> None:
    """Configure structlog for JSON output through the stdlib logging tree."""
    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if debug else logging.INFO,
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


# Older session events are dropped past this many; storage keeps the full trail.
MAX_SESSION_EVENTS = 1000


_LEVELS = {
    AuditSeverity.DEBUG: "debug",
    AuditSeverity.INFO: "info",
    AuditSeverity.WARNING: "warning",
    AuditSeverity.ERROR: "error",
    AuditSeverity.CRITICAL: "critical",
}


class AuditLogger:
    """
    Central audit trail for one session.

    Each event goes to the structured local log at its severity, then to
    audit storage when one is configured.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        max_session_events: int = MAX_SESSION_EVENTS,
    ):
        self._storage = storage
        self._logger = structlog.get_logger("opsdesk.audit")
        self._session_events: deque[AuditEvent] = deque(maxlen=max_session_events)

    @property
    def events(self) -> list[AuditEvent]:
        """Most recent events of this session, oldest first."""
        return list(self._session_events)

    def events_for(self, correlation_id: UUID) -> list[AuditEvent]:
        """Session events of one user action, e.g. every intent of an utterance."""
        return [e for e in self._session_events if e.correlation_id == correlation_id]

    async def log(self, event: AuditEvent) -> bool:
        """
        Record one event.

        Returns False only when audit storage is configured and the write
        to it failed.
        """
        self._session_events.append(event)
        emit = getattr(self._logger, _LEVELS[event.severity])
        emit("audit_event", **event.to_log_dict())

        if self._storage is None:
            return True
        try:
            return await self._storage.append_event(event)
        except Exception as e:
            self._logger.error(
                "audit_storage_failed",
                error=str(e),
                event_id=str(event.event_id),
                event_type=event.event_type.value,
            )
            return False

    async def log_expense_rejected(
        self,
        error: OpsDeskError,
        actor_id: Optional[str],
        correlation_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_rejected(
            error_code=error.code,
            error_message=str(error),
            actor_id=actor_id,
            correlation_id=correlation_id or create_correlation_id(),
            details=details,
        ))

    async def log_sync_failed(
        self,
        operation: str,
        entity_type: str,
        entity_id: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """A storage write failed after the in-memory write was applied."""
        await self.log(AuditEventBuilder.sync_failed(
            operation=operation,
            entity_type=entity_type,
            entity_id=entity_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., one utterance).
    Pass it through all subsequent operations.
    """
    return uuid4()
