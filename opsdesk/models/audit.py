"""
Audit Models for OpsDesk

Every significant action in the system is logged for audit purposes.
This provides:
1. Complete traceability of who wrote what, for which manager
2. Debugging information when things go wrong
3. A record of rejected expenses and failed storage syncs
4. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from opsdesk.models.entities import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Session / context
    ROLE_SWITCHED = "role_switched"
    SUBJECT_SELECTED = "subject_selected"
    MANAGER_ADDED = "manager_added"

    # Records
    RECAP_CREATED = "recap_created"
    COMMENT_ADDED = "comment_added"
    COMMENT_REJECTED = "comment_rejected"
    EVENT_CREATED = "event_created"
    EVENT_DELETED = "event_deleted"
    DOCUMENT_ADDED = "document_added"

    # Ledger
    BUDGET_CREDITED = "budget_credited"
    EXPENSE_RECORDED = "expense_recorded"
    EXPENSE_REJECTED = "expense_rejected"

    # Natural language intents
    INTENT_RECEIVED = "intent_received"
    INTENT_APPLIED = "intent_applied"
    INTENT_REJECTED = "intent_rejected"

    # Persistence
    SYNC_FAILED = "sync_failed"
    STORE_RELOADED = "store_reloaded"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about, and who did it?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'recap', 'transaction', 'intent')"
    )
    entity_id: Optional[str] = None
    actor_id: Optional[str] = Field(
        default=None,
        description="Identity that performed the action"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all intents of one utterance)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         actor_id, correlation_id, description, details_json, error_code,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.actor_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_code or "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_recorded(tx, actor_id, correlation_id)
        event = AuditEventBuilder.expense_rejected(error, actor_id, correlation_id)
    """

    @staticmethod
    def role_switched(
        role: str,
        actor_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROLE_SWITCHED,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Active role switched to {role}",
            details={"role": role},
            is_user_action=True,
        )

    @staticmethod
    def subject_selected(
        subject_id: str,
        actor_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBJECT_SELECTED,
            entity_type="user",
            entity_id=subject_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Viewing manager {subject_id}",
            is_user_action=True,
        )

    @staticmethod
    def manager_added(
        manager_id: str,
        name: str,
        actor_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MANAGER_ADDED,
            entity_type="user",
            entity_id=manager_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Manager added: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def entity_created(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        actor_id: Optional[str],
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} {event_type.value.split('_')[-1]}: {entity_id}",
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def comment_rejected(
        recap_id: str,
        actor_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMENT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="recap",
            entity_id=recap_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Comment discarded: recap {recap_id} not found",
            error_code="not_found",
            is_user_action=True,
        )

    @staticmethod
    def expense_recorded(
        transaction_id: str,
        amount: Decimal,
        currency: str,
        author_id: str,
        actor_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_RECORDED,
            entity_type="transaction",
            entity_id=transaction_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Expense recorded: {amount} {currency}",
            details={
                "amount": str(amount),
                "currency": currency,
                "author_id": author_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def budget_credited(
        transaction_id: str,
        amount: Decimal,
        currency: str,
        subject_id: str,
        actor_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_CREDITED,
            entity_type="transaction",
            entity_id=transaction_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Budget credited to {subject_id}: {amount} {currency}",
            details={
                "amount": str(amount),
                "currency": currency,
                "subject_id": subject_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_rejected(
        error_code: str,
        error_message: str,
        actor_id: Optional[str],
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Expense rejected: {error_code}",
            details=details or {},
            error_code=error_code,
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def intent_received(
        utterance: str,
        intent_count: int,
        actor_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INTENT_RECEIVED,
            entity_type="intent",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Utterance parsed into {intent_count} intent(s)",
            details={"utterance": utterance[:200], "intent_count": intent_count},
            is_user_action=True,
        )

    @staticmethod
    def intent_handled(
        category: Optional[str],
        applied: bool,
        entity_id: Optional[str],
        error_code: Optional[str],
        error_message: Optional[str],
        actor_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.INTENT_APPLIED if applied
                else AuditEventType.INTENT_REJECTED
            ),
            severity=AuditSeverity.INFO if applied else AuditSeverity.WARNING,
            entity_type="intent",
            entity_id=entity_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=(
                f"Intent {category or 'unknown'} "
                f"{'applied' if applied else 'rejected'}"
            ),
            details={"category": category},
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def sync_failed(
        operation: str,
        entity_type: str,
        entity_id: Optional[str],
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Storage sync failed: {operation} {entity_type}",
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def store_reloaded(
        counts: dict[str, int],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_RELOADED,
            correlation_id=correlation_id,
            description="In-memory store reloaded from storage",
            details=counts,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
