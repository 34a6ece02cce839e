"""
Data Models Package

This package contains all Pydantic models used in OpsDesk.
All data flowing through the system must conform to these schemas.
"""

from opsdesk.models.entities import (
    AppData,
    CalendarEvent,
    Comment,
    CurrencyCode,
    Document,
    DocumentCategory,
    LedgerSummary,
    Recap,
    RecapKind,
    SeriesPoint,
    Transaction,
    TransactionKind,
    User,
    UserRole,
)
from opsdesk.models.intents import (
    CreateEventIntent,
    CreateExpenseIntent,
    CreateRecapIntent,
    Intent,
    IntentCategory,
    IntentOutcome,
    coerce_intent,
)
from opsdesk.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Entities
    "AppData",
    "CalendarEvent",
    "Comment",
    "CurrencyCode",
    "Document",
    "DocumentCategory",
    "LedgerSummary",
    "Recap",
    "RecapKind",
    "SeriesPoint",
    "Transaction",
    "TransactionKind",
    "User",
    "UserRole",
    # Intents
    "CreateEventIntent",
    "CreateExpenseIntent",
    "CreateRecapIntent",
    "Intent",
    "IntentCategory",
    "IntentOutcome",
    "coerce_intent",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
