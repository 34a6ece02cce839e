"""
Core Data Models for OpsDesk

These models define the closed set of record shapes the core works with:
users, recaps (with comments), calendar events, documents and
transactions. Anything arriving from the outside (storage rows, AI
payloads) is coerced into one of these before it reaches the ledger or
the store.

DESIGN DECISION: Amounts are Decimal and always stored positive. The sign
of a transaction is derived from its kind, never from the amount.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import uuid4

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


def new_id() -> str:
    """Opaque unique identifier."""
    return str(uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Every stored instant is timezone-aware, so reads can compare and sort them.
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class UserRole(str, Enum):
    """
    The two roles of a tenant.

    PATRON oversees every manager; RESPONSABLE reports activity and spends
    against the budget the Patron credits to them.
    """
    PATRON = "PATRON"
    RESPONSABLE = "RESPONSABLE"


class RecapKind(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"


class DocumentCategory(str, Enum):
    CONTRACT = "CONTRACT"
    INVOICE = "INVOICE"
    QUOTE = "QUOTE"
    OTHER = "OTHER"


class TransactionKind(str, Enum):
    """
    Transaction kinds.

    BUDGET_ADD increases the funds available to a manager,
    EXPENSE decreases them.
    """
    BUDGET_ADD = "BUDGET_ADD"
    EXPENSE = "EXPENSE"


class CurrencyCode(str, Enum):
    """Closed set of supported currencies."""
    EUR = "EUR"
    USD = "USD"
    XOF = "XOF"


# =============================================================================
# ENTITIES
# =============================================================================

class User(BaseModel):
    """
    A member of the tenant.

    Role is fixed at creation; there is no re-assignment path.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=200)
    role: UserRole
    avatar: str = Field(default="", description="Avatar image reference")
    contact: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Phone number or messaging handle"
    )


class Comment(BaseModel):
    """A comment in a recap thread. Lives and dies with its recap."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    author_id: str
    content: str = Field(..., min_length=1, max_length=2000)
    created_at: UtcDatetime = Field(default_factory=utc_now)


class Recap(BaseModel):
    """
    An activity report written by a manager.

    The only mutation is appending to ``comments``; recaps are never
    deleted and comments are never reordered.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    title: str = Field(..., min_length=1, max_length=200)
    kind: RecapKind = RecapKind.DAILY
    description: str = Field(..., min_length=1)
    created_at: UtcDatetime = Field(default_factory=utc_now)
    author_id: str
    media_urls: list[str] = Field(default_factory=list)
    comments: list[Comment] = Field(default_factory=list)


class CalendarEvent(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    starts_at: UtcDatetime
    author_id: str


class Document(BaseModel):
    """
    Metadata for an uploaded document.

    The file itself lives with the media collaborator; ``url`` points at
    it when the upload went through us.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=255)
    category: DocumentCategory = DocumentCategory.OTHER
    created_at: UtcDatetime = Field(default_factory=utc_now)
    author_id: str
    size: str = Field(default="", description="Human readable size, e.g. '2.40 MB'")
    url: Optional[str] = None


class Transaction(BaseModel):
    """
    A budget credit or an expense.

    Immutable once created; there is no edit or delete path.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    amount: Decimal = Field(..., gt=0, description="Always positive")
    reason: str = Field(default="", max_length=500)
    created_at: UtcDatetime = Field(default_factory=utc_now)
    kind: TransactionKind
    currency: CurrencyCode
    author_id: str

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign implied by the kind."""
        if self.kind == TransactionKind.EXPENSE:
            return -self.amount
        return self.amount


# =============================================================================
# PROJECTIONS
# =============================================================================

class AppData(BaseModel):
    """
    The four entity collections.

    Used both for the raw store snapshot and for the filtered view handed
    to the display layer.
    """

    recaps: list[Recap] = Field(default_factory=list)
    events: list[CalendarEvent] = Field(default_factory=list)
    documents: list[Document] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.recaps or self.events or self.documents or self.transactions)


class LedgerSummary(BaseModel):
    """Ledger figures for one scope, in one display currency."""

    display_currency: CurrencyCode
    total_budget: Decimal
    total_expenses: Decimal
    balance: Decimal
    utilization_percent: Decimal


class SeriesPoint(BaseModel):
    """One point of the cash-flow chart."""

    date: UtcDatetime
    amount: Decimal = Field(..., description="Signed, converted amount")
    original_amount: Decimal
    kind: TransactionKind
    currency: CurrencyCode
