"""
Typed intents produced from natural language.

The intent parser (an LLM) returns loosely-typed JSON. Nothing from it is
trusted: ``coerce_intent`` turns each payload into one of three closed
variants, and the controller then applies the variant through the same
validated paths a manual action would take. Amounts and currencies are
kept raw here on purpose so the normal validators reject them with the
usual error codes.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from opsdesk.errors import UnsupportedActionError
from opsdesk.models.entities import RecapKind, as_utc, utc_now


DEFAULT_RECAP_TITLE = "Rapport vocal"
DEFAULT_EVENT_TITLE = "RDV vocal"
DEFAULT_EXPENSE_REASON = "Dépense vocale"
DEFAULT_EXPENSE_CURRENCY = "EUR"


class IntentCategory(str, Enum):
    RECAP = "RECAP"
    EVENT = "EVENT"
    EXPENSE = "EXPENSE"


class CreateRecapIntent(BaseModel):
    category: Literal[IntentCategory.RECAP] = IntentCategory.RECAP
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    kind: RecapKind = RecapKind.DAILY


class CreateEventIntent(BaseModel):
    category: Literal[IntentCategory.EVENT] = IntentCategory.EVENT
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    starts_at: datetime


class CreateExpenseIntent(BaseModel):
    category: Literal[IntentCategory.EXPENSE] = IntentCategory.EXPENSE
    amount: str = Field(..., description="Raw amount, validated when applied")
    currency: str = DEFAULT_EXPENSE_CURRENCY
    reason: str = Field(default=DEFAULT_EXPENSE_REASON, max_length=500)


Intent = Union[CreateRecapIntent, CreateEventIntent, CreateExpenseIntent]


class IntentOutcome(BaseModel):
    """What happened to one intent."""

    intent: Optional[Intent] = None
    applied: bool
    entity_id: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def coerce_intent(
    payload: Any,
    utterance: str,
    now: Optional[datetime] = None,
) -> Intent:
    """
    Validate one raw payload into a closed intent variant.

    Missing optional fields get the same defaults the voice assistant has
    always used. Unknown categories and malformed payloads raise
    UnsupportedActionError.
    """
    if not isinstance(payload, dict):
        raise UnsupportedActionError(f"Intent payload must be an object, got {type(payload).__name__}")

    raw_category = _text(payload.get("category")).upper()
    try:
        category = IntentCategory(raw_category)
    except ValueError:
        raise UnsupportedActionError(f"Unrecognised intent category: {raw_category or '<empty>'}")

    try:
        if category == IntentCategory.RECAP:
            kind_value = _text(payload.get("type") or payload.get("kind")).upper()
            kind = RecapKind(kind_value) if kind_value in RecapKind.__members__ else RecapKind.DAILY
            return CreateRecapIntent(
                title=_text(payload.get("title")) or DEFAULT_RECAP_TITLE,
                description=_text(payload.get("description")) or utterance,
                kind=kind,
            )

        if category == IntentCategory.EVENT:
            raw_date = payload.get("date") or payload.get("starts_at")
            starts_at = now or utc_now()
            if raw_date:
                starts_at = datetime.fromisoformat(_text(raw_date))
            return CreateEventIntent(
                title=_text(payload.get("title")) or DEFAULT_EVENT_TITLE,
                description=_text(payload.get("description")) or utterance,
                starts_at=as_utc(starts_at),
            )

        return CreateExpenseIntent(
            amount=_text(payload.get("amount")),
            currency=_text(payload.get("currency")).upper() or DEFAULT_EXPENSE_CURRENCY,
            reason=_text(payload.get("reason")) or DEFAULT_EXPENSE_REASON,
        )
    except (ValidationError, ValueError) as e:
        raise UnsupportedActionError(f"Malformed {category.value} intent: {e}")
