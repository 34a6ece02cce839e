"""
Input Validation

DESIGN DECISION: Money input is validated before it reaches the ledger.

STAGE 1 - INPUT VALIDATION (here):
- Amount is present, numeric, finite and strictly positive
- Currency is one of the supported codes
- This catches typos and whatever the intent parser made up

STAGE 2 - ADMISSION (ledger engine):
- The expense fits in the scope balance
- This needs the scope's transactions, so it cannot happen here

IMPORTANT: Validation NEVER silently fixes issues. A value is either
accepted as-is (normalised to Decimal / CurrencyCode) or rejected with
a typed error, and nothing is mutated on rejection.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from opsdesk.errors import InvalidAmountError, UnsupportedCurrencyError
from opsdesk.models.entities import CurrencyCode


def validate_amount(value: Any) -> Decimal:
    """
    Parse a user or AI supplied amount.

    Accepts Decimal, int, float and numeric strings ("150.50", " 20 ").
    Floats go through ``str`` so 0.1 stays 0.1 rather than its binary
    expansion.

    Raises:
        InvalidAmountError: missing, non-numeric, non-finite or <= 0
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmountError(f"Amount is required, got {value!r}")

    if isinstance(value, Decimal):
        amount = value
    else:
        text = str(value).strip().replace(",", ".") if isinstance(value, str) else str(value)
        if not text:
            raise InvalidAmountError("Amount is required")
        try:
            amount = Decimal(text)
        except InvalidOperation:
            raise InvalidAmountError(f"Amount is not a number: {value!r}")

    if not amount.is_finite():
        raise InvalidAmountError(f"Amount must be finite, got {value!r}")
    if amount <= 0:
        raise InvalidAmountError(f"Amount must be greater than zero, got {amount}")

    return amount


def validate_currency(code: Any) -> CurrencyCode:
    """
    Normalise a currency code into the closed set.

    Raises:
        UnsupportedCurrencyError: for anything outside CurrencyCode
    """
    if isinstance(code, CurrencyCode):
        return code
    if not isinstance(code, str):
        raise UnsupportedCurrencyError(code)
    try:
        return CurrencyCode(code.strip().upper())
    except ValueError:
        raise UnsupportedCurrencyError(code)
