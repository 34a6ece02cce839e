"""
Error taxonomy for OpsDesk.

Every rejection the core can produce is one of these. Each carries a
stable ``code`` so callers (and the intent outcomes) can report it
without string matching on messages.
"""

from decimal import Decimal
from typing import Optional


class OpsDeskError(Exception):
    """Base exception for all domain errors."""

    code = "opsdesk_error"


class InvalidAmountError(OpsDeskError):
    """Amount is missing, non-numeric or not strictly positive."""

    code = "invalid_amount"


class UnsupportedCurrencyError(OpsDeskError):
    """Currency code is outside the supported set."""

    code = "unsupported_currency"

    def __init__(self, currency: object):
        self.currency = currency
        super().__init__(f"Unsupported currency: {currency!r}")


class InsufficientFundsError(OpsDeskError):
    """
    An expense would exceed the available balance of the scope.

    Both amounts are expressed in ``currency`` (the display currency the
    check ran in). Callers must not retry automatically.
    """

    code = "insufficient_funds"

    def __init__(self, attempted: Decimal, available: Decimal, currency: str):
        self.attempted = attempted
        self.available = available
        self.currency = currency
        super().__init__(
            f"Insufficient funds: attempted {attempted:.2f} {currency}, "
            f"available {available:.2f} {currency}"
        )


class NotFoundError(OpsDeskError):
    """A referenced entity (recap, event, subject, user) does not resolve."""

    code = "not_found"

    def __init__(self, kind: str, entity_id: Optional[str]):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} not found: {entity_id}")


class UnsupportedActionError(OpsDeskError):
    """The intent collaborator returned a category we do not handle."""

    code = "unsupported_action"


class PermissionDeniedError(OpsDeskError):
    """The active role may not perform this action."""

    code = "permission_denied"
