"""Input validation package."""

from opsdesk.validation.validator import validate_amount, validate_currency

__all__ = ["validate_amount", "validate_currency"]
