"""
Currency Conversion Table

Static, approximate rates relative to a base currency (rate 1).
Conversion goes through the base: x / rate(from) * rate(to).

Everything is Decimal. Round trips are exact up to the Decimal context
precision (28 significant digits), which is far below a cent.
"""

from decimal import Decimal
from typing import Any, Mapping, Optional

from opsdesk.config import LedgerSettings, get_settings
from opsdesk.errors import UnsupportedCurrencyError
from opsdesk.models.entities import CurrencyCode
from opsdesk.validation import validate_currency


class CurrencyTable:
    """
    Fixed exchange rates for the supported currencies.

    Construction fails if any supported code lacks a rate, if a rate is
    not positive, or if the base currency's rate is not 1.
    """

    def __init__(
        self,
        rates: Mapping[str, Any],
        base: str = "EUR",
    ):
        self._base = validate_currency(base)
        self._rates: dict[CurrencyCode, Decimal] = {}

        for code, rate in rates.items():
            try:
                currency = CurrencyCode(str(code).upper())
            except ValueError:
                # Rates for codes we don't support are ignored
                continue
            value = Decimal(str(rate))
            if value <= 0:
                raise ValueError(f"Rate for {currency.value} must be positive, got {value}")
            self._rates[currency] = value

        missing = [c.value for c in CurrencyCode if c not in self._rates]
        if missing:
            raise ValueError(f"No rate configured for: {', '.join(missing)}")
        if self._rates[self._base] != Decimal("1"):
            raise ValueError(
                f"Base currency {self._base.value} must have rate 1, "
                f"got {self._rates[self._base]}"
            )

    @classmethod
    def from_settings(cls, settings: Optional[LedgerSettings] = None) -> "CurrencyTable":
        settings = settings or get_settings().ledger
        return cls(settings.rates, base=settings.base_currency)

    @property
    def base(self) -> CurrencyCode:
        return self._base

    def supported(self) -> list[CurrencyCode]:
        return list(self._rates)

    def rate(self, code: Any) -> Decimal:
        """Rate of ``code`` against the base currency."""
        currency = validate_currency(code)
        try:
            return self._rates[currency]
        except KeyError:
            raise UnsupportedCurrencyError(code)

    def convert(self, amount: Decimal, from_code: Any, to_code: Any) -> Decimal:
        """Convert ``amount`` from one supported currency to another."""
        rate_from = self.rate(from_code)
        rate_to = self.rate(to_code)
        return Decimal(amount) / rate_from * rate_to
