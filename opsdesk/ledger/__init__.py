"""Ledger package: currency conversion and the ledger engine."""

from opsdesk.ledger.currency import CurrencyTable
from opsdesk.ledger.engine import LedgerEngine, LedgerSeries

__all__ = ["CurrencyTable", "LedgerEngine", "LedgerSeries"]
