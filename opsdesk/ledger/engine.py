"""
Ledger Engine

Computes budget, expense and balance figures for a set of transactions in
any display currency, and admits new expenses against the balance of the
scope they are recorded in.

DESIGN DECISION: The engine has no role awareness and no visibility
awareness. Callers hand it the already-filtered transactions of a scope;
who may credit a budget is decided by the controller.

The admission check is approximate by nature: a proposed expense is
converted into the display currency and compared with a balance that was
itself converted from several currencies at static rates. It is an
admission policy, not double-entry accounting, and it is only checked
when an expense is accepted. Later credits are never re-validated.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Iterator, Optional, Sequence

from opsdesk.errors import InsufficientFundsError
from opsdesk.ledger.currency import CurrencyTable
from opsdesk.models.entities import (
    CurrencyCode,
    LedgerSummary,
    SeriesPoint,
    Transaction,
    TransactionKind,
    utc_now,
)
from opsdesk.store import EntityStore
from opsdesk.validation import validate_amount, validate_currency


HUNDRED = Decimal("100")


class LedgerSeries:
    """
    Chart series over a fixed set of transactions.

    Iterating yields SeriesPoint values in ascending date order (stable for
    equal dates), expenses negated before conversion. Points are produced
    lazily and every ``iter()`` starts over from the first point.
    """

    def __init__(
        self,
        transactions: Iterable[Transaction],
        table: CurrencyTable,
        display_currency: CurrencyCode,
    ):
        self._transactions = tuple(transactions)
        self._table = table
        self._display_currency = display_currency

    def __iter__(self) -> Iterator[SeriesPoint]:
        for tx in sorted(self._transactions, key=lambda t: t.created_at):
            yield SeriesPoint(
                date=tx.created_at,
                amount=self._table.convert(tx.signed_amount, tx.currency, self._display_currency),
                original_amount=tx.amount,
                kind=tx.kind,
                currency=tx.currency,
            )

    def __len__(self) -> int:
        return len(self._transactions)


class LedgerEngine:
    """
    Multi-currency ledger over the entity store's transactions.

    Read operations take the scope's transactions explicitly; write
    operations append to the store.
    """

    def __init__(self, currency_table: CurrencyTable, store: EntityStore):
        self._table = currency_table
        self._store = store

    @property
    def currency_table(self) -> CurrencyTable:
        return self._table

    # -------------------------------------------------------------------------
    # Figures
    # -------------------------------------------------------------------------

    def _total(
        self,
        transactions: Iterable[Transaction],
        kind: TransactionKind,
        display_currency: Any,
    ) -> Decimal:
        display = validate_currency(display_currency)
        total = Decimal("0")
        for tx in transactions:
            if tx.kind == kind:
                total += self._table.convert(tx.amount, tx.currency, display)
        return total

    def total_budget(self, transactions: Iterable[Transaction], display_currency: Any) -> Decimal:
        return self._total(transactions, TransactionKind.BUDGET_ADD, display_currency)

    def total_expenses(self, transactions: Iterable[Transaction], display_currency: Any) -> Decimal:
        return self._total(transactions, TransactionKind.EXPENSE, display_currency)

    def balance(self, transactions: Iterable[Transaction], display_currency: Any) -> Decimal:
        transactions = tuple(transactions)
        return (
            self.total_budget(transactions, display_currency)
            - self.total_expenses(transactions, display_currency)
        )

    def utilization_percent(self, transactions: Iterable[Transaction], display_currency: Any) -> Decimal:
        """Share of the budget already spent. Zero when there is no budget."""
        transactions = tuple(transactions)
        budget = self.total_budget(transactions, display_currency)
        if budget <= 0:
            return Decimal("0")
        return self.total_expenses(transactions, display_currency) / budget * HUNDRED

    def summary(self, transactions: Iterable[Transaction], display_currency: Any) -> LedgerSummary:
        transactions = tuple(transactions)
        display = validate_currency(display_currency)
        budget = self.total_budget(transactions, display)
        expenses = self.total_expenses(transactions, display)
        return LedgerSummary(
            display_currency=display,
            total_budget=budget,
            total_expenses=expenses,
            balance=budget - expenses,
            utilization_percent=(expenses / budget * HUNDRED) if budget > 0 else Decimal("0"),
        )

    def series(self, transactions: Iterable[Transaction], display_currency: Any) -> LedgerSeries:
        return LedgerSeries(transactions, self._table, validate_currency(display_currency))

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def check_expense(
        self,
        amount: Any,
        currency: Any,
        scope_transactions: Sequence[Transaction],
        display_currency: Any,
    ) -> Decimal:
        """
        Admission check for a proposed expense.

        Returns the converted amount when it fits.

        Raises:
            InvalidAmountError / UnsupportedCurrencyError: bad input
            InsufficientFundsError: converted amount exceeds the scope balance
        """
        value = validate_amount(amount)
        display = validate_currency(display_currency)
        converted = self._table.convert(value, validate_currency(currency), display)
        available = self.balance(scope_transactions, display)
        if converted > available:
            raise InsufficientFundsError(
                attempted=converted,
                available=available,
                currency=display.value,
            )
        return converted

    def record_expense(
        self,
        amount: Any,
        currency: Any,
        reason: str,
        author_id: str,
        scope_transactions: Sequence[Transaction],
        display_currency: Any,
        at: Optional[datetime] = None,
    ) -> Transaction:
        """Admit an expense against the scope balance, then append it."""
        self.check_expense(amount, currency, scope_transactions, display_currency)
        tx = Transaction(
            amount=validate_amount(amount),
            reason=reason,
            created_at=at or utc_now(),
            kind=TransactionKind.EXPENSE,
            currency=validate_currency(currency),
            author_id=author_id,
        )
        self._store.append_transaction(tx)
        return tx

    def record_budget_credit(
        self,
        amount: Any,
        currency: Any,
        reason: str,
        author_id: str,
        at: Optional[datetime] = None,
    ) -> Transaction:
        """Append a budget credit. Always accepted once the input is valid."""
        tx = Transaction(
            amount=validate_amount(amount),
            reason=reason,
            created_at=at or utc_now(),
            kind=TransactionKind.BUDGET_ADD,
            currency=validate_currency(currency),
            author_id=author_id,
        )
        self._store.append_transaction(tx)
        return tx
