from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Mapping, Protocol

from fintrack.settings import FULL_SCAN, INCREMENTAL, normalize_balance_mode
from fintrack.store import DocumentStore

ZERO = Decimal("0")


@dataclass(frozen=True)
class BalanceSummary:
    balance: Decimal
    income: Decimal
    expense: Decimal

    def as_dict(self) -> dict[str, Decimal]:
        return {"balance": self.balance, "income": self.income, "expense": self.expense}


def summarize_balance(transactions: Iterable[Mapping[str, Any]]) -> BalanceSummary:
    income = ZERO
    expense = ZERO
    for txn in transactions:
        if txn["type"] == "income":
            income += _coerce_amount(txn["amount"])
        elif txn["type"] == "expense":
            expense += _coerce_amount(txn["amount"])
    return BalanceSummary(balance=income - expense, income=income, expense=expense)


def category_total(transactions: Iterable[Mapping[str, Any]]) -> Decimal:
    total = ZERO
    for txn in transactions:
        total += _coerce_amount(txn["amount"])
    return total


class BalancePolicy(Protocol):
    mode: str

    def record(self, email: str, transaction_type: str, amount: Decimal) -> None:
        ...

    def balance(self, email: str) -> dict[str, Any] | None:
        ...


@dataclass
class FullScanBalance:
    """Recomputes the balance from every stored transaction on each read."""

    store: DocumentStore
    mode: str = FULL_SCAN

    def record(self, email: str, transaction_type: str, amount: Decimal) -> None:
        return None

    def balance(self, email: str) -> dict[str, Any] | None:
        return summarize_balance(self.store.find_transactions(email)).as_dict()


@dataclass
class IncrementalBalance:
    """Keeps a running per-user aggregate that grows with every create.

    Updates and deletes leave the aggregate untouched, so it can drift from
    the live transactions.
    """

    store: DocumentStore
    mode: str = INCREMENTAL

    def record(self, email: str, transaction_type: str, amount: Decimal) -> None:
        amount = _coerce_amount(amount)
        if transaction_type == "income":
            self.store.increment_aggregate(email, income=amount, balance=amount)
        elif transaction_type == "expense":
            self.store.increment_aggregate(email, expense=amount, balance=-amount)
        else:
            raise ValueError(f"Unsupported transaction type: {transaction_type}")

    def balance(self, email: str) -> dict[str, Any] | None:
        return self.store.find_aggregate(email)

    def check_in(self, email: str) -> bool:
        if self.store.find_aggregate(email) is not None:
            return False
        return self.store.insert_aggregate(email)


def build_balance_policy(mode: str, store: DocumentStore) -> BalancePolicy:
    normalized = normalize_balance_mode(mode)
    if normalized == INCREMENTAL:
        return IncrementalBalance(store=store)
    return FullScanBalance(store=store)


def _coerce_amount(amount: Decimal | int | float | str) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))
