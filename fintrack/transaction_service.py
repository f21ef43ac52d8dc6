from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from fintrack.balance_engine import BalancePolicy, IncrementalBalance, category_total
from fintrack.errors import ApiError, NotFound
from fintrack.identity import Identity
from fintrack.store import DocumentStore
from fintrack.validation import TransactionFields, TransactionPayload, validate_transaction


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CheckInUnavailable(ApiError):
    def __init__(self) -> None:
        super().__init__(404, "Check-in is not available in this balance mode")


@dataclass(frozen=True)
class CheckInResult:
    created: bool

    @property
    def message(self) -> str:
        return "User created" if self.created else "User already exists"


@dataclass
class TransactionService:
    """Owner-scoped transaction operations.

    Every operation receives the caller's :class:`Identity` explicitly and
    filters by its email; a transaction id owned by someone else behaves
    exactly like an id that does not exist.
    """

    store: DocumentStore
    policy: BalancePolicy
    clock: Callable[[], datetime] = field(default=utc_now)

    @property
    def mode(self) -> str:
        return self.policy.mode

    def create(self, payload: TransactionPayload | dict[str, Any], identity: Identity) -> str:
        fields = validate_transaction(payload)
        document = _document_fields(fields, identity)
        document["created_at"] = self.clock()
        document_id = self.store.insert_transaction(document)
        self.policy.record(identity.email, fields.type, fields.amount)
        return document_id

    def update(self, document_id: str, payload: TransactionPayload | dict[str, Any], identity: Identity) -> int:
        fields = validate_transaction(payload)
        return self.store.update_transaction(document_id, identity.email, _document_fields(fields, identity))

    def get_balance(self, identity: Identity) -> dict[str, Any] | None:
        return self.policy.balance(identity.email)

    def list_mine(self, identity: Identity) -> list[dict[str, Any]]:
        return self.store.find_transactions(identity.email, newest_first=True)

    def get_one(self, document_id: str, identity: Identity) -> dict[str, Any]:
        transaction = self.store.find_transaction(document_id, identity.email)
        if transaction is None:
            raise NotFound()
        same_category = self.store.find_transactions(identity.email, category=transaction["category"])
        return {**transaction, "category_total": category_total(same_category)}

    def delete(self, document_id: str, identity: Identity) -> None:
        deleted = self.store.delete_transaction(document_id, identity.email)
        if deleted != 1:
            raise NotFound(success=False, message="Transaction not found")

    def check_in(self, email: str) -> CheckInResult:
        if not isinstance(self.policy, IncrementalBalance):
            raise CheckInUnavailable()
        return CheckInResult(created=self.policy.check_in(email))


def _document_fields(fields: TransactionFields, identity: Identity) -> dict[str, Any]:
    return {
        "type": fields.type,
        "category": fields.category,
        "amount": fields.amount,
        "description": fields.description,
        "date": fields.date,
        "email": identity.email,
        "name": identity.name or fields.name,
    }
