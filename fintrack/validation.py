from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel

MIN_AMOUNT = Decimal("1")
# Bounds of the Numeric(14, 2) amount column.
MAX_AMOUNT = Decimal("1e12")
AMOUNT_STEP = Decimal("0.01")

INVALID_TYPE = "INVALID_TYPE"
MISSING_CATEGORY = "MISSING_CATEGORY"
INVALID_AMOUNT = "INVALID_AMOUNT"
MISSING_DATE = "MISSING_DATE"

MESSAGES = {
    INVALID_TYPE: "Invalid type",
    MISSING_CATEGORY: "Category is required",
    INVALID_AMOUNT: "Amount must be at least 1",
    MISSING_DATE: "Date is required",
}


class ValidationFailure(ValueError):
    """Raised when a transaction payload breaks one of the field rules."""

    def __init__(self, reason: str) -> None:
        super().__init__(MESSAGES[reason])
        self.reason = reason
        self.message = MESSAGES[reason]


class TransactionType:
    values = {"income", "expense"}

    @classmethod
    def validate(cls, value: Any) -> str:
        if not isinstance(value, str) or value not in cls.values:
            raise ValidationFailure(INVALID_TYPE)
        return value


@dataclass(frozen=True)
class TransactionFields:
    type: str
    category: str
    amount: Decimal
    description: str
    date: str
    name: str


class TransactionPayload(BaseModel):
    # Fields stay loosely typed so each missing or malformed value maps to
    # its own failure reason instead of a generic schema error.
    type: Any = None
    category: Any = None
    amount: Any = None
    description: Any = None
    date: Any = None
    name: Any = None

    @classmethod
    def validate_payload(cls, payload: "TransactionPayload") -> TransactionFields:
        transaction_type = TransactionType.validate(payload.type)
        if not payload.category:
            raise ValidationFailure(MISSING_CATEGORY)
        amount = coerce_amount(payload.amount)
        if not payload.date:
            raise ValidationFailure(MISSING_DATE)

        return TransactionFields(
            type=transaction_type,
            category=str(payload.category),
            amount=amount,
            description=str(payload.description or ""),
            date=str(payload.date),
            name=str(payload.name or ""),
        )


def validate_transaction(raw: dict[str, Any] | TransactionPayload) -> TransactionFields:
    payload = raw if isinstance(raw, TransactionPayload) else TransactionPayload(**raw)
    return TransactionPayload.validate_payload(payload)


def coerce_amount(value: Any) -> Decimal:
    if value is None or isinstance(value, bool) or value == "":
        raise ValidationFailure(INVALID_AMOUNT)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValidationFailure(INVALID_AMOUNT) from exc
    if not amount.is_finite() or amount < MIN_AMOUNT or amount >= MAX_AMOUNT:
        raise ValidationFailure(INVALID_AMOUNT)
    if amount != amount.quantize(AMOUNT_STEP):
        raise ValidationFailure(INVALID_AMOUNT)
    return amount
