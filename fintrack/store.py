from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    Column,
    DateTime,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    create_engine,
    delete,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from fintrack.logging_utils import get_stream_logger

logger = get_stream_logger(__name__)

metadata = MetaData()

transactions = Table(
    "transactions",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("type", String(10), nullable=False),
    Column("category", String(255), nullable=False, index=True),
    Column("amount", Numeric(14, 2), nullable=False),
    Column("description", Text, nullable=False, default=""),
    Column("date", String(64), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("email", String(255), nullable=False, index=True),
    Column("name", String(255), nullable=False, default=""),
)

user_aggregates = Table(
    "user_aggregates",
    metadata,
    Column("email", String(255), primary_key=True),
    Column("balance", Numeric(14, 2), nullable=False, default=0),
    Column("income", Numeric(14, 2), nullable=False, default=0),
    Column("expense", Numeric(14, 2), nullable=False, default=0),
)

MUTABLE_FIELDS = ("type", "category", "amount", "description", "date", "name")


class StoreNotReady(RuntimeError):
    """Raised when the store is used before a successful connect()."""


def build_engine(database_url: str) -> Engine:
    connect_args = {}
    engine_kwargs: dict[str, Any] = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            engine_kwargs["poolclass"] = StaticPool
    return create_engine(database_url, connect_args=connect_args, **engine_kwargs)


def new_document_id() -> str:
    return uuid.uuid4().hex


class DocumentStore:
    """Owner-partitioned document access for transactions and user aggregates.

    Every call is a single statement in its own connection; nothing spans
    more than one call.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self.ready = False

    @classmethod
    def from_url(cls, database_url: str) -> "DocumentStore":
        return cls(build_engine(database_url))

    def connect(self) -> None:
        metadata.create_all(self.engine)
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        self.ready = True
        logger.info("Document store ready at %s", self.engine.url.render_as_string(hide_password=True))

    def close(self) -> None:
        self.ready = False
        self.engine.dispose()

    def _require_ready(self) -> None:
        if not self.ready:
            raise StoreNotReady("Document store is not connected.")

    # Transactions

    def insert_transaction(self, document: dict[str, Any]) -> str:
        self._require_ready()
        document_id = new_document_id()
        with self.engine.begin() as conn:
            conn.execute(insert(transactions).values(id=document_id, **document))
        return document_id

    def update_transaction(self, document_id: str, email: str, fields: dict[str, Any]) -> int:
        self._require_ready()
        values = {key: fields[key] for key in MUTABLE_FIELDS if key in fields}
        stmt = (
            update(transactions)
            .where(transactions.c.id == document_id, transactions.c.email == email)
            .values(**values)
        )
        with self.engine.begin() as conn:
            result = conn.execute(stmt)
        return result.rowcount

    def find_transactions(
        self,
        email: str,
        *,
        category: str | None = None,
        newest_first: bool = False,
    ) -> list[dict[str, Any]]:
        self._require_ready()
        stmt = select(transactions).where(transactions.c.email == email)
        if category is not None:
            stmt = stmt.where(transactions.c.category == category)
        if newest_first:
            stmt = stmt.order_by(transactions.c.created_at.desc())
        with self.engine.begin() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [_transaction_document(row) for row in rows]

    def find_transaction(self, document_id: str, email: str) -> dict[str, Any] | None:
        self._require_ready()
        stmt = select(transactions).where(
            transactions.c.id == document_id,
            transactions.c.email == email,
        )
        with self.engine.begin() as conn:
            row = conn.execute(stmt).mappings().first()
        if row is None:
            return None
        return _transaction_document(row)

    def delete_transaction(self, document_id: str, email: str) -> int:
        self._require_ready()
        stmt = delete(transactions).where(
            transactions.c.id == document_id,
            transactions.c.email == email,
        )
        with self.engine.begin() as conn:
            result = conn.execute(stmt)
        return result.rowcount

    # User aggregates

    def find_aggregate(self, email: str) -> dict[str, Any] | None:
        self._require_ready()
        stmt = select(user_aggregates).where(user_aggregates.c.email == email)
        with self.engine.begin() as conn:
            row = conn.execute(stmt).mappings().first()
        if row is None:
            return None
        return {
            "email": row["email"],
            "balance": row["balance"],
            "income": row["income"],
            "expense": row["expense"],
        }

    def insert_aggregate(self, email: str) -> bool:
        self._require_ready()
        stmt = insert(user_aggregates).values(
            email=email,
            balance=Decimal("0"),
            income=Decimal("0"),
            expense=Decimal("0"),
        )
        try:
            with self.engine.begin() as conn:
                conn.execute(stmt)
        except IntegrityError:
            return False
        return True

    def increment_aggregate(
        self,
        email: str,
        *,
        balance: Decimal = Decimal("0"),
        income: Decimal = Decimal("0"),
        expense: Decimal = Decimal("0"),
    ) -> int:
        self._require_ready()
        # Column arithmetic in one UPDATE; atomic under concurrent creates.
        stmt = (
            update(user_aggregates)
            .where(user_aggregates.c.email == email)
            .values(
                balance=user_aggregates.c.balance + balance,
                income=user_aggregates.c.income + income,
                expense=user_aggregates.c.expense + expense,
            )
        )
        with self.engine.begin() as conn:
            result = conn.execute(stmt)
        return result.rowcount


def _transaction_document(row: Any) -> dict[str, Any]:
    created_at: datetime = row["created_at"]
    return {
        "_id": row["id"],
        "type": row["type"],
        "category": row["category"],
        "amount": row["amount"],
        "description": row["description"],
        "date": row["date"],
        "createdAt": created_at,
        "email": row["email"],
        "name": row["name"],
    }
