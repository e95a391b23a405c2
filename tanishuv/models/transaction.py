"""
Transaction model: append-mostly ledger of every balance-affecting event.
Rows are only ever updated to move a Telegram purchase out of "pending".
telegram_payment_id and invoice_payload are unique: they are the idempotency keys
of webhook settlement.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Index, Integer, String

from tanishuv.db.base import Base, JSONType

TRANSACTION_TYPES = (
    "purchase",
    "tip",
    "subscription",
    "content_unlock",
    "story_view",
    "message_payment",
    "gift",
    "earning",
    "withdrawal",
    "refund",
    "bonus",
)

# Payer -> payee events: commission is charged and an "earning" row is paired.
PEER_TO_PEER_TYPES = frozenset(
    {"tip", "subscription", "content_unlock", "story_view", "message_payment", "gift"}
)

TRANSACTION_STATUSES = ("pending", "completed", "failed", "refunded", "cancelled")


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_user_status_created", "user_id", "status", "created_at"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False)
    amount = Column(Integer, nullable=False)  # gross
    fee = Column(Integer, nullable=False, default=0)  # platform commission
    net_amount = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="completed")
    related_user_id = Column(String, nullable=True, index=True)  # counterparty
    content_id = Column(String, nullable=True)
    content_type = Column(String, nullable=True)
    telegram_payment_id = Column(String, unique=True, nullable=True)
    invoice_payload = Column(String(128), unique=True, nullable=True)
    description = Column(String, nullable=True)
    metadata_json = Column("metadata", JSONType, nullable=False, default=dict)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
