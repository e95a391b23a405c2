"""
LedgerService: append-mostly record of every balance-affecting event.

Rows are written inside the caller's unit of work (flush only, never commit),
so a settlement that fails later rolls its ledger rows back with it.
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import ROUND_FLOOR, Decimal
from typing import Any
from uuid import uuid4

from sqlalchemy import update
from sqlalchemy.orm import Session

from tanishuv.core.config import settings
from tanishuv.models.transaction import (
    PEER_TO_PEER_TYPES,
    TRANSACTION_STATUSES,
    TRANSACTION_TYPES,
    Transaction,
)
from tanishuv.services.errors import ValidationFailed
from tanishuv.utils.metrics import ledger_transactions_total

logger = logging.getLogger(__name__)

MAX_HISTORY_LIMIT = 200


def floor_fraction(amount: int, rate: float) -> int:
    """floor(amount * rate) without binary float rounding surprises."""
    return int((Decimal(amount) * Decimal(str(rate))).to_integral_value(rounding=ROUND_FLOOR))


def compute_fee(tx_type: str, amount: int, commission_rate: float) -> int:
    """Platform commission: charged on peer-to-peer types only."""
    if tx_type not in PEER_TO_PEER_TYPES:
        return 0
    return floor_fraction(amount, commission_rate)


class LedgerService:
    def __init__(self, db: Session, commission_rate: float | None = None):
        self.db = db
        self.commission_rate = settings.commission_rate if commission_rate is None else commission_rate

    def record(
        self,
        user_id: str,
        tx_type: str,
        amount: int,
        *,
        status: str = "completed",
        related_user_id: str | None = None,
        content_id: str | None = None,
        content_type: str | None = None,
        telegram_payment_id: str | None = None,
        invoice_payload: str | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Transaction:
        """
        Append a row for user_id. A peer-to-peer row with a counterparty gets a
        paired "earning" row for related_user_id carrying the same net amount.
        Both are flushed together; an IntegrityError propagates to the caller.
        """
        if tx_type not in TRANSACTION_TYPES:
            raise ValueError(f"Unknown transaction type: {tx_type}")
        if status not in TRANSACTION_STATUSES:
            raise ValueError(f"Unknown transaction status: {status}")
        if amount < 0:
            raise ValidationFailed("Summa manfiy bo'lishi mumkin emas")

        fee = compute_fee(tx_type, amount, self.commission_rate)
        net_amount = amount - fee
        tx = Transaction(
            id=str(uuid4()),
            user_id=user_id,
            type=tx_type,
            amount=amount,
            fee=fee,
            net_amount=net_amount,
            status=status,
            related_user_id=related_user_id,
            content_id=content_id,
            content_type=content_type,
            telegram_payment_id=telegram_payment_id,
            invoice_payload=invoice_payload,
            description=description,
            metadata_json=dict(metadata or {}),
        )
        self.db.add(tx)

        if related_user_id and tx_type in PEER_TO_PEER_TYPES:
            self.db.add(
                Transaction(
                    id=str(uuid4()),
                    user_id=related_user_id,
                    type="earning",
                    amount=net_amount,
                    fee=0,
                    net_amount=net_amount,
                    status=status,
                    related_user_id=user_id,
                    content_id=content_id,
                    content_type=content_type,
                    description=description,
                    metadata_json={"source_transaction_id": tx.id, "source_type": tx_type},
                )
            )
            ledger_transactions_total.labels(type="earning", status=status).inc()

        self.db.flush()
        ledger_transactions_total.labels(type=tx_type, status=status).inc()
        logger.info(
            "ledger_recorded",
            extra={
                "user_id": user_id,
                "related_user_id": related_user_id,
                "transaction_id": tx.id,
                "operation": tx_type,
                "amount": amount,
                "fee": fee,
                "net_amount": net_amount,
            },
        )
        return tx

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def history(self, user_id: str, limit: int = 50) -> list[Transaction]:
        """Completed rows only, newest first."""
        if limit < 1:
            raise ValidationFailed("limit musbat bo'lishi kerak")
        return (
            self.db.query(Transaction)
            .filter(Transaction.user_id == user_id, Transaction.status == "completed")
            .order_by(Transaction.created_at.desc())
            .limit(min(limit, MAX_HISTORY_LIMIT))
            .all()
        )

    def get(self, transaction_id: str) -> Transaction | None:
        return self.db.get(Transaction, transaction_id)

    def find_by_charge_id(self, telegram_payment_id: str) -> Transaction | None:
        return (
            self.db.query(Transaction)
            .filter(Transaction.telegram_payment_id == telegram_payment_id)
            .one_or_none()
        )

    def find_purchase_by_payload(self, invoice_payload: str) -> Transaction | None:
        return (
            self.db.query(Transaction)
            .filter(Transaction.type == "purchase", Transaction.invoice_payload == invoice_payload)
            .one_or_none()
        )

    # ------------------------------------------------------------------
    # Purchase state transitions
    # ------------------------------------------------------------------

    def mark_completed(
        self,
        *,
        telegram_payment_id: str,
        transaction_id: str | None = None,
        invoice_payload: str | None = None,
        amount: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Transaction | None:
        """
        Move a pending (or swept-to-failed) purchase to completed under a row lock.

        Returns None when nothing was transitioned: the charge id is already
        recorded, no purchase row matches, or the row is already completed.
        """
        if not transaction_id and not invoice_payload:
            raise ValueError("transaction_id or invoice_payload is required")

        if self.find_by_charge_id(telegram_payment_id) is not None:
            logger.info("purchase_already_completed", extra={"charge_id": telegram_payment_id})
            return None

        query = self.db.query(Transaction).filter(Transaction.type == "purchase")
        if transaction_id:
            query = query.filter(Transaction.id == transaction_id)
        else:
            query = query.filter(Transaction.invoice_payload == invoice_payload)
        tx = query.with_for_update().populate_existing().one_or_none()

        if tx is None or tx.status not in ("pending", "failed"):
            return None

        tx.status = "completed"
        tx.telegram_payment_id = telegram_payment_id
        if amount is not None:
            tx.amount = amount
            tx.net_amount = amount - (tx.fee or 0)
        if metadata:
            tx.metadata_json = {**(tx.metadata_json or {}), **metadata}
        self.db.flush()
        ledger_transactions_total.labels(type="purchase", status="completed").inc()
        return tx

    def mark_failed(self, transaction_id: str, reason: str) -> Transaction | None:
        tx = (
            self.db.query(Transaction)
            .filter(Transaction.id == transaction_id)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )
        if tx is None or tx.status != "pending":
            return tx
        tx.status = "failed"
        tx.metadata_json = {**(tx.metadata_json or {}), "failure_reason": reason}
        self.db.flush()
        ledger_transactions_total.labels(type=tx.type, status="failed").inc()
        logger.info("transaction_failed", extra={"transaction_id": transaction_id, "reason": reason})
        return tx

    def expire_stale_pending(self, older_than: timedelta) -> int:
        """Sweep pending purchases created before now - older_than to failed."""
        cutoff = datetime.now(timezone.utc) - older_than
        result = self.db.execute(
            update(Transaction)
            .where(
                Transaction.type == "purchase",
                Transaction.status == "pending",
                Transaction.created_at < cutoff,
            )
            .values(status="failed", updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
