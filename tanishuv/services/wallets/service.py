"""
WalletService: the only writer of wallet balances.

Every balance change is a single conditional UPDATE whose affected-row count
is checked, so concurrent requests against the same wallet can never drive
stars_balance (or the un-earmarked part of it) below zero.
"""
import logging
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import insert, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from tanishuv.models.wallet import Wallet
from tanishuv.services.errors import InsufficientFunds, ValidationFailed
from tanishuv.utils.metrics import balance_rejected_total

logger = logging.getLogger(__name__)

LIFETIME_COUNTERS = frozenset({"total_earned", "total_spent", "total_withdrawn"})


class WalletService:
    def __init__(self, db: Session):
        self.db = db

    def get_wallet(self, user_id: str) -> Wallet | None:
        return (
            self.db.query(Wallet)
            .filter(Wallet.user_id == user_id)
            .populate_existing()
            .one_or_none()
        )

    def get_or_create_wallet(self, user_id: str) -> Wallet:
        """Return the user's wallet, creating an empty one on first access."""
        if not user_id:
            raise ValidationFailed("userId kerak")
        wallet = self.get_wallet(user_id)
        if wallet is not None:
            return wallet

        result = self.db.execute(self._insert_if_absent(user_id))
        if result.rowcount:
            logger.info("wallet_created", extra={"user_id": user_id})
        return self.get_wallet(user_id)

    def _insert_if_absent(self, user_id: str):
        now = datetime.now(timezone.utc)
        values = {
            "id": str(uuid4()),
            "user_id": user_id,
            "stars_balance": 0,
            "total_earned": 0,
            "total_spent": 0,
            "total_withdrawn": 0,
            "pending_withdrawal": 0,
            "is_creator": False,
            "creator_verified": False,
            "created_at": now,
            "updated_at": now,
        }
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(Wallet).values(**values).on_conflict_do_nothing(index_elements=["user_id"])
        if dialect == "sqlite":
            return sqlite_insert(Wallet).values(**values).on_conflict_do_nothing(index_elements=["user_id"])
        return insert(Wallet).values(**values)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def credit(self, user_id: str, amount: int, counter: str | None = None) -> Wallet:
        """
        Add amount to stars_balance and, if given, to a lifetime counter
        (total_earned for earnings; None for plain purchases).
        """
        if amount < 0:
            raise ValidationFailed("Summa manfiy bo'lishi mumkin emas")
        self._check_counter(counter)
        self.get_or_create_wallet(user_id)
        if amount == 0:
            return self.get_wallet(user_id)

        values = {
            "stars_balance": Wallet.stars_balance + amount,
            "updated_at": datetime.now(timezone.utc),
        }
        if counter:
            values[counter] = getattr(Wallet, counter) + amount

        self.db.execute(
            update(Wallet)
            .where(Wallet.user_id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        logger.info("wallet_credited", extra={"user_id": user_id, "amount": amount})
        return self.get_wallet(user_id)

    def debit(self, user_id: str, amount: int, counter: str | None = "total_spent") -> Wallet:
        """
        Atomically check and subtract. The balance test lives in the WHERE clause,
        earmarked withdrawal funds are not spendable.
        Raises InsufficientFunds without touching the row when funds are short.
        """
        if amount <= 0:
            raise ValidationFailed("Summa musbat bo'lishi kerak")
        self._check_counter(counter)

        values = {
            "stars_balance": Wallet.stars_balance - amount,
            "updated_at": datetime.now(timezone.utc),
        }
        if counter:
            values[counter] = getattr(Wallet, counter) + amount

        result = self.db.execute(
            update(Wallet)
            .where(
                Wallet.user_id == user_id,
                Wallet.stars_balance - Wallet.pending_withdrawal >= amount,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            balance_rejected_total.inc()
            logger.info("debit_rejected", extra={"user_id": user_id, "amount": amount})
            raise InsufficientFunds()

        logger.info("wallet_debited", extra={"user_id": user_id, "amount": amount})
        return self.get_wallet(user_id)

    def earmark_withdrawal(self, user_id: str, amount: int) -> Wallet:
        """Reserve amount for a payout: pending_withdrawal grows, stars_balance stays."""
        if amount <= 0:
            raise ValidationFailed("Summa musbat bo'lishi kerak")
        result = self.db.execute(
            update(Wallet)
            .where(
                Wallet.user_id == user_id,
                Wallet.stars_balance - Wallet.pending_withdrawal >= amount,
            )
            .values(
                pending_withdrawal=Wallet.pending_withdrawal + amount,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            balance_rejected_total.inc()
            raise InsufficientFunds()
        return self.get_wallet(user_id)

    def mark_creator(self, user_id: str) -> Wallet:
        self.get_or_create_wallet(user_id)
        self.db.execute(
            update(Wallet)
            .where(Wallet.user_id == user_id, Wallet.is_creator.is_(False))
            .values(is_creator=True, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return self.get_wallet(user_id)

    @staticmethod
    def _check_counter(counter: str | None) -> None:
        if counter is not None and counter not in LIFETIME_COUNTERS:
            raise ValueError(f"Unknown wallet counter: {counter}")
