"""
Wallet model: one row per user, the only mutable source of spendable Stars.
stars_balance is changed exclusively through WalletService (conditional UPDATE).
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String

from tanishuv.db.base import Base


class Wallet(Base):
    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint("stars_balance >= 0", name="ck_wallets_stars_balance_non_negative"),
        CheckConstraint("pending_withdrawal >= 0", name="ck_wallets_pending_withdrawal_non_negative"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, unique=True, nullable=False, index=True)
    stars_balance = Column(Integer, nullable=False, default=0)
    total_earned = Column(Integer, nullable=False, default=0)
    total_spent = Column(Integer, nullable=False, default=0)
    total_withdrawn = Column(Integer, nullable=False, default=0)
    pending_withdrawal = Column(Integer, nullable=False, default=0)  # earmarked, still inside stars_balance
    is_creator = Column(Boolean, nullable=False, default=False)
    creator_verified = Column(Boolean, nullable=False, default=False)  # set by moderation
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

    @property
    def available_balance(self) -> int:
        """Stars that can still be spent or withdrawn."""
        return (self.stars_balance or 0) - (self.pending_withdrawal or 0)
