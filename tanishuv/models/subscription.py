"""
Subscription: one row per (subscriber, creator); renewal updates the row in place.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, String, UniqueConstraint

from tanishuv.db.base import Base


class Subscription(Base):
    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("subscriber_id", "creator_id", name="uq_subscriptions_pair"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    subscriber_id = Column(String, nullable=False, index=True)
    creator_id = Column(String, nullable=False, index=True)
    price_paid = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="active")  # active / expired / cancelled / paused
    auto_renew = Column(Boolean, nullable=False, default=False)
    transaction_id = Column(String, nullable=True)
    started_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    expires_at = Column(DateTime(timezone=True), nullable=False)
    renewed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
