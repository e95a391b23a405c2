from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, UniqueConstraint

from tanishuv.db.base import Base, JSONType

CONTENT_TYPES = ("photo", "photo_set", "story", "video", "message", "voice")


class PaidContent(Base):
    __tablename__ = "paid_content"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    creator_id = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False)
    title = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    price = Column(Integer, nullable=False)
    preview_url = Column(String, nullable=True)
    content_urls = Column(JSONType, nullable=False, default=list)
    is_free_for_subscribers = Column(Boolean, nullable=False, default=False)
    view_count = Column(Integer, nullable=False, default=0)
    purchase_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )


class ContentPurchase(Base):
    __tablename__ = "content_purchases"
    __table_args__ = (
        UniqueConstraint("buyer_id", "content_id", name="uq_content_purchases_buyer_content"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    buyer_id = Column(String, nullable=False, index=True)
    content_id = Column(String, nullable=False, index=True)
    price_paid = Column(Integer, nullable=False)
    transaction_id = Column(String, nullable=True)
    purchased_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
