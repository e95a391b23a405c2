from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from tanishuv.db.base import Base


class Gift(Base):
    __tablename__ = "gifts"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    name = Column(String, nullable=False)
    emoji = Column(String, nullable=False, default="")
    description = Column(String, nullable=True)
    price = Column(Integer, nullable=False)
    animation_url = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)


class SentGift(Base):
    __tablename__ = "sent_gifts"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    sender_id = Column(String, nullable=False, index=True)
    receiver_id = Column(String, nullable=False, index=True)
    gift_id = Column(String, nullable=False)
    message = Column(String, nullable=True)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    transaction_id = Column(String, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
