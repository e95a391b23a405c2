from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from tanishuv.db.base import Base, JSONType


class CreatorProfile(Base):
    __tablename__ = "creator_profiles"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, unique=True, nullable=False, index=True)

    subscription_enabled = Column(Boolean, nullable=False, default=False)
    subscription_price = Column(Integer, nullable=False, default=0)
    subscription_benefits = Column(JSONType, nullable=False, default=list)

    default_photo_price = Column(Integer, nullable=False, default=0)
    default_story_price = Column(Integer, nullable=False, default=0)
    default_message_price = Column(Integer, nullable=False, default=0)

    tips_enabled = Column(Boolean, nullable=False, default=True)
    min_tip_amount = Column(Integer, nullable=False, default=0)

    # Maintained by settlement, not by the creator
    total_subscribers = Column(Integer, nullable=False, default=0)
    total_content_sold = Column(Integer, nullable=False, default=0)

    payout_method = Column(String, nullable=True)  # telegram_stars / card / crypto
    payout_details = Column(JSONType, nullable=False, default=dict)
    min_payout_amount = Column(Integer, nullable=False, default=0)

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
