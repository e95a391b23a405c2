from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from tanishuv.db.base import Base


class Tip(Base):
    __tablename__ = "tips"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    sender_id = Column(String, nullable=False, index=True)
    receiver_id = Column(String, nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    message = Column(String, nullable=True)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    transaction_id = Column(String, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
