"""
WithdrawalRequest: creator payout request. Creation only earmarks funds
(wallet.pending_withdrawal); resolution is done by an operator outside this service.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String, Text

from tanishuv.db.base import Base, JSONType

PAYOUT_METHODS = ("telegram_stars", "card", "crypto")


class WithdrawalRequest(Base):
    __tablename__ = "withdrawal_requests"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    fee = Column(Integer, nullable=False)
    net_amount = Column(Integer, nullable=False)
    method = Column(String, nullable=False)
    payout_details = Column(JSONType, nullable=False, default=dict)
    status = Column(String, nullable=False, default="pending")  # pending / processing / completed / rejected / cancelled
    processed_at = Column(DateTime(timezone=True), nullable=True)
    processed_by = Column(String, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    transaction_id = Column(String, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
