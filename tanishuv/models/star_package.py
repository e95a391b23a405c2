"""
StarPackage: catalog of in-app Stars sold for Telegram Stars (XTR).
Read-only for the ledger; ordering by sort_order.
"""
from uuid import uuid4

from sqlalchemy import Boolean, Column, Integer, String

from tanishuv.db.base import Base


class StarPackage(Base):
    __tablename__ = "star_packages"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    name = Column(String, nullable=False)
    stars_amount = Column(Integer, nullable=False)  # in-app Stars credited
    price_stars = Column(Integer, nullable=False)  # XTR price on the invoice
    bonus_percent = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)

    @property
    def bonus_stars(self) -> int:
        return (self.stars_amount * (self.bonus_percent or 0)) // 100

    @property
    def total_stars(self) -> int:
        return self.stars_amount + self.bonus_stars
