"""
Settlement policy knobs, resolved once from settings and injected into SettlementService.
"""
from __future__ import annotations

from pydantic import BaseModel, Field

from tanishuv.core.config import settings


class SettlementConfig(BaseModel):
    commission_rate: float = Field(0.10, ge=0, lt=1)
    min_tip: int = Field(10, ge=0)
    min_withdrawal: int = Field(1000, ge=0)
    withdrawal_fee_rate: float = Field(0.02, ge=0, lt=1)
    withdrawal_fee_min: int = Field(50, ge=0)
    subscription_duration_days: int = Field(30, gt=0)

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls) -> SettlementConfig:
        return cls(
            commission_rate=settings.commission_rate,
            min_tip=settings.min_tip_stars,
            min_withdrawal=settings.min_withdrawal_stars,
            withdrawal_fee_rate=settings.withdrawal_fee_rate,
            withdrawal_fee_min=settings.withdrawal_fee_min_stars,
            subscription_duration_days=settings.subscription_duration_days,
        )
