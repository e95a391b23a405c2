"""
Request/response bodies of the /payments and /creators routes.
The Mini App speaks camelCase; snake_case names are accepted too.
"""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ----- Requests -----


class CreateInvoiceIn(CamelModel):
    user_id: str = Field(..., min_length=1)
    package_id: str = Field(..., min_length=1)
    telegram_user_id: str | int


class SendTipIn(CamelModel):
    sender_id: str = Field(..., min_length=1)
    receiver_id: str = Field(..., min_length=1)
    amount: int
    message: str | None = Field(None, max_length=500)
    is_anonymous: bool = False


class SendGiftIn(CamelModel):
    sender_id: str = Field(..., min_length=1)
    receiver_id: str = Field(..., min_length=1)
    gift_id: str = Field(..., min_length=1)
    message: str | None = Field(None, max_length=500)
    is_anonymous: bool = False


class SubscribeIn(CamelModel):
    """Price and period come from the creator profile and settings, never from the client."""

    model_config = ConfigDict(extra="forbid")

    subscriber_id: str = Field(..., min_length=1)
    creator_id: str = Field(..., min_length=1)


class PurchaseContentIn(CamelModel):
    buyer_id: str = Field(..., min_length=1)
    content_id: str = Field(..., min_length=1)


class WithdrawIn(CamelModel):
    user_id: str = Field(..., min_length=1)
    amount: int
    method: str
    payout_details: dict[str, Any] = Field(default_factory=dict)


class CreatorProfileIn(CamelModel):
    subscription_enabled: bool | None = None
    subscription_price: int | None = None
    subscription_benefits: list[str] | None = None
    default_photo_price: int | None = None
    default_story_price: int | None = None
    default_message_price: int | None = None
    tips_enabled: bool | None = None
    min_tip_amount: int | None = None
    payout_method: str | None = None
    payout_details: dict[str, Any] | None = None
    min_payout_amount: int | None = None


class PaidContentIn(CamelModel):
    type: str
    price: int
    title: str | None = None
    description: str | None = None
    preview_url: str | None = None
    content_urls: list[str] = Field(default_factory=list)
    is_free_for_subscribers: bool = False
    expires_at: datetime | None = None


# ----- Responses (serialized by_alias) -----


class WalletOut(CamelModel):
    balance: int
    total_earned: int
    total_spent: int
    total_withdrawn: int
    pending_withdrawal: int
    is_creator: bool
    creator_verified: bool


class PackageOut(CamelModel):
    id: str
    name: str
    stars_amount: int
    price_stars: int
    bonus_percent: int
    bonus_stars: int
    total_stars: int
    sort_order: int


class TransactionOut(CamelModel):
    id: str
    type: str
    amount: int
    fee: int
    net_amount: int
    status: str
    related_user_id: str | None = None
    content_id: str | None = None
    content_type: str | None = None
    description: str | None = None
    created_at: datetime


class GiftOut(CamelModel):
    id: str
    name: str
    emoji: str
    description: str | None = None
    price: int
    animation_url: str | None = None


class WithdrawalOut(CamelModel):
    id: str
    amount: int
    fee: int
    net_amount: int
    method: str
    status: str
    created_at: datetime
    processed_at: datetime | None = None
    rejection_reason: str | None = None


class CreatorProfileOut(CamelModel):
    user_id: str
    subscription_enabled: bool
    subscription_price: int
    subscription_benefits: list[str]
    default_photo_price: int
    default_story_price: int
    default_message_price: int
    tips_enabled: bool
    min_tip_amount: int
    total_subscribers: int
    total_content_sold: int
    payout_method: str | None = None
    min_payout_amount: int


class PaidContentOut(CamelModel):
    id: str
    creator_id: str
    type: str
    title: str | None = None
    description: str | None = None
    price: int
    preview_url: str | None = None
    is_free_for_subscribers: bool
    purchase_count: int
    created_at: datetime
