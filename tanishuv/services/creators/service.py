"""
CreatorService: creator monetization settings, paid content catalog, access checks.
Money never moves here; purchases and subscriptions settle through SettlementService.
"""
import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy.orm import Session

from tanishuv.models.creator_profile import CreatorProfile
from tanishuv.models.gift import Gift
from tanishuv.models.paid_content import CONTENT_TYPES, ContentPurchase, PaidContent
from tanishuv.models.subscription import Subscription
from tanishuv.models.withdrawal_request import PAYOUT_METHODS, WithdrawalRequest
from tanishuv.services.errors import ContentNotFound, ValidationFailed
from tanishuv.services.wallets.service import WalletService

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "subscription_enabled",
    "subscription_price",
    "subscription_benefits",
    "default_photo_price",
    "default_story_price",
    "default_message_price",
    "tips_enabled",
    "min_tip_amount",
    "payout_method",
    "payout_details",
    "min_payout_amount",
)

_PRICE_FIELDS = (
    "subscription_price",
    "default_photo_price",
    "default_story_price",
    "default_message_price",
    "min_tip_amount",
    "min_payout_amount",
)


class CreatorService:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_profile(self, user_id: str) -> CreatorProfile | None:
        return self.db.query(CreatorProfile).filter(CreatorProfile.user_id == user_id).one_or_none()

    def upsert_profile(self, user_id: str, **fields: Any) -> CreatorProfile:
        """Create or update the creator's settings and flag the wallet as a creator."""
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise ValidationFailed(f"Noma'lum maydonlar: {', '.join(sorted(unknown))}")
        for name in _PRICE_FIELDS:
            value = fields.get(name)
            if value is not None and value < 0:
                raise ValidationFailed("Narx manfiy bo'lishi mumkin emas")
        if fields.get("payout_method") is not None and fields["payout_method"] not in PAYOUT_METHODS:
            raise ValidationFailed("Noto'g'ri to'lov usuli")

        profile = self.get_profile(user_id)
        if profile is None:
            profile = CreatorProfile(id=str(uuid4()), user_id=user_id)
            self.db.add(profile)
        for name, value in fields.items():
            if value is not None:
                setattr(profile, name, value)
        profile.updated_at = datetime.now(timezone.utc)

        WalletService(self.db).mark_creator(user_id)
        self.db.commit()
        self.db.refresh(profile)
        logger.info("creator_profile_saved", extra={"user_id": user_id})
        return profile

    # ------------------------------------------------------------------
    # Paid content
    # ------------------------------------------------------------------

    def create_content(
        self,
        creator_id: str,
        content_type: str,
        price: int,
        title: str | None = None,
        description: str | None = None,
        preview_url: str | None = None,
        content_urls: list[str] | None = None,
        is_free_for_subscribers: bool = False,
        expires_at: datetime | None = None,
    ) -> PaidContent:
        if content_type not in CONTENT_TYPES:
            raise ValidationFailed("Noto'g'ri kontent turi")
        if price <= 0:
            raise ValidationFailed("Narx musbat bo'lishi kerak")
        content = PaidContent(
            id=str(uuid4()),
            creator_id=creator_id,
            type=content_type,
            title=title,
            description=description,
            price=price,
            preview_url=preview_url,
            content_urls=list(content_urls or []),
            is_free_for_subscribers=is_free_for_subscribers,
            expires_at=expires_at,
        )
        self.db.add(content)
        WalletService(self.db).mark_creator(creator_id)
        self.db.commit()
        self.db.refresh(content)
        logger.info("paid_content_created", extra={"user_id": creator_id, "amount": price})
        return content

    def get_content(self, content_id: str) -> PaidContent:
        content = self.db.get(PaidContent, content_id)
        if content is None or not content.is_active:
            raise ContentNotFound()
        return content

    def list_content(self, creator_id: str, limit: int = 50) -> list[PaidContent]:
        return (
            self.db.query(PaidContent)
            .filter(PaidContent.creator_id == creator_id, PaidContent.is_active.is_(True))
            .order_by(PaidContent.created_at.desc())
            .limit(limit)
            .all()
        )

    # ------------------------------------------------------------------
    # Access checks
    # ------------------------------------------------------------------

    def has_purchased(self, user_id: str, content_id: str) -> bool:
        return (
            self.db.query(ContentPurchase.id)
            .filter(ContentPurchase.buyer_id == user_id, ContentPurchase.content_id == content_id)
            .first()
            is not None
        )

    def get_subscription(self, subscriber_id: str, creator_id: str) -> Subscription | None:
        return (
            self.db.query(Subscription)
            .filter(
                Subscription.subscriber_id == subscriber_id,
                Subscription.creator_id == creator_id,
            )
            .one_or_none()
        )

    def is_subscribed(self, subscriber_id: str, creator_id: str) -> bool:
        """Active and not yet expired; the expiry task may lag behind expires_at."""
        sub = self.get_subscription(subscriber_id, creator_id)
        if sub is None or sub.status != "active":
            return False
        expires_at = sub.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at > datetime.now(timezone.utc)

    def has_access(self, user_id: str, content: PaidContent) -> bool:
        if user_id == content.creator_id:
            return True
        if self.has_purchased(user_id, content.id):
            return True
        return bool(content.is_free_for_subscribers) and self.is_subscribed(user_id, content.creator_id)

    # ------------------------------------------------------------------
    # Catalogs & history
    # ------------------------------------------------------------------

    def list_gifts(self) -> list[Gift]:
        return (
            self.db.query(Gift)
            .filter(Gift.is_active.is_(True))
            .order_by(Gift.sort_order, Gift.price)
            .all()
        )

    def withdrawal_history(self, user_id: str, limit: int = 50) -> list[WithdrawalRequest]:
        return (
            self.db.query(WithdrawalRequest)
            .filter(WithdrawalRequest.user_id == user_id)
            .order_by(WithdrawalRequest.created_at.desc())
            .limit(limit)
            .all()
        )
