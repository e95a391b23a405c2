"""
SettlementService: user-initiated Stars movements between wallets.

Each public method is one database transaction: validate, debit the payer with
a conditional UPDATE, write ledger rows, credit the payee, write the detail row.
Any failure rolls everything back and comes out as a failed SettlementResult.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from uuid import uuid4

from pydantic import BaseModel
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tanishuv.models.creator_profile import CreatorProfile
from tanishuv.models.gift import Gift, SentGift
from tanishuv.models.paid_content import ContentPurchase, PaidContent
from tanishuv.models.subscription import Subscription
from tanishuv.models.tip import Tip
from tanishuv.models.transaction import Transaction
from tanishuv.models.withdrawal_request import PAYOUT_METHODS, WithdrawalRequest
from tanishuv.services.audit.service import AuditService
from tanishuv.services.errors import (
    AlreadyPurchased,
    AlreadySubscribed,
    BelowMinimum,
    ContentNotFound,
    CreatorNotFound,
    GiftNotFound,
    InsufficientFunds,
    LedgerError,
    PersistenceError,
    ValidationFailed,
)
from tanishuv.services.ledger.service import LedgerService, floor_fraction
from tanishuv.services.settlement.config import SettlementConfig
from tanishuv.services.wallets.service import WalletService
from tanishuv.utils.metrics import settlements_total

logger = logging.getLogger(__name__)


class SettlementResult(BaseModel):
    """Outcome of one settlement; failures carry a stable error_code and a user message."""

    success: bool
    amount: int = 0
    fee: int = 0
    net_amount: int = 0
    transaction_id: str | None = None
    reference_id: str | None = None  # Tip / SentGift / Subscription / ContentPurchase / WithdrawalRequest id
    message: str | None = None
    error_code: str | None = None
    error: str | None = None

    model_config = {"frozen": True}

    @classmethod
    def failure(cls, exc: LedgerError) -> SettlementResult:
        return cls(success=False, error_code=exc.code, error=exc.message)


class SettlementService:
    def __init__(self, db: Session, config: SettlementConfig | None = None):
        self.db = db
        self.config = config or SettlementConfig.from_settings()
        self.wallets = WalletService(db)
        self.ledger = LedgerService(db, commission_rate=self.config.commission_rate)

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def _settle(
        self,
        operation: str,
        work: Callable[[], SettlementResult],
        on_conflict: type[LedgerError] = PersistenceError,
    ) -> SettlementResult:
        try:
            result = work()
            self.db.commit()
        except LedgerError as e:
            self.db.rollback()
            settlements_total.labels(operation=operation, status=e.code).inc()
            logger.info("settlement_rejected", extra={"operation": operation, "reason": e.code})
            return SettlementResult.failure(e)
        except IntegrityError:
            self.db.rollback()
            err = on_conflict()
            settlements_total.labels(operation=operation, status=err.code).inc()
            logger.warning("settlement_conflict", extra={"operation": operation, "reason": err.code})
            return SettlementResult.failure(err)
        except SQLAlchemyError as e:
            self.db.rollback()
            settlements_total.labels(operation=operation, status=PersistenceError.code).inc()
            logger.exception("settlement_persistence_error", extra={"operation": operation, "error": str(e)})
            return SettlementResult.failure(PersistenceError())

        settlements_total.labels(operation=operation, status="success").inc()
        logger.info(
            "settlement_completed",
            extra={
                "operation": operation,
                "transaction_id": result.transaction_id,
                "amount": result.amount,
                "fee": result.fee,
                "net_amount": result.net_amount,
            },
        )
        return result

    def _transfer(self, tx_type: str, payer_id: str, payee_id: str, amount: int, **ledger_kwargs: Any) -> Transaction:
        """Debit payer gross, record the paired rows, credit payee net."""
        self.wallets.debit(payer_id, amount, counter="total_spent")
        tx = self.ledger.record(payer_id, tx_type, amount, related_user_id=payee_id, **ledger_kwargs)
        self.wallets.credit(payee_id, tx.net_amount, counter="total_earned")
        return tx

    @staticmethod
    def _check_parties(payer_id: str, payee_id: str) -> None:
        if not payer_id or not payee_id:
            raise ValidationFailed("Foydalanuvchi ko'rsatilmagan")
        if payer_id == payee_id:
            raise ValidationFailed("O'zingizga to'lov qilib bo'lmaydi")

    @staticmethod
    def _check_amount(amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationFailed("Summa musbat butun son bo'lishi kerak")

    def _creator_profile(self, user_id: str) -> CreatorProfile | None:
        return self.db.query(CreatorProfile).filter(CreatorProfile.user_id == user_id).one_or_none()

    @staticmethod
    def _expired(expires_at: datetime | None) -> bool:
        if expires_at is None:
            return False
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= datetime.now(timezone.utc)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def send_tip(
        self,
        sender_id: str,
        receiver_id: str,
        amount: int,
        message: str | None = None,
        is_anonymous: bool = False,
    ) -> SettlementResult:
        def work() -> SettlementResult:
            self._check_parties(sender_id, receiver_id)
            self._check_amount(amount)
            min_tip = self.config.min_tip
            profile = self._creator_profile(receiver_id)
            if profile is not None:
                if not profile.tips_enabled:
                    raise ValidationFailed("Bu foydalanuvchi tip qabul qilmaydi")
                min_tip = max(min_tip, profile.min_tip_amount or 0)
            if amount < min_tip:
                raise BelowMinimum(f"Minimal tip: {min_tip} Stars")

            tx = self._transfer(
                "tip",
                sender_id,
                receiver_id,
                amount,
                description=message,
                metadata={"is_anonymous": is_anonymous},
            )
            tip = Tip(
                id=str(uuid4()),
                sender_id=sender_id,
                receiver_id=receiver_id,
                amount=amount,
                message=message,
                is_anonymous=is_anonymous,
                transaction_id=tx.id,
            )
            self.db.add(tip)
            self.db.flush()
            return SettlementResult(
                success=True,
                amount=tx.amount,
                fee=tx.fee,
                net_amount=tx.net_amount,
                transaction_id=tx.id,
                reference_id=tip.id,
                message="Tip muvaffaqiyatli yuborildi!",
            )

        return self._settle("tip", work)

    def send_gift(
        self,
        sender_id: str,
        receiver_id: str,
        gift_id: str,
        message: str | None = None,
        is_anonymous: bool = False,
    ) -> SettlementResult:
        def work() -> SettlementResult:
            self._check_parties(sender_id, receiver_id)
            gift = self.db.get(Gift, gift_id) if gift_id else None
            if gift is None or not gift.is_active:
                raise GiftNotFound()

            tx = self._transfer(
                "gift",
                sender_id,
                receiver_id,
                gift.price,
                content_id=gift.id,
                content_type="gift",
                description=f"{gift.emoji} {gift.name}".strip(),
                metadata={"gift_id": gift.id, "is_anonymous": is_anonymous},
            )
            sent = SentGift(
                id=str(uuid4()),
                sender_id=sender_id,
                receiver_id=receiver_id,
                gift_id=gift.id,
                message=message,
                is_anonymous=is_anonymous,
                transaction_id=tx.id,
            )
            self.db.add(sent)
            self.db.flush()
            return SettlementResult(
                success=True,
                amount=tx.amount,
                fee=tx.fee,
                net_amount=tx.net_amount,
                transaction_id=tx.id,
                reference_id=sent.id,
                message="Sovg'a yuborildi!",
            )

        return self._settle("gift", work)

    def subscribe_to_creator(
        self,
        subscriber_id: str,
        creator_id: str,
        price: int | None = None,
        duration_days: int | None = None,
    ) -> SettlementResult:
        """
        Settle one subscription period at the creator's subscription_price. A
        price passed by the caller must match it; an expired or cancelled pair
        is renewed in place.
        """

        def work() -> SettlementResult:
            self._check_parties(subscriber_id, creator_id)
            now = datetime.now(timezone.utc)
            days = duration_days or self.config.subscription_duration_days

            sub = (
                self.db.query(Subscription)
                .filter(
                    Subscription.subscriber_id == subscriber_id,
                    Subscription.creator_id == creator_id,
                )
                .with_for_update()
                .one_or_none()
            )
            if sub is not None and sub.status == "active" and not self._expired(sub.expires_at):
                raise AlreadySubscribed()

            profile = self._creator_profile(creator_id)
            if profile is None or not profile.subscription_enabled:
                raise CreatorNotFound()
            amount = profile.subscription_price
            if price is not None and price != amount:
                raise ValidationFailed("Obuna narxi o'zgargan")
            self._check_amount(amount)

            tx = self._transfer(
                "subscription",
                subscriber_id,
                creator_id,
                amount,
                content_type="subscription",
                metadata={"duration_days": days},
            )
            expires_at = now + timedelta(days=days)
            if sub is None:
                sub = Subscription(
                    id=str(uuid4()),
                    subscriber_id=subscriber_id,
                    creator_id=creator_id,
                    price_paid=amount,
                    status="active",
                    transaction_id=tx.id,
                    started_at=now,
                    expires_at=expires_at,
                )
                self.db.add(sub)
            else:
                sub.status = "active"
                sub.price_paid = amount
                sub.transaction_id = tx.id
                sub.renewed_at = now
                sub.cancelled_at = None
                sub.expires_at = expires_at

            self.db.execute(
                update(CreatorProfile)
                .where(CreatorProfile.user_id == creator_id)
                .values(total_subscribers=CreatorProfile.total_subscribers + 1)
                .execution_options(synchronize_session=False)
            )
            self.db.flush()
            return SettlementResult(
                success=True,
                amount=tx.amount,
                fee=tx.fee,
                net_amount=tx.net_amount,
                transaction_id=tx.id,
                reference_id=sub.id,
                message="Obuna faollashtirildi!",
            )

        return self._settle("subscription", work, on_conflict=AlreadySubscribed)

    def purchase_content(self, buyer_id: str, content_id: str) -> SettlementResult:
        def work() -> SettlementResult:
            content = self.db.get(PaidContent, content_id) if content_id else None
            if content is None or not content.is_active or self._expired(content.expires_at):
                raise ContentNotFound()
            self._check_parties(buyer_id, content.creator_id)

            already = (
                self.db.query(ContentPurchase.id)
                .filter(
                    ContentPurchase.buyer_id == buyer_id,
                    ContentPurchase.content_id == content.id,
                )
                .first()
            )
            if already is not None:
                raise AlreadyPurchased()

            tx = self._transfer(
                "content_unlock",
                buyer_id,
                content.creator_id,
                content.price,
                content_id=content.id,
                content_type=content.type,
                description=content.title,
            )
            purchase = ContentPurchase(
                id=str(uuid4()),
                buyer_id=buyer_id,
                content_id=content.id,
                price_paid=content.price,
                transaction_id=tx.id,
            )
            self.db.add(purchase)
            self.db.flush()

            self.db.execute(
                update(PaidContent)
                .where(PaidContent.id == content.id)
                .values(purchase_count=PaidContent.purchase_count + 1)
                .execution_options(synchronize_session=False)
            )
            self.db.execute(
                update(CreatorProfile)
                .where(CreatorProfile.user_id == content.creator_id)
                .values(total_content_sold=CreatorProfile.total_content_sold + 1)
                .execution_options(synchronize_session=False)
            )
            return SettlementResult(
                success=True,
                amount=tx.amount,
                fee=tx.fee,
                net_amount=tx.net_amount,
                transaction_id=tx.id,
                reference_id=purchase.id,
                message="Kontent ochildi!",
            )

        return self._settle("content_unlock", work, on_conflict=AlreadyPurchased)

    def request_withdrawal(
        self,
        user_id: str,
        amount: int,
        method: str,
        payout_details: dict[str, Any] | None = None,
    ) -> SettlementResult:
        """
        Earmark amount for a payout. stars_balance is untouched until an operator
        resolves the request; no ledger row is written here.
        """

        def work() -> SettlementResult:
            if not user_id:
                raise ValidationFailed("Foydalanuvchi ko'rsatilmagan")
            self._check_amount(amount)
            if method not in PAYOUT_METHODS:
                raise ValidationFailed("Noto'g'ri to'lov usuli")

            wallet = self.wallets.get_wallet(user_id)
            if wallet is None or amount > wallet.available_balance:
                raise InsufficientFunds()
            if amount < self.config.min_withdrawal:
                raise BelowMinimum(f"Minimal yechish: {self.config.min_withdrawal} Stars")

            fee = max(
                floor_fraction(amount, self.config.withdrawal_fee_rate),
                self.config.withdrawal_fee_min,
            )
            self.wallets.earmark_withdrawal(user_id, amount)
            request = WithdrawalRequest(
                id=str(uuid4()),
                user_id=user_id,
                amount=amount,
                fee=fee,
                net_amount=amount - fee,
                method=method,
                payout_details=dict(payout_details or {}),
                status="pending",
            )
            self.db.add(request)
            self.db.flush()
            AuditService(self.db).log(
                actor_type="user",
                actor_id=user_id,
                action="withdrawal_requested",
                entity_type="withdrawal_request",
                entity_id=request.id,
                payload={"amount": amount, "fee": fee, "method": method},
            )
            return SettlementResult(
                success=True,
                amount=amount,
                fee=fee,
                net_amount=amount - fee,
                reference_id=request.id,
                message="So'rov qabul qilindi",
            )

        return self._settle("withdrawal", work)
