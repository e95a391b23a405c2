"""
PaymentService: Telegram Stars (XTR) purchases of in-app Stars.

Responsibilities:
- Package catalog
- Invoice creation with a short correlation payload and a pending purchase row
- pre_checkout_query validation (must be answered within 10 seconds)
- Idempotent crediting on successful_payment
"""
import logging
import time
from datetime import datetime, timezone
from typing import Literal

import redis
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tanishuv.core.config import settings
from tanishuv.models.star_package import StarPackage
from tanishuv.models.transaction import Transaction
from tanishuv.models.wallet import Wallet
from tanishuv.schemas.telegram import PreCheckoutQuery, SuccessfulPayment, Update
from tanishuv.services.audit.service import AuditService
from tanishuv.services.errors import ExternalServiceError, PackageNotFound, ValidationFailed
from tanishuv.services.ledger.service import LedgerService
from tanishuv.services.telegram.client import TelegramAPIError, TelegramClient
from tanishuv.services.wallets.service import WalletService
from tanishuv.utils.metrics import webhook_updates_total

logger = logging.getLogger(__name__)

INVOICE_CURRENCY = "XTR"
PAYLOAD_SEPARATOR = "|"
PAYLOAD_MAX_BYTES = 128  # Telegram limit
PAYLOAD_ID_PREFIX = 8

DEFAULT_PACKAGES = [
    # name, stars_amount, price_stars, bonus_percent
    ("Starter", 100, 100, 0),
    ("Popular", 500, 500, 10),
    ("Pro", 1000, 1000, 15),
    ("Premium", 5000, 5000, 25),
]


class InvoicePayload(BaseModel):
    user_prefix: str
    package_prefix: str
    issued_at_ms: int

    model_config = {"frozen": True}


class PurchaseMetadata(BaseModel):
    """Correlation data stored on the pending purchase row."""

    version: Literal[1] = 1
    user_id: str
    package_id: str
    stars_amount: int
    bonus_stars: int
    total_stars: int
    price_stars: int
    payload: str
    telegram_user_id: str | None = None


class ResolvedPurchase(BaseModel):
    user_id: str
    package_id: str
    transaction_id: str | None = None
    transaction_status: str | None = None


class Invoice(BaseModel):
    invoice_url: str
    payload: str
    transaction_id: str | None = None
    package_name: str
    stars: int
    price: int


class PaymentService:
    def __init__(
        self,
        db: Session,
        telegram: TelegramClient | None = None,
        redis_client: redis.Redis | None = None,
    ):
        self.db = db
        self.telegram = telegram or TelegramClient()
        self._redis = redis_client or redis.Redis.from_url(settings.redis_url, decode_responses=True)
        self.wallets = WalletService(db)
        self.ledger = LedgerService(db)

    # ------------------------------------------------------------------
    # Package catalog
    # ------------------------------------------------------------------

    def list_active_packages(self) -> list[StarPackage]:
        """Active packages by sort_order; rows sharing a name are shown once."""
        packages = (
            self.db.query(StarPackage)
            .filter(StarPackage.is_active.is_(True))
            .order_by(StarPackage.sort_order, StarPackage.stars_amount)
            .all()
        )
        seen: set[str] = set()
        unique = []
        for package in packages:
            if package.name in seen:
                continue
            seen.add(package.name)
            unique.append(package)
        return unique

    def get_package(self, package_id: str) -> StarPackage | None:
        if not package_id:
            return None
        return self.db.get(StarPackage, package_id)

    def seed_default_packages(self) -> int:
        """Create the default catalog if the table is empty. Returns the number of rows created."""
        existing = self.db.query(StarPackage).count()
        if existing:
            return 0
        for order, (name, stars, price, bonus) in enumerate(DEFAULT_PACKAGES):
            self.db.add(
                StarPackage(
                    name=name,
                    stars_amount=stars,
                    price_stars=price,
                    bonus_percent=bonus,
                    is_active=True,
                    sort_order=order,
                )
            )
        self.db.commit()
        logger.info("star_packages_seeded", extra={"count": len(DEFAULT_PACKAGES)})
        return len(DEFAULT_PACKAGES)

    # ------------------------------------------------------------------
    # Payload generation & resolution
    # ------------------------------------------------------------------

    @staticmethod
    def build_payload(user_id: str, package_id: str, issued_at_ms: int | None = None) -> str:
        """'<user[:8]>|<package[:8]>|<epoch ms>', at most 128 bytes."""
        if PAYLOAD_SEPARATOR in user_id or PAYLOAD_SEPARATOR in package_id:
            raise ValidationFailed("Identifikatorda '|' bo'lishi mumkin emas")
        ts = issued_at_ms if issued_at_ms is not None else int(time.time() * 1000)
        payload = PAYLOAD_SEPARATOR.join(
            (user_id[:PAYLOAD_ID_PREFIX], package_id[:PAYLOAD_ID_PREFIX], str(ts))
        )
        if len(payload.encode("utf-8")) > PAYLOAD_MAX_BYTES:
            raise ValidationFailed("Payload juda uzun")
        return payload

    @staticmethod
    def parse_payload(payload: str) -> InvoicePayload | None:
        """Returns None for anything that is not a well-formed payload."""
        parts = (payload or "").split(PAYLOAD_SEPARATOR)
        if len(parts) != 3 or not parts[0] or not parts[1]:
            return None
        try:
            issued_at_ms = int(parts[2])
        except ValueError:
            return None
        return InvoicePayload(user_prefix=parts[0], package_prefix=parts[1], issued_at_ms=issued_at_ms)

    def resolve_payload(self, payload: str) -> ResolvedPurchase | None:
        """
        Full identifiers for a payload: from the purchase row's metadata when one
        exists, otherwise by unique prefix match of wallet user and package ids.
        """
        tx = self.ledger.find_purchase_by_payload(payload)
        if tx is not None:
            try:
                meta = PurchaseMetadata.model_validate(tx.metadata_json or {})
            except ValidationError as e:
                logger.error(
                    "purchase_metadata_invalid",
                    extra={"transaction_id": tx.id, "payload": payload, "error": str(e)},
                )
            else:
                return ResolvedPurchase(
                    user_id=meta.user_id,
                    package_id=meta.package_id,
                    transaction_id=tx.id,
                    transaction_status=tx.status,
                )

        parsed = self.parse_payload(payload)
        if parsed is None:
            return None
        user_id = self._unique_prefix_match(Wallet.user_id, parsed.user_prefix)
        package_id = self._unique_prefix_match(StarPackage.id, parsed.package_prefix)
        if user_id is None or package_id is None:
            return None
        logger.info("payload_resolved_by_prefix", extra={"payload": payload, "user_id": user_id})
        return ResolvedPurchase(user_id=user_id, package_id=package_id)

    def _unique_prefix_match(self, column, prefix: str) -> str | None:
        rows = self.db.query(column).filter(column.startswith(prefix, autoescape=True)).limit(2).all()
        if len(rows) != 1:
            return None
        return rows[0][0]

    # ------------------------------------------------------------------
    # Invoice
    # ------------------------------------------------------------------

    def create_invoice(self, user_id: str, package_id: str, telegram_user_id: str | None = None) -> Invoice:
        if not user_id or not package_id:
            raise ValidationFailed("userId va packageId kerak")
        package = self.get_package(package_id)
        if package is None or not package.is_active:
            raise PackageNotFound()
        if not self.telegram.configured:
            raise ExternalServiceError(
                "Bot token sozlanmagan. Admin bilan bog'laning.",
                detail={"description": "TELEGRAM_BOT_TOKEN is not set"},
            )

        payload = self.build_payload(user_id, package.id)
        transaction_id = self._record_pending_purchase(user_id, package, payload, telegram_user_id)

        title = f"{package.stars_amount} Stars"
        description = f"{package.name} paketi - {package.stars_amount} Stars"
        if package.bonus_percent > 0:
            description += f" (+{package.bonus_percent}% bonus)"
        try:
            invoice_url = self.telegram.create_invoice_link(
                title=title,
                description=description,
                payload=payload,
                prices=[{"label": title, "amount": package.price_stars}],
                currency=INVOICE_CURRENCY,
            )
        except TelegramAPIError as e:
            logger.error(
                "invoice_create_failed",
                extra={"user_id": user_id, "package_id": package.id, "error": e.description},
            )
            if transaction_id:
                self._fail_pending_purchase(transaction_id, f"invoice_failed: {e.description}")
            raise ExternalServiceError("Invoice yaratishda xatolik", detail=e.detail) from e

        logger.info(
            "invoice_created",
            extra={"user_id": user_id, "package_id": package.id, "payload": payload, "transaction_id": transaction_id},
        )
        return Invoice(
            invoice_url=invoice_url,
            payload=payload,
            transaction_id=transaction_id,
            package_name=package.name,
            stars=package.stars_amount,
            price=package.price_stars,
        )

    def _record_pending_purchase(
        self,
        user_id: str,
        package: StarPackage,
        payload: str,
        telegram_user_id: str | None,
    ) -> str | None:
        """Best-effort: a failed write is logged and the invoice still goes out."""
        meta = PurchaseMetadata(
            user_id=user_id,
            package_id=package.id,
            stars_amount=package.stars_amount,
            bonus_stars=package.bonus_stars,
            total_stars=package.total_stars,
            price_stars=package.price_stars,
            payload=payload,
            telegram_user_id=str(telegram_user_id) if telegram_user_id is not None else None,
        )
        try:
            self.wallets.get_or_create_wallet(user_id)
            tx = self.ledger.record(
                user_id,
                "purchase",
                package.total_stars,
                status="pending",
                invoice_payload=payload,
                description=self._purchase_description(package),
                metadata=meta.model_dump(),
            )
            self.db.commit()
            return tx.id
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "pending_purchase_write_failed",
                extra={"user_id": user_id, "package_id": package.id, "payload": payload, "error": str(e)},
            )
            return None

    def _fail_pending_purchase(self, transaction_id: str, reason: str) -> None:
        try:
            self.ledger.mark_failed(transaction_id, reason)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("pending_purchase_fail_write_failed", extra={"transaction_id": transaction_id, "error": str(e)})

    @staticmethod
    def _purchase_description(package: StarPackage) -> str:
        description = f"Stars sotib olish: {package.name}"
        if package.bonus_stars > 0:
            description += f" (+{package.bonus_stars} bonus)"
        return description

    # ------------------------------------------------------------------
    # Pre-checkout
    # ------------------------------------------------------------------

    def validate_pre_checkout(
        self,
        payload: str,
        telegram_user_id: str,
        currency: str = INVOICE_CURRENCY,
        total_amount: int | None = None,
    ) -> tuple[bool, str]:
        """
        Returns: (ok, error_message)
        """
        if currency != INVOICE_CURRENCY:
            return False, "Noto'g'ri valyuta"
        resolved = self.resolve_payload(payload)
        if resolved is None:
            if self.parse_payload(payload) is None:
                return False, "Noto'g'ri payload formati"
            return False, "Buyurtma topilmadi"
        if resolved.transaction_status == "completed":
            return False, "Buyurtma allaqachon to'langan"

        package = self.get_package(resolved.package_id)
        if package is None or not package.is_active:
            return False, "Paket topilmadi"
        if total_amount is not None and total_amount != package.price_stars:
            return False, "Noto'g'ri summa"

        if not self._check_rate_limit(str(telegram_user_id)):
            return False, "Juda ko'p xaridlar. Keyinroq urinib ko'ring."
        return True, ""

    def answer_pre_checkout(self, query: PreCheckoutQuery) -> bool:
        """Validate and answer; any internal error declines with a generic reason."""
        try:
            ok, error_message = self.validate_pre_checkout(
                query.invoice_payload,
                str(query.from_user.id),
                currency=query.currency,
                total_amount=query.total_amount,
            )
        except Exception as e:
            logger.exception("pre_checkout_error", extra={"payload": query.invoice_payload, "error": str(e)})
            ok, error_message = False, "Xatolik yuz berdi"

        webhook_updates_total.labels(
            kind="pre_checkout_query", outcome="approved" if ok else "declined"
        ).inc()
        if not ok:
            logger.info("pre_checkout_declined", extra={"payload": query.invoice_payload, "reason": error_message})
        self.telegram.answer_pre_checkout_query(query.id, ok, error_message or None)
        return ok

    # ------------------------------------------------------------------
    # Successful payment (idempotent)
    # ------------------------------------------------------------------

    def handle_successful_payment(self, payment: SuccessfulPayment, chat_id: int | None = None) -> Transaction | None:
        """
        Settle a paid invoice exactly once per telegram_payment_charge_id.
        The pending row is transitioned in place; a payload with no row but a
        prefix match gets one completed row. Unmatched payments are audited.
        """
        charge_id = payment.telegram_payment_charge_id
        existing = self.ledger.find_by_charge_id(charge_id)
        if existing is not None:
            webhook_updates_total.labels(kind="successful_payment", outcome="duplicate").inc()
            logger.info("payment_already_processed", extra={"charge_id": charge_id})
            return existing

        resolved = self.resolve_payload(payment.invoice_payload)
        package = self.get_package(resolved.package_id) if resolved else None
        if resolved is None or package is None:
            self._record_unmatched_payment(payment, chat_id)
            return None

        total_stars = package.total_stars
        paid = {
            "telegram_payment_charge_id": charge_id,
            "provider_payment_charge_id": payment.provider_payment_charge_id,
            "paid_currency": payment.currency,
            "paid_amount": payment.total_amount,
            "paid_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            if resolved.transaction_id is not None:
                tx = self.ledger.mark_completed(
                    telegram_payment_id=charge_id,
                    transaction_id=resolved.transaction_id,
                    amount=total_stars,
                    metadata=paid,
                )
                if tx is None:
                    self.db.rollback()
                    # A concurrent delivery of the same charge may have won the row lock.
                    existing = self.ledger.find_by_charge_id(charge_id)
                    if existing is not None:
                        webhook_updates_total.labels(kind="successful_payment", outcome="duplicate").inc()
                        logger.info("payment_already_processed", extra={"charge_id": charge_id})
                        return existing
                    self._record_unmatched_payment(payment, chat_id, reason="purchase_not_pending")
                    return None
            else:
                meta = PurchaseMetadata(
                    user_id=resolved.user_id,
                    package_id=package.id,
                    stars_amount=package.stars_amount,
                    bonus_stars=package.bonus_stars,
                    total_stars=total_stars,
                    price_stars=package.price_stars,
                    payload=payment.invoice_payload,
                )
                tx = self.ledger.record(
                    resolved.user_id,
                    "purchase",
                    total_stars,
                    telegram_payment_id=charge_id,
                    invoice_payload=payment.invoice_payload,
                    description=self._purchase_description(package),
                    metadata={**meta.model_dump(), **paid},
                )
            self.wallets.credit(resolved.user_id, total_stars)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            webhook_updates_total.labels(kind="successful_payment", outcome="duplicate").inc()
            logger.warning("payment_duplicate", extra={"charge_id": charge_id})
            return self.ledger.find_by_charge_id(charge_id)

        webhook_updates_total.labels(kind="successful_payment", outcome="credited").inc()
        logger.info(
            "payment_completed",
            extra={
                "user_id": resolved.user_id,
                "package_id": package.id,
                "amount": total_stars,
                "charge_id": charge_id,
                "transaction_id": tx.id,
            },
        )
        self._send_confirmation(chat_id, package, charge_id)
        return tx

    def _record_unmatched_payment(
        self,
        payment: SuccessfulPayment,
        chat_id: int | None,
        reason: str = "payload_unresolved",
    ) -> None:
        webhook_updates_total.labels(kind="successful_payment", outcome="unmatched").inc()
        logger.error(
            "payment_unmatched",
            extra={"charge_id": payment.telegram_payment_charge_id, "payload": payment.invoice_payload, "reason": reason},
        )
        try:
            AuditService(self.db).log(
                actor_type="telegram",
                actor_id=str(chat_id) if chat_id is not None else None,
                action="payment_unmatched",
                entity_type="telegram_payment",
                entity_id=payment.telegram_payment_charge_id,
                payload={**payment.model_dump(), "reason": reason},
                commit=True,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("payment_unmatched_audit_failed", extra={"error": str(e)})

    def _send_confirmation(self, chat_id: int | None, package: StarPackage, charge_id: str) -> None:
        if chat_id is None or not self.telegram.configured:
            return
        lines = [
            "🎉 <b>To'lov muvaffaqiyatli!</b>",
            "",
            f"⭐ <b>{package.total_stars} Stars</b> hisobingizga qo'shildi!",
        ]
        if package.bonus_stars > 0:
            lines.append(f"🎁 Bonus: +{package.bonus_stars} Stars")
        lines += [
            "",
            f"💳 Tranzaksiya: <code>{charge_id}</code>",
            "",
            "Ilovaga qaytib, yangi balansni ko'ring!",
        ]
        try:
            self.telegram.send_message(chat_id, "\n".join(lines), parse_mode="HTML")
        except TelegramAPIError as e:
            logger.warning("payment_confirmation_failed", extra={"chat_id": chat_id, "error": e.description})

    # ------------------------------------------------------------------
    # Webhook dispatch
    # ------------------------------------------------------------------

    def process_update(self, update: dict) -> str:
        """Dispatch one Telegram update. Returns the branch taken."""
        try:
            parsed = Update.model_validate(update)
        except ValidationError as e:
            webhook_updates_total.labels(kind="unknown", outcome="invalid").inc()
            logger.warning("webhook_update_invalid", extra={"error": str(e)})
            return "invalid"

        if parsed.pre_checkout_query is not None:
            self.answer_pre_checkout(parsed.pre_checkout_query)
            return "pre_checkout_query"

        message = parsed.message
        if message is not None and message.successful_payment is not None:
            chat_id = message.chat.id if message.chat else None
            self.handle_successful_payment(message.successful_payment, chat_id=chat_id)
            return "successful_payment"

        webhook_updates_total.labels(kind="other", outcome="ignored").inc()
        return "ignored"

    # ------------------------------------------------------------------
    # Rate-limit (Redis, shared by all API replicas)
    # ------------------------------------------------------------------

    def _check_rate_limit(self, telegram_user_id: str) -> bool:
        """At most purchase_rate_limit purchases per purchase_rate_window_seconds."""
        key = f"purchase_rate:{telegram_user_id}"
        try:
            current = self._redis.incr(key)
            if current == 1:
                self._redis.expire(key, settings.purchase_rate_window_seconds)
            return current <= settings.purchase_rate_limit
        except redis.RedisError as e:
            logger.warning("purchase_rate_limit_redis_error", extra={"error": str(e)})
            return True  # fail open
