"""
Celery beat tasks keeping purchase and subscription state honest:
- pending purchases nobody paid for are swept to "failed"
- active subscriptions past expires_at become "expired"
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import update

from tanishuv.core.celery_app import celery_app
from tanishuv.core.config import settings
from tanishuv.db.session import SessionLocal
from tanishuv.models.subscription import Subscription
from tanishuv.services.ledger.service import LedgerService
from tanishuv.utils.metrics import pending_purchases_expired_total

logger = logging.getLogger(__name__)


@celery_app.task(
    name="tanishuv.workers.tasks.reconcile_payments.expire_stale_pending_purchases",
    time_limit=120,
    soft_time_limit=110,
)
def expire_stale_pending_purchases() -> dict:
    """A genuine successful_payment arriving later still completes a swept row."""
    db = SessionLocal()
    try:
        ttl = timedelta(hours=settings.pending_purchase_ttl_hours)
        expired = LedgerService(db).expire_stale_pending(ttl)
        db.commit()
        if expired:
            pending_purchases_expired_total.inc(expired)
            logger.info("pending_purchases_expired", extra={"count": expired})
        return {"ok": True, "expired_count": expired}
    except Exception:
        logger.exception("expire_stale_pending_purchases_error")
        db.rollback()
        return {"ok": False}
    finally:
        db.close()


@celery_app.task(
    name="tanishuv.workers.tasks.reconcile_payments.expire_subscriptions",
    time_limit=120,
    soft_time_limit=110,
)
def expire_subscriptions() -> dict:
    db = SessionLocal()
    try:
        now = datetime.now(timezone.utc)
        result = db.execute(
            update(Subscription)
            .where(Subscription.status == "active", Subscription.expires_at <= now)
            .values(status="expired")
            .execution_options(synchronize_session=False)
        )
        db.commit()
        expired = result.rowcount or 0
        if expired:
            logger.info("subscriptions_expired", extra={"count": expired})
        return {"ok": True, "expired_count": expired}
    except Exception:
        logger.exception("expire_subscriptions_error")
        db.rollback()
        return {"ok": False}
    finally:
        db.close()
