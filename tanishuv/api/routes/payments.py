"""
Payments API for the Mini App plus the Telegram payment webhook.
Wallet, invoice, tip/gift/subscription/content settlements, withdrawals.
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tanishuv.api.deps import get_payment_service, get_settlement_service
from tanishuv.api.errors import settlement_response
from tanishuv.db.session import get_db
from tanishuv.schemas.payments import (
    CreateInvoiceIn,
    GiftOut,
    PackageOut,
    PurchaseContentIn,
    SendGiftIn,
    SendTipIn,
    SubscribeIn,
    TransactionOut,
    WalletOut,
    WithdrawalOut,
    WithdrawIn,
)
from tanishuv.services.creators.service import CreatorService
from tanishuv.services.errors import PersistenceError, ValidationFailed
from tanishuv.services.ledger.service import LedgerService
from tanishuv.services.payments.service import PaymentService
from tanishuv.services.settlement.service import SettlementService
from tanishuv.services.wallets.service import WalletService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


def _package_out(package) -> dict:
    return PackageOut(
        id=package.id,
        name=package.name,
        stars_amount=package.stars_amount,
        price_stars=package.price_stars,
        bonus_percent=package.bonus_percent,
        bonus_stars=package.bonus_stars,
        total_stars=package.total_stars,
        sort_order=package.sort_order,
    ).model_dump(by_alias=True)


# ----- Wallet -----


@router.get("/balance")
def get_balance(user_id: str | None = Query(None, alias="userId"), db: Session = Depends(get_db)) -> dict:
    """Wallet snapshot; the wallet is created on first access."""
    if not user_id:
        raise ValidationFailed("userId kerak")
    try:
        wallet = WalletService(db).get_or_create_wallet(user_id)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("wallet_fetch_failed", extra={"user_id": user_id, "error": str(e)})
        raise PersistenceError("Hamyon yaratishda xatolik") from e
    return {
        "success": True,
        "wallet": WalletOut(
            balance=wallet.stars_balance,
            total_earned=wallet.total_earned,
            total_spent=wallet.total_spent,
            total_withdrawn=wallet.total_withdrawn,
            pending_withdrawal=wallet.pending_withdrawal,
            is_creator=wallet.is_creator,
            creator_verified=wallet.creator_verified,
        ).model_dump(by_alias=True),
    }


@router.get("/history")
def get_history(
    user_id: str | None = Query(None, alias="userId"),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
) -> dict:
    if not user_id:
        raise ValidationFailed("userId kerak")
    transactions = LedgerService(db).history(user_id, limit=limit)
    return {
        "success": True,
        "transactions": [
            TransactionOut(
                id=tx.id,
                type=tx.type,
                amount=tx.amount,
                fee=tx.fee,
                net_amount=tx.net_amount,
                status=tx.status,
                related_user_id=tx.related_user_id,
                content_id=tx.content_id,
                content_type=tx.content_type,
                description=tx.description,
                created_at=tx.created_at,
            ).model_dump(by_alias=True, mode="json")
            for tx in transactions
        ],
    }


# ----- Invoice -----


@router.get("/create-invoice")
def invoice_diagnostics(service: PaymentService = Depends(get_payment_service)) -> dict:
    packages = service.list_active_packages()
    return {
        "success": True,
        "botTokenSet": service.telegram.configured,
        "packagesCount": len(packages),
        "packages": [_package_out(p) for p in packages],
    }


@router.post("/create-invoice")
def create_invoice(body: CreateInvoiceIn, service: PaymentService = Depends(get_payment_service)) -> dict:
    invoice = service.create_invoice(body.user_id, body.package_id, str(body.telegram_user_id))
    return {
        "success": True,
        "invoiceUrl": invoice.invoice_url,
        "package": {"name": invoice.package_name, "stars": invoice.stars, "price": invoice.price},
    }


# ----- Settlements -----


@router.post("/send-tip")
def send_tip(body: SendTipIn, service: SettlementService = Depends(get_settlement_service)):
    result = service.send_tip(body.sender_id, body.receiver_id, body.amount, body.message, body.is_anonymous)
    return settlement_response(
        result,
        amount=result.amount,
        fee=result.fee,
        netAmount=result.net_amount,
        message=result.message,
    )


@router.post("/send-gift")
def send_gift(body: SendGiftIn, service: SettlementService = Depends(get_settlement_service)):
    result = service.send_gift(body.sender_id, body.receiver_id, body.gift_id, body.message, body.is_anonymous)
    return settlement_response(
        result,
        amount=result.amount,
        fee=result.fee,
        netAmount=result.net_amount,
        sentGiftId=result.reference_id,
        message=result.message,
    )


@router.post("/subscribe")
def subscribe(body: SubscribeIn, service: SettlementService = Depends(get_settlement_service)):
    result = service.subscribe_to_creator(body.subscriber_id, body.creator_id)
    return settlement_response(
        result,
        amount=result.amount,
        fee=result.fee,
        netAmount=result.net_amount,
        subscriptionId=result.reference_id,
        message=result.message,
    )


@router.post("/purchase-content")
def purchase_content(body: PurchaseContentIn, service: SettlementService = Depends(get_settlement_service)):
    result = service.purchase_content(body.buyer_id, body.content_id)
    return settlement_response(
        result,
        amount=result.amount,
        fee=result.fee,
        netAmount=result.net_amount,
        purchaseId=result.reference_id,
        message=result.message,
    )


@router.post("/withdraw")
def withdraw(body: WithdrawIn, service: SettlementService = Depends(get_settlement_service)):
    result = service.request_withdrawal(body.user_id, body.amount, body.method, body.payout_details)
    return settlement_response(
        result,
        requestId=result.reference_id,
        amount=result.amount,
        fee=result.fee,
        netAmount=result.net_amount,
        message=result.message,
    )


@router.get("/withdrawals")
def list_withdrawals(user_id: str | None = Query(None, alias="userId"), db: Session = Depends(get_db)) -> dict:
    if not user_id:
        raise ValidationFailed("userId kerak")
    requests = CreatorService(db).withdrawal_history(user_id)
    return {
        "success": True,
        "withdrawals": [
            WithdrawalOut(
                id=r.id,
                amount=r.amount,
                fee=r.fee,
                net_amount=r.net_amount,
                method=r.method,
                status=r.status,
                created_at=r.created_at,
                processed_at=r.processed_at,
                rejection_reason=r.rejection_reason,
            ).model_dump(by_alias=True, mode="json")
            for r in requests
        ],
    }


@router.get("/gifts")
def list_gifts(db: Session = Depends(get_db)) -> dict:
    gifts = CreatorService(db).list_gifts()
    return {
        "success": True,
        "gifts": [
            GiftOut(
                id=g.id,
                name=g.name,
                emoji=g.emoji,
                description=g.description,
                price=g.price,
                animation_url=g.animation_url,
            ).model_dump(by_alias=True)
            for g in gifts
        ],
    }


# ----- Telegram webhook -----


@router.post("/webhook")
async def telegram_webhook(request: Request, service: PaymentService = Depends(get_payment_service)) -> dict:
    """Always 200 {"ok": true}: Telegram retries anything else."""
    try:
        update = await request.json()
    except ValueError:
        logger.warning("webhook_body_invalid")
        return {"ok": True}
    if not isinstance(update, dict):
        logger.warning("webhook_body_invalid")
        return {"ok": True}

    try:
        await run_in_threadpool(service.process_update, update)
    except Exception as e:
        logger.exception("webhook_processing_failed", extra={"error": str(e)})
    return {"ok": True}


@router.get("/webhook")
def webhook_liveness() -> dict:
    return {
        "status": "ok",
        "message": "Tanishuv Payment Webhook",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
