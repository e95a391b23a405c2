"""FastAPI dependencies for services that talk to Telegram and Redis (overridden in tests)."""
from typing import Iterator

import redis
from fastapi import Depends
from sqlalchemy.orm import Session

from tanishuv.core.config import settings
from tanishuv.db.session import get_db
from tanishuv.services.payments.service import PaymentService
from tanishuv.services.settlement.config import SettlementConfig
from tanishuv.services.settlement.service import SettlementService
from tanishuv.services.telegram.client import TelegramClient

# One connection pool per process, shared by all requests.
_redis_client: redis.Redis | None = None


def get_telegram_client() -> Iterator[TelegramClient]:
    """Per-request client; its HTTP connection pool is closed when the request ends."""
    telegram = TelegramClient()
    try:
        yield telegram
    finally:
        telegram.close()


def get_redis() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
    return _redis_client


def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


def get_settlement_config() -> SettlementConfig:
    return SettlementConfig.from_settings()


def get_payment_service(
    db: Session = Depends(get_db),
    telegram: TelegramClient = Depends(get_telegram_client),
    redis_client: redis.Redis = Depends(get_redis),
) -> PaymentService:
    return PaymentService(db, telegram=telegram, redis_client=redis_client)


def get_settlement_service(
    db: Session = Depends(get_db),
    config: SettlementConfig = Depends(get_settlement_config),
) -> SettlementService:
    return SettlementService(db, config=config)
