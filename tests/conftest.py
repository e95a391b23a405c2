"""Shared fixtures: in-memory SQLite schema, fake Telegram client and Redis."""
import os

# Settings() requires connection strings at import time.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456:TEST")

from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import tanishuv.models  # noqa: F401
from tanishuv.db.base import Base
from tanishuv.models.star_package import StarPackage
from tanishuv.services.telegram.client import TelegramClient
from tanishuv.services.wallets.service import WalletService


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def fund(db):
    """fund(user_id, amount): credit a wallet and commit."""

    def _fund(user_id: str, amount: int):
        wallet = WalletService(db).credit(user_id, amount)
        db.commit()
        return wallet

    return _fund


@pytest.fixture
def package(db):
    pkg = StarPackage(
        id="pkg-100-bonus20",
        name="Popular",
        stars_amount=100,
        price_stars=150,
        bonus_percent=20,
        is_active=True,
        sort_order=1,
    )
    db.add(pkg)
    db.commit()
    return pkg


@pytest.fixture
def fake_telegram():
    telegram = MagicMock(spec=TelegramClient)
    telegram.configured = True
    telegram.create_invoice_link.return_value = "https://t.me/$invoice-link"
    telegram.answer_pre_checkout_query.return_value = {"ok": True, "result": True}
    telegram.send_message.return_value = {"ok": True}
    return telegram


@pytest.fixture
def fake_redis():
    redis_client = MagicMock()
    redis_client.incr.return_value = 1
    return redis_client
