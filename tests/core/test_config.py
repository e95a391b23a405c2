"""Settings validation."""
import pytest
from pydantic import ValidationError


def _settings(**overrides):
    from tanishuv.core.config import Settings

    values = {
        "database_url": "sqlite://",
        "redis_url": "redis://localhost:6379/0",
        "celery_broker_url": "memory://",
        "celery_result_backend": "cache+memory://",
    }
    values.update(overrides)
    return Settings(**values)


def test_defaults():
    s = _settings()
    assert s.commission_rate == 0.10
    assert s.min_tip_stars == 10
    assert s.min_withdrawal_stars == 1000


def test_commission_rate_must_be_fraction():
    with pytest.raises(ValidationError):
        _settings(commission_rate=1.5)


def test_cors_origins_list():
    s = _settings(cors_origins="https://a.uz, https://web.telegram.org,,")
    assert s.cors_origins_list == ["https://a.uz", "https://web.telegram.org"]
