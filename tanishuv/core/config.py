"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Connection strings have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # Comma separated, e.g. https://tanishuv.app,https://web.telegram.org. Empty = default list in main.py.
    cors_origins: str = ""

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str  # Required, no default
    celery_broker_url: str  # Required, no default
    celery_result_backend: str  # Required, no default

    # ===========================================
    # TELEGRAM BOT
    # ===========================================
    # Empty token keeps the API up; invoice creation then answers 500 "bot misconfigured".
    telegram_bot_token: str = ""
    telegram_api_base: str = "https://api.telegram.org"
    # answerPreCheckoutQuery must land within 10s of the query, keep well below that.
    telegram_request_timeout: float = 8.0

    # ===========================================
    # LEDGER & SETTLEMENT
    # ===========================================
    commission_rate: float = 0.10
    min_tip_stars: int = 10
    min_withdrawal_stars: int = 1000
    withdrawal_fee_rate: float = 0.02
    withdrawal_fee_min_stars: int = 50
    subscription_duration_days: int = 30

    # ===========================================
    # TELEGRAM STARS PURCHASES
    # ===========================================
    # Pending purchase rows older than this are swept to "failed" by the reconciliation task.
    pending_purchase_ttl_hours: int = 24
    purchase_rate_limit: int = 3
    purchase_rate_window_seconds: int = 60

    # ===========================================
    # DISPLAY RATES (presentation only, never used in settlement)
    # ===========================================
    stars_to_uzs: float = 1000.0
    stars_to_usd: float = 0.01

    # ===========================================
    # LOGGING
    # ===========================================
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("commission_rate", "withdrawal_fee_rate")
    @classmethod
    def validate_rate(cls, v: float) -> float:
        """Rates are fractions of the gross amount."""
        if not 0 <= v < 1:
            raise ValueError("rate must be a fraction in [0, 1)")
        return v

    @field_validator("min_tip_stars", "min_withdrawal_stars", "withdrawal_fee_min_stars")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
