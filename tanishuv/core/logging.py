"""
One JSON object per log line. Ledger context travels in `extra=` and is copied
only for whitelisted keys, so arbitrary objects never reach the log sink.
"""
import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from tanishuv.core.config import settings

SERVICE_NAME = "tanishuv-payments"

LOG_CONTEXT_KEYS = (
    # who
    "user_id", "related_user_id", "chat_id",
    # what
    "operation", "transaction_id", "charge_id", "package_id", "payload",
    "amount", "fee", "net_amount", "count",
    # http
    "request_id", "path", "method", "status_code", "latency_ms",
    # why
    "reason", "error",
)

# Libraries that log every request at INFO.
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, getattr(record, key))
            for key in LOG_CONTEXT_KEYS
            if getattr(record, key, None) is not None
        )
        if record.levelno >= logging.ERROR:
            entry["where"] = f"{record.module}:{record.lineno}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def _handlers(formatter: logging.Formatter) -> list[logging.Handler]:
    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    if not settings.log_file:
        return [stream]
    rotating = RotatingFileHandler(
        settings.log_file,
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
    )
    rotating.setFormatter(formatter)
    return [stream, rotating]


def configure_logging(level: str | None = None) -> None:
    """Route every logger through JSON handlers on the root logger."""
    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())
    root.handlers = _handlers(JsonFormatter())
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
