"""JSON log line shape."""
import json
import logging


def _record(level=logging.INFO, **extra):
    record = logging.LogRecord("tanishuv.test", level, "ledger.py", 42, "tip_sent", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_whitelisted_context_is_copied():
    from tanishuv.core.logging import JsonFormatter

    line = json.loads(JsonFormatter().format(_record(user_id="alice", amount=50, secret="x")))

    assert line["message"] == "tip_sent"
    assert line["service"] == "tanishuv-payments"
    assert line["user_id"] == "alice"
    assert line["amount"] == 50
    assert "secret" not in line
    assert "where" not in line


def test_errors_carry_source_location():
    from tanishuv.core.logging import JsonFormatter

    line = json.loads(JsonFormatter().format(_record(level=logging.ERROR, reason="boom")))

    assert line["level"] == "ERROR"
    assert line["where"] == "ledger:42"
    assert line["reason"] == "boom"


def test_configure_logging_quiets_http_clients():
    from tanishuv.core.logging import JsonFormatter, configure_logging

    root = logging.getLogger()
    saved_level, saved_handlers = root.level, root.handlers[:]
    try:
        configure_logging("debug")
        assert root.level == logging.DEBUG
        assert all(isinstance(h.formatter, JsonFormatter) for h in root.handlers)
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.setLevel(saved_level)
        root.handlers = saved_handlers
