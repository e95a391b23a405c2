"""
Error rendering for the HTTP surface: {"success": false, "error": <message>, "code": <code>}.
Upstream details are only exposed on 5xx responses that carry a Telegram description.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tanishuv.services.errors import LedgerError, ValidationFailed, http_status_for
from tanishuv.services.settlement.service import SettlementResult

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str, code: str, details=None) -> JSONResponse:
    content = {"success": False, "error": message, "code": code}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def ledger_error_response(exc: LedgerError) -> JSONResponse:
    details = exc.detail.get("description") if exc.http_status >= 500 else None
    return error_response(exc.http_status, exc.message, exc.code, details)


def settlement_response(result: SettlementResult, **payload):
    """Success payload as-is, failures mapped to their HTTP status."""
    if result.success:
        return {"success": True, **payload}
    return error_response(http_status_for(result.error_code), result.error, result.error_code)


async def _ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error(
            "request_failed",
            extra={"path": request.url.path, "method": request.method, "error": exc.code, "reason": str(exc.detail)},
        )
    return ledger_error_response(exc)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        400,
        ValidationFailed.message,
        ValidationFailed.code,
        jsonable_encoder(exc.errors()),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, _ledger_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
