"""
Telegram Bot API client wrapper using httpx sync client.
Covers the Stars payment methods plus plain messages; shared by API handlers and Celery.
"""
import logging
import time

import httpx

from tanishuv.core.config import settings
from tanishuv.services.errors import ExternalServiceError
from tanishuv.utils.metrics import (
    telegram_request_duration_seconds,
    telegram_requests_total,
)

logger = logging.getLogger(__name__)


class TelegramAPIError(ExternalServiceError):
    """ok=false from the Bot API, or the API was unreachable."""

    code = "telegram_error"
    message = "Telegram xatosi"

    def __init__(self, description: str, error_code: int | None = None, method: str | None = None):
        super().__init__(detail={"description": description, "error_code": error_code, "method": method})
        self.description = description
        self.error_code = error_code
        self.method = method


class TelegramClient:
    """
    Sync Telegram client.
    Timeout stays short: answerPreCheckoutQuery has to land within 10 seconds.
    """

    def __init__(self, token: str | None = None) -> None:
        self._token = settings.telegram_bot_token if token is None else token
        self._base_url = f"{settings.telegram_api_base.rstrip('/')}/bot{self._token}"
        self._client: httpx.Client | None = None

    @property
    def configured(self) -> bool:
        return bool(self._token)

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=settings.telegram_request_timeout)
        return self._client

    def _record_request(self, method: str, status: str, duration: float) -> None:
        telegram_requests_total.labels(method=method, status=status).inc()
        telegram_request_duration_seconds.labels(method=method).observe(duration)

    def _api_call(self, method: str, data: dict) -> dict:
        """POST a Bot API method; returns the decoded body, raises TelegramAPIError on failure."""
        start = time.time()
        try:
            resp = self.client.post(f"{self._base_url}/{method}", json=data)
            result = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            self._record_request(method, "error", time.time() - start)
            logger.warning("telegram_request_failed", extra={"operation": method, "error": str(e)})
            raise TelegramAPIError(str(e), method=method) from e

        if not result.get("ok"):
            self._record_request(method, "error", time.time() - start)
            description = result.get("description", "Unknown error")
            error_code = result.get("error_code", 0)
            logger.warning(
                "telegram_api_error",
                extra={"operation": method, "error": f"{error_code}: {description}"},
            )
            raise TelegramAPIError(description, error_code=error_code, method=method)

        self._record_request(method, "success", time.time() - start)
        return result

    def create_invoice_link(
        self,
        title: str,
        description: str,
        payload: str,
        prices: list[dict],
        currency: str = "XTR",
    ) -> str:
        """createInvoiceLink for Telegram Stars; provider_token is empty for XTR."""
        result = self._api_call(
            "createInvoiceLink",
            {
                "title": title,
                "description": description,
                "payload": payload,
                "provider_token": "",
                "currency": currency,
                "prices": prices,
            },
        )
        return result["result"]

    def answer_pre_checkout_query(
        self,
        pre_checkout_query_id: str,
        ok: bool,
        error_message: str | None = None,
    ) -> dict:
        data = {"pre_checkout_query_id": pre_checkout_query_id, "ok": ok}
        if not ok and error_message:
            data["error_message"] = error_message
        return self._api_call("answerPreCheckoutQuery", data)

    def send_message(
        self,
        chat_id: str | int,
        text: str,
        parse_mode: str | None = None,
    ) -> dict:
        """Send text message to chat."""
        data = {"chat_id": int(chat_id), "text": text}
        if parse_mode:
            data["parse_mode"] = parse_mode
        return self._api_call("sendMessage", data)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
