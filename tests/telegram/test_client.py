"""TelegramClient against a mocked Bot API transport."""
import json

import httpx
import pytest


def _client(handler, token="123456:TEST"):
    from tanishuv.services.telegram.client import TelegramClient

    client = TelegramClient(token=token)
    client._client = httpx.Client(transport=httpx.MockTransport(handler))
    return client


def test_create_invoice_link_sends_stars_invoice():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True, "result": "https://t.me/$abc"})

    client = _client(handler)
    url = client.create_invoice_link(
        title="100 Stars",
        description="Starter paketi - 100 Stars",
        payload="user-alp|pkg-0001|1",
        prices=[{"label": "100 Stars", "amount": 100}],
    )

    assert url == "https://t.me/$abc"
    assert seen["url"].endswith("/bot123456:TEST/createInvoiceLink")
    assert seen["body"]["currency"] == "XTR"
    assert seen["body"]["provider_token"] == ""
    assert seen["body"]["prices"] == [{"label": "100 Stars", "amount": 100}]


def test_ok_false_raises_with_description():
    from tanishuv.services.telegram.client import TelegramAPIError

    def handler(request):
        return httpx.Response(400, json={"ok": False, "error_code": 400, "description": "Bad Request: PAYLOAD_INVALID"})

    with pytest.raises(TelegramAPIError) as exc_info:
        _client(handler).create_invoice_link("t", "d", "p", [{"label": "t", "amount": 1}])

    err = exc_info.value
    assert err.description == "Bad Request: PAYLOAD_INVALID"
    assert err.error_code == 400
    assert err.method == "createInvoiceLink"
    assert err.detail["description"] == "Bad Request: PAYLOAD_INVALID"


def test_network_error_raises():
    from tanishuv.services.telegram.client import TelegramAPIError

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TelegramAPIError):
        _client(handler).send_message(1, "hi")


def test_decline_carries_error_message():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True, "result": True})

    _client(handler).answer_pre_checkout_query("q1", False, "Noto'g'ri summa")
    assert seen["body"] == {"pre_checkout_query_id": "q1", "ok": False, "error_message": "Noto'g'ri summa"}


def test_approval_omits_error_message():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True, "result": True})

    _client(handler).answer_pre_checkout_query("q1", True, None)
    assert seen["body"] == {"pre_checkout_query_id": "q1", "ok": True}


def test_configured_follows_token():
    from tanishuv.services.telegram.client import TelegramClient

    assert TelegramClient(token="").configured is False
    assert TelegramClient(token="1:x").configured is True
