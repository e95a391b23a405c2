"""Invoice payload format: '<user[:8]>|<package[:8]>|<epoch ms>'."""
import pytest


def test_build_truncates_ids_to_prefixes():
    from tanishuv.services.payments.service import PaymentService

    payload = PaymentService.build_payload("user-alpha-1234", "pkg-100-bonus20", issued_at_ms=1700000000000)
    assert payload == "user-alp|pkg-100-|1700000000000"


def test_build_stays_within_telegram_limit():
    from tanishuv.services.payments.service import PAYLOAD_MAX_BYTES, PaymentService

    payload = PaymentService.build_payload("x" * 500, "y" * 500)
    assert len(payload.encode("utf-8")) <= PAYLOAD_MAX_BYTES


def test_build_rejects_separator_in_ids():
    from tanishuv.services.errors import ValidationFailed
    from tanishuv.services.payments.service import PaymentService

    with pytest.raises(ValidationFailed):
        PaymentService.build_payload("bad|id", "pkg")


def test_parse_well_formed():
    from tanishuv.services.payments.service import PaymentService

    parsed = PaymentService.parse_payload("user-alp|pkg-100-|1700000000000")
    assert parsed.user_prefix == "user-alp"
    assert parsed.package_prefix == "pkg-100-"
    assert parsed.issued_at_ms == 1700000000000


@pytest.mark.parametrize(
    "payload",
    ["", "garbage", "a|b", "a|b|c|d", "|pkg|1", "user||1", "user|pkg|soon"],
)
def test_parse_malformed_returns_none(payload):
    from tanishuv.services.payments.service import PaymentService

    assert PaymentService.parse_payload(payload) is None
