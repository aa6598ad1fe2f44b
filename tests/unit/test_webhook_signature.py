import pytest

from vibe_report.security.webhook_signature import (
    WebhookSignatureError,
    build_signature_header,
    compute_signature,
    verify_stripe_signature,
)

SECRET = "whsec_unit"
PAYLOAD = b'{"id": "evt_1", "type": "checkout.session.completed"}'
NOW = 1_700_000_000


def test_valid_signature_returns_timestamp():
    header = build_signature_header(PAYLOAD, SECRET, timestamp=NOW)

    assert verify_stripe_signature(PAYLOAD, header, SECRET, now=NOW + 10) == NOW


def test_any_matching_v1_is_accepted():
    good = compute_signature(SECRET, NOW, PAYLOAD)
    header = f"t={NOW},v1={'0' * 64},v1={good},v0=ignored"

    assert verify_stripe_signature(PAYLOAD, header, SECRET, now=NOW) == NOW


def test_tampered_payload_rejected():
    header = build_signature_header(PAYLOAD, SECRET, timestamp=NOW)

    with pytest.raises(WebhookSignatureError):
        verify_stripe_signature(PAYLOAD + b" ", header, SECRET, now=NOW)


def test_wrong_secret_rejected():
    header = build_signature_header(PAYLOAD, "whsec_other", timestamp=NOW)

    with pytest.raises(WebhookSignatureError):
        verify_stripe_signature(PAYLOAD, header, SECRET, now=NOW)


def test_stale_timestamp_rejected():
    header = build_signature_header(PAYLOAD, SECRET, timestamp=NOW)

    with pytest.raises(WebhookSignatureError, match="tolerance"):
        verify_stripe_signature(PAYLOAD, header, SECRET, tolerance_s=300, now=NOW + 301)


def test_zero_tolerance_skips_age_check():
    header = build_signature_header(PAYLOAD, SECRET, timestamp=NOW)

    assert verify_stripe_signature(PAYLOAD, header, SECRET, tolerance_s=0, now=NOW + 10_000) == NOW


@pytest.mark.parametrize(
    "header",
    ["", "garbage", f"t={NOW}", "v1=abc", "t=notanumber,v1=abc"],
)
def test_malformed_headers_rejected(header):
    with pytest.raises(WebhookSignatureError):
        verify_stripe_signature(PAYLOAD, header, SECRET, now=NOW)
