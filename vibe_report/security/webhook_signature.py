"""
Stripe-style webhook signature verification.

Header format: ``t=<unix ts>,v1=<hex>[,v1=<hex>...]`` where each v1 value is
HMAC-SHA256 of ``"<ts>.<raw body>"`` keyed by the endpoint secret.
"""

from __future__ import annotations

import hashlib
import hmac
import time

__all__ = [
    "WebhookSignatureError",
    "build_signature_header",
    "compute_signature",
    "verify_stripe_signature",
]

SIGNATURE_SCHEME = "v1"


class WebhookSignatureError(ValueError):
    """Raised when a webhook signature is malformed, stale, or wrong."""


def compute_signature(secret: str, timestamp: int, payload: bytes) -> str:
    signed = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def _parse_header(header: str) -> tuple[int, list[str]]:
    timestamp: int | None = None
    signatures: list[str] = []
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError as e:
                raise WebhookSignatureError("Invalid signature timestamp") from e
        elif key == SIGNATURE_SCHEME:
            signatures.append(value)

    if timestamp is None:
        raise WebhookSignatureError("Signature header has no timestamp")
    if not signatures:
        raise WebhookSignatureError(f"Signature header has no {SIGNATURE_SCHEME} signature")
    return timestamp, signatures


def verify_stripe_signature(
    payload: bytes,
    header: str,
    secret: str,
    tolerance_s: int = 300,
    now: float | None = None,
) -> int:
    """
    Check the header against the raw request body.

    Returns the signed timestamp. A tolerance of 0 disables the age check.
    """
    timestamp, signatures = _parse_header(header)

    expected = compute_signature(secret, timestamp, payload)
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise WebhookSignatureError("No signature matches the payload")

    current = time.time() if now is None else now
    if tolerance_s > 0 and abs(current - timestamp) > tolerance_s:
        raise WebhookSignatureError("Signature timestamp outside tolerance")

    return timestamp


def build_signature_header(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Produce a valid header for a payload; used when replaying events locally."""
    ts = int(time.time()) if timestamp is None else timestamp
    return f"t={ts},{SIGNATURE_SCHEME}={compute_signature(secret, ts, payload)}"
