"""
Domain models for token purchases.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


class InvalidMetadataError(ValueError):
    """Raised when payment metadata lacks a user id or a positive token count."""


@dataclass(frozen=True, slots=True)
class TokenPackage:
    price_id: str
    tokens: int
    price: float
    savings: int | None = None


TOKEN_PACKAGES: tuple[TokenPackage, ...] = (
    TokenPackage(price_id="price_1SL21LCvKngy5LHX2Wd4g1g7", tokens=5, price=4.99),
    TokenPackage(price_id="price_1SL21MCvKngy5LHXVvlL6oMU", tokens=15, price=9.99, savings=5),
    TokenPackage(price_id="price_1SL21MCvKngy5LHXvy8LtMuA", tokens=40, price=19.99, savings=20),
)


def find_package(price_id: str) -> TokenPackage | None:
    return next((package for package in TOKEN_PACKAGES if package.price_id == price_id), None)


@dataclass(frozen=True, slots=True)
class CheckoutMetadata:
    user_id: str
    tokens: int

    def as_stripe_metadata(self) -> dict[str, str]:
        return {"user_id": self.user_id, "tokens": str(self.tokens)}


def _parse_int_prefix(value: Any) -> int | None:
    """Leading-integer parse: "15" and "15 tokens" give 15, "abc" gives None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if value is None:
        return None
    match = _LEADING_INT_RE.match(str(value))
    return int(match.group(1)) if match else None


def parse_checkout_metadata(metadata: Mapping[str, Any] | None) -> CheckoutMetadata:
    metadata = metadata or {}
    user_id = str(metadata.get("user_id") or "").strip()
    tokens = _parse_int_prefix(metadata.get("tokens"))

    if not user_id:
        raise InvalidMetadataError("Missing user_id in metadata")
    if tokens is None or tokens <= 0:
        raise InvalidMetadataError("Invalid tokens in metadata")
    return CheckoutMetadata(user_id=user_id, tokens=tokens)


@dataclass(frozen=True, slots=True)
class ReturnNotification:
    credits: int
    message: str
    clean_path: str = "/"


def parse_return_params(params: Mapping[str, str]) -> ReturnNotification | None:
    """
    Read the checkout success redirect query.

    Only ``success=true`` with a numeric ``credits`` value produces a
    notification.
    """
    if params.get("success") != "true":
        return None

    raw_credits = (params.get("credits") or "").strip()
    if not raw_credits.isdigit():
        return None

    credits = int(raw_credits)
    return ReturnNotification(credits=credits, message=f"🎉 {credits} credits added!")
