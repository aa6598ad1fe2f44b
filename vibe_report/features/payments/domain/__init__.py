"""
Domain subpackage for payments.
"""

from .models import (
    TOKEN_PACKAGES,
    CheckoutMetadata,
    InvalidMetadataError,
    ReturnNotification,
    TokenPackage,
    find_package,
    parse_checkout_metadata,
    parse_return_params,
)

__all__ = [
    "TOKEN_PACKAGES",
    "CheckoutMetadata",
    "InvalidMetadataError",
    "ReturnNotification",
    "TokenPackage",
    "find_package",
    "parse_checkout_metadata",
    "parse_return_params",
]
