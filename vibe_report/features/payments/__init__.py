"""
Payments feature package.

Token packages, hosted checkout, webhook crediting and the success
redirect.
"""

from .domain import TOKEN_PACKAGES, CheckoutMetadata, TokenPackage  # noqa: F401
