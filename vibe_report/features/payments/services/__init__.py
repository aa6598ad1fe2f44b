"""
Service layer for payments.
"""

from .stripe_service import CheckoutSession, StripeService, StripeServiceError, stripe_service
from .webhook_service import WebhookOutcome, process_event

__all__ = [
    "CheckoutSession",
    "StripeService",
    "StripeServiceError",
    "WebhookOutcome",
    "process_event",
    "stripe_service",
]
