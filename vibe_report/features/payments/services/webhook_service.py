"""
Payment webhook processing.

Turns a verified Stripe event into a credit grant and decides the HTTP
answer. `checkout.session.completed` is the primary event and reports
failures with real status codes; `payment_intent.succeeded` is a fallback
and always acknowledges so Stripe does not retry it.
"""

from dataclasses import dataclass
from typing import Any

from vibe_report.features.credits.domain import AccountNotFoundError
from vibe_report.features.credits.services import grant_credit
from vibe_report.features.payments.domain import InvalidMetadataError, parse_checkout_metadata
from vibe_report.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
FALLBACK_ACK = "Event processed"


@dataclass(frozen=True, slots=True)
class WebhookOutcome:
    status_code: int
    body: dict[str, Any] | str


def _payment_key(event_type: str, obj: dict[str, Any]) -> str | None:
    # Both event types for one payment share the payment intent id.
    if event_type == CHECKOUT_COMPLETED:
        return obj.get("payment_intent") or obj.get("id")
    return obj.get("id")


async def _grant_from_event(event: dict[str, Any], event_type: str) -> WebhookOutcome:
    obj = (event.get("data") or {}).get("object") or {}
    metadata = parse_checkout_metadata(obj.get("metadata"))
    payment_key = _payment_key(event_type, obj)
    if not payment_key:
        raise InvalidMetadataError("Event object has no id")

    result = await grant_credit(
        metadata.user_id,
        metadata.tokens,
        payment_key=payment_key,
        event_id=event.get("id"),
        event_type=event_type,
    )
    if result.duplicate:
        return WebhookOutcome(200, {"received": True, "duplicate": True, "eventType": event_type})

    return WebhookOutcome(
        200,
        {
            "success": True,
            "userId": result.user_id,
            "creditsAdded": result.credits_added,
            "newBalance": result.new_balance,
        },
    )


async def process_event(event: dict[str, Any]) -> WebhookOutcome:
    """Handle one verified webhook event."""
    event_type = event.get("type") or ""
    log = logger.bind(event_type=event_type, event_id=event.get("id"))

    if event_type == CHECKOUT_COMPLETED:
        try:
            outcome = await _grant_from_event(event, event_type)
        except InvalidMetadataError as e:
            log.warning("Checkout event has invalid metadata", error=str(e))
            return WebhookOutcome(400, "Invalid metadata")
        except AccountNotFoundError as e:
            log.warning("Checkout event for unknown account", user_id=e.user_id)
            return WebhookOutcome(404, "User not found")
        except Exception as e:
            log.error(
                "Failed to process checkout payment", error=str(e), error_type=type(e).__name__
            )
            return WebhookOutcome(500, "Failed to process payment")
        log.info("Checkout payment processed", body=outcome.body)
        return outcome

    if event_type == PAYMENT_INTENT_SUCCEEDED:
        try:
            outcome = await _grant_from_event(event, event_type)
        except InvalidMetadataError as e:
            log.info("Payment intent without usable metadata", error=str(e))
            return WebhookOutcome(200, FALLBACK_ACK)
        except AccountNotFoundError as e:
            log.warning("Payment intent for unknown account", user_id=e.user_id)
            return WebhookOutcome(200, FALLBACK_ACK)
        except Exception as e:
            log.error(
                "Failed to process payment intent", error=str(e), error_type=type(e).__name__
            )
            return WebhookOutcome(200, FALLBACK_ACK)
        log.info("Payment intent processed", body=outcome.body)
        return outcome

    log.info("Unhandled webhook event type")
    return WebhookOutcome(200, {"received": True, "eventType": event_type})
