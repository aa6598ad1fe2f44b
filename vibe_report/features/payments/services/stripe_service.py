"""
Stripe Checkout client.

Creates hosted checkout sessions over the form-encoded REST API. The
session and its payment intent both carry the buyer's user id and token
count so the webhook can credit whichever event arrives.
"""

import asyncio
from dataclasses import dataclass

import httpx

from vibe_report.config import settings
from vibe_report.features.payments.domain import CheckoutMetadata, TokenPackage
from vibe_report.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

REQUEST_TIMEOUT = 10  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 2  # 2, 4, 8 seconds
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class StripeServiceError(Exception):
    """Raised when a checkout session cannot be created."""

    def __init__(self, message: str, status_code: int | None = None, recoverable: bool = True):
        super().__init__(message)
        self.status_code = status_code
        self.recoverable = recoverable


@dataclass(frozen=True, slots=True)
class CheckoutSession:
    session_id: str
    url: str


def build_checkout_form(
    package: TokenPackage, user_id: str, email: str | None, origin: str
) -> dict[str, str]:
    metadata = CheckoutMetadata(user_id=user_id, tokens=package.tokens).as_stripe_metadata()

    form = {
        "line_items[0][price]": package.price_id,
        "line_items[0][quantity]": "1",
        "mode": "payment",
        "success_url": f"{origin}/?success=true&credits={package.tokens}",
        "cancel_url": origin,
        "allow_promotion_codes": "true",
    }
    for key, value in metadata.items():
        form[f"metadata[{key}]"] = value
        form[f"payment_intent_data[metadata][{key}]"] = value
    if email:
        form["customer_email"] = email
    return form


class StripeService:
    def __init__(self):
        self.api_base = settings.STRIPE_API_BASE.rstrip("/")

    async def _post_with_retry(self, url: str, data: dict, operation: str) -> httpx.Response:
        """
        Perform POST request with retry/backoff handling.

        Args:
            url: Target URL
            data: Form data payload
            operation: Operation name for logging context
        """
        headers = {
            "Authorization": f"Bearer {settings.STRIPE_SECRET_KEY}",
            "Content-Type": "application/x-www-form-urlencoded",
        }
        last_error: Exception | None = None

        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            for attempt in range(1, MAX_RETRIES + 1):
                try:
                    response = await client.post(url, data=data, headers=headers)

                    if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                        wait_time = BACKOFF_FACTOR**attempt
                        logger.warning(
                            "Stripe transient status",
                            operation=operation,
                            status_code=response.status_code,
                            attempt=attempt,
                            wait_time=wait_time,
                        )
                        await asyncio.sleep(wait_time)
                        continue

                    return response

                except httpx.RequestError as exc:
                    last_error = exc

                    if attempt == MAX_RETRIES:
                        raise

                    wait_time = BACKOFF_FACTOR**attempt
                    logger.warning(
                        "Stripe request error, retrying",
                        operation=operation,
                        attempt=attempt,
                        wait_time=wait_time,
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
                    await asyncio.sleep(wait_time)

        if last_error:
            raise last_error
        raise StripeServiceError(f"{operation} failed: Unknown error")

    async def create_checkout_session(
        self, package: TokenPackage, user_id: str, email: str | None = None
    ) -> CheckoutSession:
        """
        Create a hosted checkout session for one token package.

        Raises:
            StripeServiceError: not configured, network failure, or rejected request
        """
        if not settings.STRIPE_SECRET_KEY:
            raise StripeServiceError("STRIPE_SECRET_KEY not configured", recoverable=False)

        form = build_checkout_form(package, user_id, email, settings.app_origin())

        try:
            response = await self._post_with_retry(
                f"{self.api_base}/checkout/sessions", form, operation="create_checkout_session"
            )
        except httpx.RequestError as e:
            logger.error(
                "Network error creating checkout session",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StripeServiceError(f"Network error creating checkout session: {e}") from e

        if response.status_code != 200:
            logger.error(
                "Stripe rejected checkout session",
                user_id=user_id,
                status_code=response.status_code,
                body=response.text[:200],
            )
            raise StripeServiceError(
                "Stripe rejected checkout session",
                status_code=response.status_code,
                recoverable=response.status_code >= 500,
            )

        payload = response.json()
        session_id = payload.get("id")
        url = payload.get("url")
        if not session_id or not url:
            raise StripeServiceError("Checkout session response missing id or url")

        logger.info(
            "Checkout session created",
            user_id=user_id,
            session_id=session_id,
            tokens=package.tokens,
            price_id=package.price_id,
        )
        return CheckoutSession(session_id=session_id, url=url)


stripe_service = StripeService()
