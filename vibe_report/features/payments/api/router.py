"""
Payment routes.

Usage:
    1. GET /payments/packages - Token packages on sale
    2. POST /payments/checkout - Start a hosted checkout (signed-in users)
    3. POST /payments/webhook - Stripe event delivery
    4. GET /payments/return - Read the success redirect and report the balance
"""

import json

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from vibe_report.auth.verify import auth_dependency, require_user_id
from vibe_report.config import settings
from vibe_report.features.credits.api.dependencies import resolve_account_identity
from vibe_report.features.credits.domain import AccountIdentity, CreditLedgerError
from vibe_report.features.credits.services import get_account
from vibe_report.features.payments.domain import TOKEN_PACKAGES, find_package, parse_return_params
from vibe_report.features.payments.services import (
    StripeServiceError,
    process_event,
    stripe_service,
)
from vibe_report.infrastructure.observability.logging import get_logger
from vibe_report.security.webhook_signature import WebhookSignatureError, verify_stripe_signature

router = APIRouter(prefix="/payments", tags=["payments"])
logger = get_logger(__name__)

SIGNATURE_HEADER = "stripe-signature"
WEBHOOK_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, stripe-signature",
}


class TokenPackageResponse(BaseModel):
    price_id: str
    tokens: int
    price: float
    savings: int | None = None


class CheckoutRequest(BaseModel):
    price_id: str


class CheckoutResponse(BaseModel):
    session_id: str
    url: str


class ReturnResponse(BaseModel):
    notification: str | None = None
    credits_added: int | None = None
    balance: int
    clean_path: str = "/"


@router.get("/packages", response_model=list[TokenPackageResponse])
async def list_packages() -> list[TokenPackageResponse]:
    return [
        TokenPackageResponse(
            price_id=package.price_id,
            tokens=package.tokens,
            price=package.price,
            savings=package.savings,
        )
        for package in TOKEN_PACKAGES
    ]


async def _ensure_account(user_id: str, email: str | None) -> None:
    """Seed the users row so the webhook has an account to credit."""
    try:
        await get_account(AccountIdentity(kind="user", id=user_id, email=email))
    except CreditLedgerError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Credits unavailable"
        ) from e


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(body: CheckoutRequest, claims: dict = Depends(auth_dependency)):
    """
    Create a checkout session for a token package.

    Raises:
        401: Invalid authentication token
        404: Unknown price id
        502: Stripe unavailable or rejected the request
        503: Credit account could not be loaded
    """
    user_id = require_user_id(claims)

    package = find_package(body.price_id)
    if not package:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown token package")

    await _ensure_account(user_id, claims.get("email"))

    try:
        session = await stripe_service.create_checkout_session(
            package, user_id, email=claims.get("email")
        )
    except StripeServiceError as e:
        logger.error("Checkout creation failed", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Could not start checkout"
        ) from e

    return CheckoutResponse(session_id=session.session_id, url=session.url)


@router.options("/webhook")
async def webhook_preflight() -> Response:
    return Response(status_code=status.HTTP_200_OK, headers=WEBHOOK_CORS_HEADERS)


@router.post("/webhook")
async def stripe_webhook(request: Request) -> Response:
    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        logger.warning("Webhook without signature header")
        return PlainTextResponse("Missing signature", status_code=status.HTTP_400_BAD_REQUEST)

    secret = settings.STRIPE_WEBHOOK_SECRET
    if not secret:
        logger.error("STRIPE_WEBHOOK_SECRET not configured")
        return PlainTextResponse(
            "Webhook not configured", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    raw = await request.body()
    try:
        verify_stripe_signature(raw, signature, secret, settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS)
    except WebhookSignatureError as e:
        logger.warning("Webhook signature verification failed", error=str(e))
        return PlainTextResponse(
            "Signature verification failed", status_code=status.HTTP_401_UNAUTHORIZED
        )

    try:
        event = json.loads(raw)
    except ValueError:
        logger.warning("Webhook body is not valid JSON")
        return PlainTextResponse("Invalid payload", status_code=status.HTTP_400_BAD_REQUEST)
    if not isinstance(event, dict):
        return PlainTextResponse("Invalid payload", status_code=status.HTTP_400_BAD_REQUEST)

    outcome = await process_event(event)
    if isinstance(outcome.body, str):
        return PlainTextResponse(outcome.body, status_code=outcome.status_code)
    return JSONResponse(outcome.body, status_code=outcome.status_code)


@router.get("/return", response_model=ReturnResponse)
async def checkout_return(
    request: Request, identity: AccountIdentity = Depends(resolve_account_identity)
) -> ReturnResponse:
    """
    Confirm a completed checkout to the client.

    Credits are granted by the webhook only; this reports the current
    balance alongside the confirmation text.
    """
    notification = parse_return_params(request.query_params)

    try:
        account = await get_account(identity)
    except CreditLedgerError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Credits unavailable"
        ) from e

    if notification is None:
        return ReturnResponse(balance=account.balance)

    logger.info(
        "Checkout return confirmed",
        account=identity.lock_key,
        credits=notification.credits,
        balance=account.balance,
    )
    return ReturnResponse(
        notification=notification.message,
        credits_added=notification.credits,
        balance=account.balance,
        clean_path=notification.clean_path,
    )
