"""
Pending action routes.

Usage:
    1. POST /pending-actions - Park a share or purchase before sign-in
    2. POST /pending-actions/{session_id}/resume - Pick it up after sign-in
"""

from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from vibe_report.auth.verify import auth_dependency, require_user_id
from vibe_report.features.credits.domain import AccountIdentity, CreditLedgerError
from vibe_report.features.credits.services import get_account
from vibe_report.features.payments.domain import find_package
from vibe_report.features.payments.services import StripeServiceError, stripe_service
from vibe_report.features.pending_actions import service as pending_action_service
from vibe_report.features.pending_actions.domain import PendingAction, PendingActionError
from vibe_report.infrastructure.observability.logging import get_logger

router = APIRouter(prefix="/pending-actions", tags=["pending-actions"])
logger = get_logger(__name__)


class QueuePendingActionRequest(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=128)
    action: Literal["share", "purchase"]
    params: dict[str, Any] = Field(default_factory=dict)


class QueuePendingActionResponse(BaseModel):
    queued: bool
    action: str


class ResumePendingActionResponse(BaseModel):
    action: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)
    checkout_url: str | None = None


@router.post("", response_model=QueuePendingActionResponse, status_code=status.HTTP_201_CREATED)
async def queue_pending_action(body: QueuePendingActionRequest) -> QueuePendingActionResponse:
    if body.action == "purchase" and not find_package(str(body.params.get("price_id", ""))):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown token package")

    try:
        pending = await pending_action_service.queue(body.session_id, body.action, body.params)
    except PendingActionError as e:
        code = status.HTTP_400_BAD_REQUEST if not e.recoverable else status.HTTP_503_SERVICE_UNAVAILABLE
        raise HTTPException(status_code=code, detail=str(e)) from e

    return QueuePendingActionResponse(queued=True, action=pending.action)


async def _requeue(session_id: str, pending: PendingAction, user_id: str) -> None:
    """Put a popped purchase back so the client can retry it."""
    try:
        await pending_action_service.queue(session_id, pending.action, pending.params)
    except PendingActionError as e:
        logger.error(
            "Pending purchase could not be requeued", user_id=user_id, error=str(e)
        )


@router.post("/{session_id}/resume", response_model=ResumePendingActionResponse)
async def resume_pending_action(
    session_id: str, claims: dict = Depends(auth_dependency)
) -> ResumePendingActionResponse:
    """
    Pop the session's pending action and carry it out for the signed-in user.

    A purchase becomes a checkout session; a share hands its params back.
    A purchase that cannot be started is queued again.
    """
    user_id = require_user_id(claims)

    try:
        pending = await pending_action_service.resume(session_id)
    except PendingActionError as e:
        logger.warning("Pending action could not be resumed", user_id=user_id, error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    if pending is None:
        return ResumePendingActionResponse()

    if pending.action == "share":
        return ResumePendingActionResponse(action="share", params=pending.params)

    package = find_package(str(pending.params.get("price_id", "")))
    if not package:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown token package")

    email = claims.get("email")
    try:
        # The webhook credits an existing users row only.
        await get_account(AccountIdentity(kind="user", id=user_id, email=email))
    except CreditLedgerError as e:
        await _requeue(session_id, pending, user_id)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Credits unavailable"
        ) from e

    try:
        session = await stripe_service.create_checkout_session(package, user_id, email=email)
    except StripeServiceError as e:
        logger.error("Checkout from pending action failed", user_id=user_id, error=str(e))
        await _requeue(session_id, pending, user_id)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Could not start checkout"
        ) from e

    return ResumePendingActionResponse(
        action="purchase", params=pending.params, checkout_url=session.url
    )
