"""
Pending action tokens.

A guest who tries to share or buy is asked to sign in first. The intent is
parked in Redis under their session id and picked up once, right after
sign-in. One slot per session: queuing again replaces the previous token.
"""

from typing import Any

from vibe_report.config import settings
from vibe_report.features.pending_actions.domain import (
    PENDING_ACTIONS,
    PendingAction,
    PendingActionError,
)
from vibe_report.infrastructure.observability.logging import get_logger
from vibe_report.services.redis_store import getdel, set_with_ttl

logger = get_logger(__name__)

PENDING_ACTION_KEY_PREFIX = "pending_action"
MAX_SESSION_ID_LENGTH = 128


def _redis_key(session_id: str) -> str:
    return f"{PENDING_ACTION_KEY_PREFIX}:{session_id}"


def _check_session_id(session_id: str) -> str:
    session_id = (session_id or "").strip()
    if not session_id or len(session_id) > MAX_SESSION_ID_LENGTH:
        raise PendingActionError("Invalid session id", recoverable=False)
    return session_id


async def queue(session_id: str, action: str, params: dict[str, Any] | None = None) -> PendingAction:
    """
    Park an action for the session, replacing any earlier one.

    Raises:
        PendingActionError: unknown action, bad session id, or Redis failure
    """
    session_id = _check_session_id(session_id)
    if action not in PENDING_ACTIONS:
        raise PendingActionError(f"Unknown pending action: {action}", recoverable=False)

    pending = PendingAction(action=action, params=dict(params or {}))
    key = _redis_key(session_id)

    try:
        # Pop first so a replaced token is visible in the logs.
        previous = await getdel(key)
        stored = await set_with_ttl(key, pending.to_json(), settings.PENDING_ACTION_TTL_SECONDS)
    except Exception as e:
        logger.error("Redis error queuing pending action", error=str(e), error_type=type(e).__name__)
        raise PendingActionError(f"Failed to store pending action: {e}") from e

    if previous is not None:
        logger.info("Pending action replaced", session_preview=session_id[:8] + "...", action=action)
    if not stored:
        raise PendingActionError("Failed to store pending action")

    logger.info(
        "Pending action queued",
        session_preview=session_id[:8] + "...",
        action=action,
        ttl_seconds=settings.PENDING_ACTION_TTL_SECONDS,
    )
    return pending


async def resume(session_id: str) -> PendingAction | None:
    """Take the session's pending action, if any. A token is returned at most once."""
    session_id = _check_session_id(session_id)
    try:
        raw = await getdel(_redis_key(session_id))
    except Exception as e:
        logger.error("Redis error resuming pending action", error=str(e), error_type=type(e).__name__)
        raise PendingActionError(f"Failed to read pending action: {e}") from e

    if raw is None:
        return None

    pending = PendingAction.from_json(raw)
    logger.info("Pending action resumed", session_preview=session_id[:8] + "...", action=pending.action)
    return pending
