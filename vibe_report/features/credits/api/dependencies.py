"""
Request identity for endpoints that serve both users and guests.
"""

from fastapi import Depends, Header, HTTPException, status

from vibe_report.auth.verify import optional_auth_dependency, require_user_id
from vibe_report.features.credits.domain import AccountIdentity

MAX_GUEST_ID_LENGTH = 128


def resolve_account_identity(
    claims: dict | None = Depends(optional_auth_dependency),
    x_guest_id: str | None = Header(default=None),
) -> AccountIdentity:
    """
    A valid bearer token wins; otherwise the X-Guest-Id header is used.
    """
    if claims is not None:
        return AccountIdentity(kind="user", id=require_user_id(claims), email=claims.get("email"))

    guest_id = (x_guest_id or "").strip()
    if not guest_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign in or provide an X-Guest-Id header",
        )
    if len(guest_id) > MAX_GUEST_ID_LENGTH:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid guest id")

    return AccountIdentity(kind="guest", id=guest_id)
