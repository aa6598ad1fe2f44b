"""
Credit balance routes.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from vibe_report.features.credits.api.dependencies import resolve_account_identity
from vibe_report.features.credits.domain import AccountIdentity, CreditLedgerError
from vibe_report.features.credits.services import get_account, has_credit
from vibe_report.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/credits", tags=["credits"])


class CreditBalanceResponse(BaseModel):
    account_type: str
    balance: int
    can_analyze: bool


@router.get("", response_model=CreditBalanceResponse)
async def get_credit_balance(
    identity: AccountIdentity = Depends(resolve_account_identity),
) -> CreditBalanceResponse:
    try:
        account = await get_account(identity)
    except CreditLedgerError as e:
        logger.error("Credit balance lookup failed", account=identity.lock_key, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Credits unavailable"
        ) from e

    return CreditBalanceResponse(
        account_type=identity.kind,
        balance=account.balance,
        can_analyze=has_credit(account),
    )
