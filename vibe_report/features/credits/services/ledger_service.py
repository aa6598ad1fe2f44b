"""
Credit ledger.

One credit buys one completed analysis. Users and guests share the same
operations; the identity kind picks the backing store.
"""

from redis.exceptions import RedisError

from vibe_report.config import settings
from vibe_report.db.helpers import DatabaseError
from vibe_report.features.credits.domain import (
    AccountIdentity,
    CreditAccount,
    CreditLedgerError,
    GrantResult,
)
from vibe_report.features.credits.repository import guest_credit_store
from vibe_report.features.credits.repository.credit_repository import UserCreditRepository
from vibe_report.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


async def get_account(identity: AccountIdentity) -> CreditAccount:
    """Load the account, creating it with the starting allowance if new."""
    try:
        if identity.is_guest:
            balance = await guest_credit_store.get_balance(
                identity.id, settings.GUEST_STARTING_CREDITS
            )
        else:
            balance = await UserCreditRepository.get_or_create_balance(
                identity.id, identity.email, settings.STARTING_CREDITS
            )
    except (DatabaseError, RedisError) as e:
        logger.error("Failed to load credit account", account=identity.lock_key, error=str(e))
        raise CreditLedgerError(f"Could not load credits: {e}") from e

    return CreditAccount(identity=identity, balance=balance)


def has_credit(account: CreditAccount) -> bool:
    return account.balance >= 1


async def consume_credit(identity: AccountIdentity) -> int:
    """
    Take one credit and return the new balance.

    A balance already at zero stays at zero.
    """
    try:
        if identity.is_guest:
            remaining = await guest_credit_store.consume_one(
                identity.id, settings.GUEST_STARTING_CREDITS
            )
        else:
            remaining = await UserCreditRepository.consume_one(identity.id)
    except (DatabaseError, RedisError) as e:
        logger.error("Failed to consume credit", account=identity.lock_key, error=str(e))
        raise CreditLedgerError(f"Could not consume credit: {e}") from e

    if remaining is None:
        logger.warning("Consume requested on empty balance", account=identity.lock_key)
        return 0

    logger.info("Credit consumed", account=identity.lock_key, new_balance=remaining)
    return remaining


async def grant_credit(
    user_id: str,
    amount: int,
    *,
    payment_key: str,
    event_id: str | None = None,
    event_type: str | None = None,
) -> GrantResult:
    """
    Add purchased credits to a user exactly once per payment key.

    Raises:
        ValueError: amount is not a positive integer
        AccountNotFoundError: no such user; nothing is recorded
        CreditLedgerError: storage failure
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError(f"Grant amount must be a positive integer, got {amount!r}")

    try:
        return await UserCreditRepository.grant(
            user_id,
            amount,
            payment_key=payment_key,
            event_id=event_id,
            event_type=event_type,
        )
    except DatabaseError as e:
        logger.error("Failed to grant credits", user_id=user_id, amount=amount, error=str(e))
        raise CreditLedgerError(f"Could not grant credits: {e}", recoverable=e.recoverable) from e
