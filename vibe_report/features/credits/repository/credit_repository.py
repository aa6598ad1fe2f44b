"""
Persistence layer for credit balances.

Signed-in users are rows in `users`; every balance change is a single
conditional statement so concurrent requests can never drive a balance
below zero. Payment grants are recorded in `processed_payment_events` in
the same transaction as the balance change.
"""

from vibe_report.db.helpers import fetch_one, fetch_val, with_db_retry
from vibe_report.db.pool import db_pool
from vibe_report.features.credits.domain import AccountNotFoundError, GrantResult
from vibe_report.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class UserCreditRepository:
    """Credit balances for signed-in users."""

    @classmethod
    @with_db_retry(max_retries=2)
    async def get_or_create_balance(
        cls, user_id: str, email: str | None, starting_credits: int
    ) -> int:
        """
        Return the user's balance, creating the row on first sight.

        The no-op update on conflict makes RETURNING yield the existing row.
        """
        query = """
            INSERT INTO users (id, email, credits)
            VALUES (%s, %s, %s)
            ON CONFLICT (id) DO UPDATE
            SET email = COALESCE(users.email, EXCLUDED.email)
            RETURNING credits
        """
        balance = await fetch_val(query, (user_id, email, starting_credits))
        return int(balance)

    @classmethod
    @with_db_retry(max_retries=2)
    async def consume_one(cls, user_id: str) -> int | None:
        """
        Decrement by one if the balance allows it.

        Returns the new balance, or None when the row is missing or already
        at zero.
        """
        query = """
            UPDATE users
            SET credits = credits - 1,
                updated_at = NOW()
            WHERE id = %s AND credits >= 1
            RETURNING credits
        """
        balance = await fetch_val(query, (user_id,))
        return None if balance is None else int(balance)

    @classmethod
    @with_db_retry(max_retries=2)
    async def grant(
        cls,
        user_id: str,
        amount: int,
        *,
        payment_key: str,
        event_id: str | None = None,
        event_type: str | None = None,
    ) -> GrantResult:
        """
        Record the payment and add `amount` credits in one transaction.

        A payment key seen before returns a duplicate result and changes
        nothing. A missing user rolls back the payment record too, so a
        retried delivery can still succeed once the account exists.
        """
        record_query = """
            INSERT INTO processed_payment_events (
                payment_key, event_id, event_type, user_id, credits_added
            )
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (payment_key) DO NOTHING
            RETURNING payment_key
        """
        credit_query = """
            UPDATE users
            SET credits = credits + %s,
                updated_at = NOW()
            WHERE id = %s
            RETURNING credits
        """

        async with db_pool.transaction() as conn:
            recorded = await fetch_one(
                record_query,
                (payment_key, event_id, event_type, user_id, amount),
                connection=conn,
            )
            if not recorded:
                logger.info(
                    "Payment already processed, skipping grant",
                    user_id=user_id,
                    payment_key=payment_key,
                    event_type=event_type,
                )
                return GrantResult(
                    user_id=user_id, credits_added=0, new_balance=None, duplicate=True
                )

            new_balance = await fetch_val(credit_query, (amount, user_id), connection=conn)
            if new_balance is None:
                raise AccountNotFoundError(user_id)

        logger.info(
            "Credits granted",
            user_id=user_id,
            credits_added=amount,
            new_balance=new_balance,
            payment_key=payment_key,
        )
        return GrantResult(user_id=user_id, credits_added=amount, new_balance=int(new_balance))
