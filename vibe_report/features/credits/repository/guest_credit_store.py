"""
Guest credit balances kept in Redis.

Guests have no database row. A balance key is seeded with the starting
allowance the first time it is read or consumed and never expires.
"""

from vibe_report.services import redis_store

GUEST_CREDITS_PREFIX = "guest_credits:"


def _key(guest_id: str) -> str:
    return f"{GUEST_CREDITS_PREFIX}{guest_id}"


async def get_balance(guest_id: str, starting_credits: int) -> int:
    key = _key(guest_id)
    raw = await redis_store.get(key)
    if raw is None:
        await redis_store.set_if_absent(key, str(starting_credits), None)
        raw = await redis_store.get(key)
    return max(int(raw if raw is not None else starting_credits), 0)


async def consume_one(guest_id: str, starting_credits: int) -> int | None:
    """Atomically take one credit; None when the balance is already zero."""
    remaining = await redis_store.consume_floored(_key(guest_id), starting_credits)
    return None if remaining < 0 else remaining
