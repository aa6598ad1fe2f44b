from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

import pytest

from vibe_report.features.credits.domain import (
    AccountIdentity,
    AccountNotFoundError,
    CreditAccount,
    CreditLedgerError,
)
from vibe_report.features.credits.services import ledger_service
from vibe_report.db.helpers import DatabaseError

REPO = "vibe_report.features.credits.repository.credit_repository"

USER = AccountIdentity(kind="user", id="u1", email="u1@example.com")
GUEST = AccountIdentity(kind="guest", id="guest-abc")


class FakePool:
    def __init__(self):
        self.transactions = 0
        self.rolled_back = 0

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        try:
            yield object()
        except Exception:
            self.rolled_back += 1
            raise


@pytest.fixture
def fake_pool(monkeypatch):
    pool = FakePool()
    monkeypatch.setattr(f"{REPO}.db_pool", pool)
    return pool


def test_has_credit_threshold():
    assert ledger_service.has_credit(CreditAccount(identity=USER, balance=1)) is True
    assert ledger_service.has_credit(CreditAccount(identity=USER, balance=0)) is False


@pytest.mark.asyncio
async def test_user_account_created_with_starting_credits(monkeypatch):
    fetch_val = AsyncMock(return_value=2)
    monkeypatch.setattr(f"{REPO}.fetch_val", fetch_val)

    account = await ledger_service.get_account(USER)

    assert account.balance == 2
    query, params = fetch_val.call_args.args
    assert "ON CONFLICT (id)" in query
    assert params == ("u1", "u1@example.com", 2)


@pytest.mark.asyncio
async def test_user_account_load_failure_is_ledger_error(monkeypatch):
    monkeypatch.setattr(f"{REPO}.fetch_val", AsyncMock(side_effect=DatabaseError("boom")))

    with pytest.raises(CreditLedgerError):
        await ledger_service.get_account(USER)


@pytest.mark.asyncio
async def test_user_consume_is_conditional_decrement(monkeypatch):
    fetch_val = AsyncMock(return_value=1)
    monkeypatch.setattr(f"{REPO}.fetch_val", fetch_val)

    assert await ledger_service.consume_credit(USER) == 1
    query, params = fetch_val.call_args.args
    assert "credits = credits - 1" in query
    assert "credits >= 1" in query
    assert params == ("u1",)


@pytest.mark.asyncio
async def test_user_consume_at_zero_stays_zero(monkeypatch):
    monkeypatch.setattr(f"{REPO}.fetch_val", AsyncMock(return_value=None))

    assert await ledger_service.consume_credit(USER) == 0


@pytest.mark.asyncio
async def test_guest_starts_with_two_and_floors_at_zero(fake_redis):
    account = await ledger_service.get_account(GUEST)
    assert account.balance == 2

    assert await ledger_service.consume_credit(GUEST) == 1
    assert await ledger_service.consume_credit(GUEST) == 0
    assert await ledger_service.consume_credit(GUEST) == 0
    assert fake_redis.store["guest_credits:guest-abc"] == "0"


@pytest.mark.asyncio
async def test_guest_consume_seeds_unknown_guest(fake_redis):
    assert await ledger_service.consume_credit(AccountIdentity(kind="guest", id="new")) == 1


@pytest.mark.asyncio
async def test_grant_records_payment_and_credits(monkeypatch, fake_pool):
    fetch_one = AsyncMock(return_value={"payment_key": "pi_1"})
    fetch_val = AsyncMock(return_value=17)
    monkeypatch.setattr(f"{REPO}.fetch_one", fetch_one)
    monkeypatch.setattr(f"{REPO}.fetch_val", fetch_val)

    result = await ledger_service.grant_credit(
        "u1", 15, payment_key="pi_1", event_id="evt_1", event_type="checkout.session.completed"
    )

    assert result.duplicate is False
    assert result.credits_added == 15
    assert result.new_balance == 17
    assert fake_pool.transactions == 1
    assert fetch_one.call_args.args[1] == ("pi_1", "evt_1", "checkout.session.completed", "u1", 15)
    assert fetch_val.call_args.args[1] == (15, "u1")


@pytest.mark.asyncio
async def test_grant_duplicate_payment_does_not_credit(monkeypatch, fake_pool):
    fetch_val = AsyncMock()
    monkeypatch.setattr(f"{REPO}.fetch_one", AsyncMock(return_value=None))
    monkeypatch.setattr(f"{REPO}.fetch_val", fetch_val)

    result = await ledger_service.grant_credit("u1", 15, payment_key="pi_1")

    assert result.duplicate is True
    assert result.credits_added == 0
    fetch_val.assert_not_awaited()


@pytest.mark.asyncio
async def test_grant_unknown_account_rolls_back(monkeypatch, fake_pool):
    monkeypatch.setattr(f"{REPO}.fetch_one", AsyncMock(return_value={"payment_key": "pi_1"}))
    monkeypatch.setattr(f"{REPO}.fetch_val", AsyncMock(return_value=None))

    with pytest.raises(AccountNotFoundError):
        await ledger_service.grant_credit("ghost", 5, payment_key="pi_1")

    assert fake_pool.rolled_back == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -3, 2.5, True])
async def test_grant_rejects_non_positive_amounts(amount):
    with pytest.raises(ValueError):
        await ledger_service.grant_credit("u1", amount, payment_key="pi_1")
