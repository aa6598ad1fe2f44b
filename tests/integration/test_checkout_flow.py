import importlib
from unittest.mock import AsyncMock, Mock

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from vibe_report.features.payments.api.router import router as payments_router
from vibe_report.features.payments.services.stripe_service import CheckoutSession, stripe_service
from vibe_report.features.pending_actions.api.router import router as pending_router

stripe_module = importlib.import_module("vibe_report.features.payments.services.stripe_service")

PRICE_15 = "price_1SL21MCvKngy5LHXVvlL6oMU"
REPOSITORY = "vibe_report.features.credits.repository.credit_repository.UserCreditRepository"


@pytest.fixture
def client(fake_redis):
    app = FastAPI()
    app.include_router(payments_router)
    app.include_router(pending_router)
    return TestClient(app)


@pytest.fixture(autouse=True)
def seed_account(monkeypatch):
    seed = AsyncMock(return_value=2)
    monkeypatch.setattr(f"{REPOSITORY}.get_or_create_balance", seed)
    return seed


@pytest.fixture
def checkout_mock(monkeypatch):
    create = AsyncMock(
        return_value=CheckoutSession(session_id="cs_test_1", url="https://checkout.stripe.com/c/cs_test_1")
    )
    monkeypatch.setattr(stripe_service, "create_checkout_session", create)
    return create


def test_list_packages(client):
    response = client.get("/payments/packages")

    assert response.status_code == 200
    assert [package["tokens"] for package in response.json()] == [5, 15, 40]


def test_checkout_requires_auth(client):
    response = client.post("/payments/checkout", json={"price_id": PRICE_15})

    assert response.status_code in (401, 403)


def test_checkout_creates_session(client, apply_auth_override, checkout_mock):
    apply_auth_override(client.app)

    response = client.post("/payments/checkout", json={"price_id": PRICE_15})

    assert response.status_code == 200
    assert response.json() == {
        "session_id": "cs_test_1",
        "url": "https://checkout.stripe.com/c/cs_test_1",
    }
    package, user_id = checkout_mock.call_args.args
    assert package.tokens == 15
    assert user_id == "user-123"
    assert checkout_mock.call_args.kwargs == {"email": "user@example.com"}


def test_checkout_unknown_package(client, apply_auth_override, checkout_mock):
    apply_auth_override(client.app)

    response = client.post("/payments/checkout", json={"price_id": "price_nope"})

    assert response.status_code == 404
    checkout_mock.assert_not_awaited()


def test_checkout_stripe_failure(client, apply_auth_override, monkeypatch):
    apply_auth_override(client.app)
    monkeypatch.setattr(
        stripe_service,
        "create_checkout_session",
        AsyncMock(side_effect=stripe_module.StripeServiceError("rejected", status_code=400)),
    )

    response = client.post("/payments/checkout", json={"price_id": PRICE_15})

    assert response.status_code == 502


@pytest.mark.asyncio
async def test_stripe_service_posts_form(monkeypatch):
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["authorization"]
        captured["body"] = request.content.decode()
        return httpx.Response(200, json={"id": "cs_live", "url": "https://checkout.stripe.com/x"})

    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        stripe_module.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )

    from vibe_report.features.payments.domain import find_package

    session = await stripe_service.create_checkout_session(
        find_package(PRICE_15), "u1", email="u1@example.com"
    )

    assert session.session_id == "cs_live"
    assert captured["url"].endswith("/v1/checkout/sessions")
    assert captured["auth"] == "Bearer sk_test_123"
    assert "metadata%5Buser_id%5D=u1" in captured["body"]
    assert "success_url=http%3A%2F%2Flocalhost%3A5173%2F%3Fsuccess%3Dtrue%26credits%3D15" in captured["body"]


@pytest.mark.asyncio
async def test_stripe_service_rejection(monkeypatch):
    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        stripe_module.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(
            transport=httpx.MockTransport(lambda request: httpx.Response(400, json={"error": {}})),
            **kwargs,
        ),
    )

    from vibe_report.features.payments.domain import TOKEN_PACKAGES

    with pytest.raises(stripe_module.StripeServiceError) as exc_info:
        await stripe_service.create_checkout_session(TOKEN_PACKAGES[0], "u1")

    assert exc_info.value.status_code == 400
    assert exc_info.value.recoverable is False


def test_return_redirect_reports_balance(client, fake_redis):
    fake_redis.store["guest_credits:guest-9"] = "17"

    response = client.get(
        "/payments/return", params={"success": "true", "credits": "15"}, headers={"X-Guest-Id": "guest-9"}
    )

    assert response.json() == {
        "notification": "🎉 15 credits added!",
        "credits_added": 15,
        "balance": 17,
        "clean_path": "/",
    }
    assert fake_redis.store["guest_credits:guest-9"] == "17"


def test_return_redirect_without_success(client):
    response = client.get(
        "/payments/return", params={"credits": "abc"}, headers={"X-Guest-Id": "guest-9"}
    )

    assert response.json()["notification"] is None
    assert response.json()["balance"] == 2


def test_pending_purchase_resumed_after_sign_in(client, apply_auth_override, checkout_mock):
    queued = client.post(
        "/pending-actions",
        json={"session_id": "sess-7", "action": "purchase", "params": {"price_id": PRICE_15}},
    )
    assert queued.status_code == 201

    apply_auth_override(client.app)
    resumed = client.post("/pending-actions/sess-7/resume")

    assert resumed.status_code == 200
    assert resumed.json()["checkout_url"] == "https://checkout.stripe.com/c/cs_test_1"
    checkout_mock.assert_awaited_once()

    again = client.post("/pending-actions/sess-7/resume")
    assert again.json() == {"action": None, "params": {}, "checkout_url": None}


def test_pending_share_returns_params(client, apply_auth_override, checkout_mock):
    client.post(
        "/pending-actions",
        json={"session_id": "sess-8", "action": "share", "params": {"target": "story"}},
    )
    apply_auth_override(client.app)

    resumed = client.post("/pending-actions/sess-8/resume")

    assert resumed.json() == {"action": "share", "params": {"target": "story"}, "checkout_url": None}
    checkout_mock.assert_not_awaited()


def test_pending_purchase_with_unknown_package_rejected(client):
    response = client.post(
        "/pending-actions",
        json={"session_id": "sess-9", "action": "purchase", "params": {"price_id": "nope"}},
    )

    assert response.status_code == 400


def test_checkout_seeds_account_before_session(
    client, apply_auth_override, seed_account, checkout_mock
):
    calls = Mock()
    calls.attach_mock(seed_account, "seed")
    calls.attach_mock(checkout_mock, "checkout")
    apply_auth_override(client.app)

    client.post("/payments/checkout", json={"price_id": PRICE_15})

    assert [name for name, _, _ in calls.mock_calls] == ["seed", "checkout"]
    assert seed_account.call_args.args == ("user-123", "user@example.com", 2)


def test_checkout_ledger_unavailable(client, apply_auth_override, seed_account, checkout_mock):
    from vibe_report.db.helpers import DatabaseError

    seed_account.side_effect = DatabaseError("connection refused", operation="get_or_create_balance")
    apply_auth_override(client.app)

    response = client.post("/payments/checkout", json={"price_id": PRICE_15})

    assert response.status_code == 503
    checkout_mock.assert_not_awaited()


def test_pending_purchase_seeds_account(client, apply_auth_override, seed_account, checkout_mock):
    client.post(
        "/pending-actions",
        json={"session_id": "sess-10", "action": "purchase", "params": {"price_id": PRICE_15}},
    )
    apply_auth_override(client.app)

    client.post("/pending-actions/sess-10/resume")

    seed_account.assert_awaited_once_with("user-123", "user@example.com", 2)


def test_pending_purchase_kept_when_checkout_fails(
    client, apply_auth_override, monkeypatch, fake_redis
):
    client.post(
        "/pending-actions",
        json={"session_id": "sess-11", "action": "purchase", "params": {"price_id": PRICE_15}},
    )
    apply_auth_override(client.app)
    monkeypatch.setattr(
        stripe_service,
        "create_checkout_session",
        AsyncMock(side_effect=stripe_module.StripeServiceError("unavailable", status_code=503)),
    )

    response = client.post("/pending-actions/sess-11/resume")

    assert response.status_code == 502
    assert "pending_action:sess-11" in fake_redis.store

    monkeypatch.setattr(
        stripe_service,
        "create_checkout_session",
        AsyncMock(return_value=CheckoutSession(session_id="cs_2", url="https://checkout.stripe.com/c/cs_2")),
    )
    retried = client.post("/pending-actions/sess-11/resume")

    assert retried.json()["checkout_url"] == "https://checkout.stripe.com/c/cs_2"
