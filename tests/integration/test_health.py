from unittest.mock import AsyncMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from vibe_report.routes import health


def _client() -> TestClient:
    app = FastAPI()
    app.include_router(health.router)
    return TestClient(app)


def test_healthz():
    response = _client().get("/healthz")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_readyz_all_healthy(monkeypatch):
    monkeypatch.setattr(health, "ping", AsyncMock(return_value=True))
    monkeypatch.setattr(
        health,
        "db_health_check",
        AsyncMock(return_value={"healthy": True, "pool_stats": {"pool_size": 2}}),
    )

    response = _client().get("/readyz")

    assert response.status_code == 200
    body = response.json()
    assert body["overall_ok"] is True
    assert body["checks"]["database"]["pool_stats"] == {"pool_size": 2}


def test_readyz_database_down(monkeypatch):
    monkeypatch.setattr(health, "ping", AsyncMock(return_value=True))
    monkeypatch.setattr(
        health, "db_health_check", AsyncMock(return_value={"healthy": False, "error": "refused"})
    )

    response = _client().get("/readyz")

    assert response.status_code == 503
    assert response.json()["checks"]["database"]["error"] == "refused"


def test_readyz_redis_error(monkeypatch):
    monkeypatch.setattr(health, "ping", AsyncMock(side_effect=ConnectionError("no redis")))
    monkeypatch.setattr(health, "db_health_check", AsyncMock(return_value={"healthy": True}))

    response = _client().get("/readyz")

    assert response.status_code == 503
    assert response.json()["checks"]["redis"]["ok"] is False
