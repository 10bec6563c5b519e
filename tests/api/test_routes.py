"""Tests for the operational HTTP endpoints."""
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from nightpass.api.deps import get_engine
from nightpass.core.config import Settings
from nightpass.core.errors import StoreError
from nightpass.engine import EntitlementEngine
from nightpass.main import app


@pytest.fixture
def engine(store, clock):
    settings = Settings(token_secret="api-test-secret-value")
    return EntitlementEngine.from_settings(settings, store=store, clock=clock)


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_ready(client):
    resp = client.get("/ready")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ready", "mode": "referral"}


def test_not_ready_when_store_down(client, engine):
    with patch.object(engine.access.store, "ping", return_value=False):
        resp = client.get("/ready")
    assert resp.status_code == 503


def test_stats(client, engine):
    engine.users.track("1")
    engine.users.track("2")
    assert client.get("/stats").json() == {"user_count": 2, "active_users": 2}


def test_stats_store_error(client, engine):
    with patch.object(engine, "stats", MagicMock(side_effect=StoreError("down"))):
        assert client.get("/stats").status_code == 503


def test_metrics(client):
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "nightpass_" in resp.text
