"""Unit tests for health, readiness and service info."""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

import fractional.main
from fractional.core.database import get_db
from fractional.main import create_app


class UnreachableEngine:
    """Stands in for an engine whose database refuses connections."""

    def connect(self):
        return self

    async def __aenter__(self):
        raise OSError("connection refused")

    async def __aexit__(self, *exc_info):
        return False


class BrokenSession:
    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, ConnectionResetError("connection lost"))


@pytest.mark.asyncio
async def test_ready_reports_unreachable_database(monkeypatch):
    """Readiness fails with 503 when the database cannot be reached."""
    monkeypatch.setattr(fractional.main, "engine", UnreachableEngine())

    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/ready")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "not_ready"
    assert data["checks"]["database"] == "unavailable"


@pytest.mark.asyncio
async def test_info_lists_settlement_features():
    """Service info advertises the settlement features and the event endpoint."""
    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/info")

    assert response.status_code == 200
    data = response.json()
    assert data["features"]["payment_signatures"] is True
    assert data["features"]["idempotent_settlement"] is True
    assert data["features"]["sequential_fill_allocation"] is True
    assert data["endpoints"]["payment_events"] == "/v1/payments/event"
    assert data["endpoints"]["readiness"] == "/ready"


@pytest.mark.asyncio
async def test_health_ping_checks_database(test_client):
    """The RPC-style ping reports a reachable database."""
    response = await test_client.post("/v1/health/ping", json={})

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "ok"
    assert "timestamp" in data


@pytest.mark.asyncio
async def test_health_ping_degrades_without_database(test_app, test_client):
    """A failing database query degrades the ping instead of erroring."""
    async def broken_db():
        yield BrokenSession()

    test_app.dependency_overrides[get_db] = broken_db

    response = await test_client.post("/v1/health/ping", json={})

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["database"] == "unavailable"
