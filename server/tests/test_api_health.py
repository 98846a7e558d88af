"""API health tests against the fully configured application."""

import pytest
from httpx import ASGITransport, AsyncClient

from fractional.main import create_app


@pytest.mark.asyncio
async def test_api_health_endpoints():
    """Test the health endpoints of the real application."""
    app = create_app()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        # Test basic health endpoint
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "fractional-settlement-api"

        # Test ready endpoint
        response = await client.get("/ready")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["checks"]["database"] == "ok"

        # Test info endpoint
        response = await client.get("/info")
        assert response.status_code == 200
        data = response.json()
        assert "service" in data
        assert "version" in data
        assert data["endpoints"]["payment_events"] == "/v1/payments/event"


@pytest.mark.asyncio
async def test_request_id_is_echoed():
    """A caller-supplied request id comes back on the response."""
    app = create_app()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

        response = await client.get("/health")
        assert response.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_metrics_endpoint():
    """Test the metrics endpoint."""
    app = create_app()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "payment_settlements_total" in response.text


@pytest.mark.asyncio
async def test_openapi_docs():
    """Test that OpenAPI docs are available in development."""
    app = create_app()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/docs")
        # Should be available in development mode
        assert response.status_code == 200
