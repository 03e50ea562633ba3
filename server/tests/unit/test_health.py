"""Unit tests for health endpoints."""

import pytest

from booking_engine.workers.manager import worker_manager


@pytest.mark.asyncio
async def test_health_check(test_client):
    """Test the health check endpoint."""
    response = await test_client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "service" in data
    assert "version" in data


@pytest.mark.asyncio
async def test_ready_check(test_client):
    """Test the readiness check endpoint."""
    response = await test_client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"] == {"database": "ok"}


@pytest.mark.asyncio
async def test_info_endpoint(test_client):
    """Test the service info endpoint."""
    response = await test_client.get("/info")
    assert response.status_code == 200
    data = response.json()
    assert data["pricing"]["tax_rate"] == "0.12"
    assert data["reservation_expiry_minutes"] == 30


@pytest.mark.asyncio
async def test_health_ping_degraded_without_workers(test_client):
    """The test client skips the lifespan, so the sweeper is not running."""
    response = await test_client.post("/v1/health/ping", json={})
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["workers"] == {"reservation_sweeper": False}
    assert data["timestamp"].startswith("2025-06-01T12:00:00")


@pytest.mark.asyncio
async def test_health_ping_healthy_with_workers(test_client, monkeypatch):
    monkeypatch.setattr(worker_manager, "get_worker_status", lambda: {"reservation_sweeper": True})

    response = await test_client.post("/v1/health/ping", json={})

    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_request_id_header(test_client):
    response = await test_client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"
