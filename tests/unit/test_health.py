"""Unit tests for health endpoints."""

import httpx
import pytest


@pytest.mark.asyncio
async def test_health_check(async_client: httpx.AsyncClient) -> None:
    """Test basic health check returns healthy status."""
    response = await async_client.get("/api/v1/health")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "healthy"
    assert data["environment"] == "test"
    assert data["dependencies"]["catalog_store"] == "https://shop.example.com"
    assert "version" in data
    assert "timestamp" in data


@pytest.mark.asyncio
async def test_liveness_check(async_client: httpx.AsyncClient) -> None:
    """Test liveness check returns alive status."""
    response = await async_client.get("/api/v1/health/live")
    assert response.status_code == 200
    assert response.json()["status"] == "alive"


@pytest.mark.asyncio
async def test_readiness_check(async_client: httpx.AsyncClient) -> None:
    """Test readiness check queries the database."""
    response = await async_client.get("/api/v1/health/ready")
    assert response.status_code == 200

    data = response.json()
    assert data == {"ready": True, "checks": {"postgres": True}}
