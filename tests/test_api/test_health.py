"""Tests for the /health endpoint."""

import pytest


@pytest.mark.asyncio
async def test_health_check(client):
    """GET /health should report both the database and Redis as reachable."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "ok", "redis": "ok"}


@pytest.mark.asyncio
async def test_health_needs_no_caller(client):
    response = await client.get("/health", headers={"X-Caller-Id": ""})
    assert response.status_code == 200
