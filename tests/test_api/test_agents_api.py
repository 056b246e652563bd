"""API integration tests for /agents and /usage."""

import pytest

from conftest import VALID_TEXT


@pytest.mark.asyncio
async def test_score_agent(client, seed):
    await seed({"team_1": {"agent_1": 8}})

    response = await client.post("/agents/agent_1/score", json={"window_size": 20})

    assert response.status_code == 200
    data = response.json()
    assert data["agent_id"] == "agent_1"
    assert data["used_repair"] is False
    assert data["score"]["overall_score"] == 72.0
    assert data["score"]["key_patterns"] == ["long holds"]
    assert data["snapshot_id"]

    usage = (await client.get("/usage")).json()
    assert usage["used"] == 1


@pytest.mark.asyncio
async def test_score_agent_after_repair(client, seed, scoring_client):
    await seed({"team_1": {"agent_1": 8}})
    scoring_client.responses = ["Overall a solid agent.", VALID_TEXT]

    response = await client.post("/agents/agent_1/score", json={})

    assert response.status_code == 200
    assert response.json()["used_repair"] is True


@pytest.mark.asyncio
async def test_score_agent_insufficient_data(client, seed):
    await seed({"team_1": {"agent_1": 2}})

    response = await client.post("/agents/agent_1/score", json={})

    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "InsufficientData"


@pytest.mark.asyncio
@pytest.mark.parametrize("window_size", [5, 30.5, "abc"])
async def test_score_agent_bad_window_size(client, seed, window_size):
    await seed({"team_1": {"agent_1": 8}})

    response = await client.post("/agents/agent_1/score", json={"window_size": window_size})

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "InvalidWindowSize"
    assert (await client.get("/usage")).json()["used"] == 0


@pytest.mark.asyncio
async def test_score_agent_unusable_output(client, seed, scoring_client):
    await seed({"team_1": {"agent_1": 8}})
    scoring_client.default = "no idea"

    response = await client.post("/agents/agent_1/score", json={})

    assert response.status_code == 502
    assert response.json()["detail"]["code"] == "NonJsonOutput"
    assert len(scoring_client.calls) == 2


@pytest.mark.asyncio
async def test_score_agent_not_configured(client, seed, scoring_client):
    await seed({"team_1": {"agent_1": 8}})
    scoring_client.configured = False

    response = await client.post("/agents/agent_1/score", json={})

    assert response.status_code == 503
    assert response.json()["detail"]["code"] == "ConfigurationError"


@pytest.mark.asyncio
async def test_score_unknown_agent_is_refunded(client, seed):
    await seed({"team_1": {"agent_1": 8}})

    response = await client.post("/agents/ghost/score", json={})

    assert response.status_code == 404
    assert (await client.get("/usage")).json()["used"] == 0


@pytest.mark.asyncio
async def test_score_history_after_two_scorings(client, seed, scoring_client):
    await seed({"team_1": {"agent_1": 8}})
    scoring_client.responses = [
        VALID_TEXT.replace('"overall_score": 72', '"overall_score": 60'),
        VALID_TEXT,
    ]
    await client.post("/agents/agent_1/score", json={})
    await client.post("/agents/agent_1/score", json={})

    response = await client.get("/agents/agent_1/score-history", params={"limit": 10})

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 2
    assert [p["score"] for p in data["points"]] == [60.0, 72.0]
    assert data["delta"] == 12.0
    assert data["direction"] == "up"


@pytest.mark.asyncio
async def test_score_history_bad_limit(client, seed):
    await seed({"team_1": {"agent_1": 8}})
    response = await client.get("/agents/agent_1/score-history", params={"limit": 0})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "InvalidLimit"


@pytest.mark.asyncio
async def test_usage_starts_at_zero(client):
    response = await client.get("/usage")
    assert response.status_code == 200
    data = response.json()
    assert data["used"] == 0
    assert data["remaining"] == data["limit"]
