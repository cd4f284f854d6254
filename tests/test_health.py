"""Health endpoint integration test."""

import pytest


@pytest.mark.asyncio
async def test_health_returns_ok(client):
    """Health endpoint returns status and tool server diagnostics."""
    resp = await client.get("/health")

    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["service"] == "diffpilot"
    assert data["dropped_lines"] == 0
    assert "tool_server_state" in data


@pytest.mark.asyncio
async def test_tools_listing(client):
    resp = await client.get("/tools")

    assert resp.status_code == 200
    assert resp.json()["tools"][0]["name"] == "analyze_change_plan"
