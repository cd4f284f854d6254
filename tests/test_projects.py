"""Tests for Projects API."""

import pytest


class TestProjectsApi:
    """GET/POST /projects/{user_id} and POST /projects/{user_id}/active."""

    @pytest.mark.asyncio
    async def test_list_empty(self, client):
        resp = await client.get("/projects/u1")
        assert resp.status_code == 200
        assert resp.json() == []

    @pytest.mark.asyncio
    async def test_register_and_activate(self, client):
        resp = await client.post("/projects/u1", json={"alias": "web", "path": "/srv/web"})
        assert resp.status_code == 200
        assert resp.json() == {"alias": "web", "path": "/srv/web"}

        resp = await client.post("/projects/u1/active", json={"alias": "web"})
        assert resp.status_code == 200

        listed = (await client.get("/projects/u1")).json()
        assert listed == [{"alias": "web", "path": "/srv/web", "is_active": True}]

    @pytest.mark.asyncio
    async def test_activate_unknown_is_404(self, client):
        resp = await client.post("/projects/u1/active", json={"alias": "missing"})
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_empty_alias_is_400(self, client):
        resp = await client.post("/projects/u1", json={"alias": " ", "path": "/srv/web"})
        assert resp.status_code == 400
