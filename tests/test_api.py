"""Tests for the read-only draw API."""

from datetime import datetime, timedelta

import httpx
import pytest
from fastapi import FastAPI

from nuke_league.api.deps import get_db
from nuke_league.api.v1.router import api_router
from nuke_league.services.draw_service import DrawService
from tests.helpers import SEASON, FixedRandom

NOW = datetime(2025, 10, 9, 12, 30)


@pytest.fixture
async def client(session_factory):
    app = FastAPI()
    app.include_router(api_router, prefix="/api/v1")

    async def override_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_db
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
async def two_draws(session_factory, ledger, three_traders):
    service = DrawService(session_factory, ledger, rng=FixedRandom(0.60))
    await service.perform_draw(NOW)
    await service.perform_draw(NOW + timedelta(hours=1))
    return three_traders


@pytest.mark.asyncio
async def test_latest_without_draws_is_404(client):
    resp = await client.get("/api/v1/draws/latest")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_latest_draw(client, two_draws):
    resp = await client.get("/api/v1/draws/latest")

    assert resp.status_code == 200
    body = resp.json()
    assert body["window_id"] == "2025-10-09-13"
    assert body["winner_name"] == "B"
    assert body["tx_signature"] == "sig-2"
    assert [p["rank"] for p in body["participants"]] == [1, 2, 3]


@pytest.mark.asyncio
async def test_list_draws_paginated(client, two_draws):
    resp = await client.get("/api/v1/draws", params={"page_size": 1, "season_id": SEASON})

    body = resp.json()
    assert body["total"] == 2
    assert body["total_pages"] == 2
    assert [d["window_id"] for d in body["items"]] == ["2025-10-09-13"]


@pytest.mark.asyncio
async def test_draw_by_window(client, two_draws):
    assert (await client.get("/api/v1/draws/2025-10-09-12")).status_code == 200
    assert (await client.get("/api/v1/draws/2025-10-09-05")).status_code == 404


@pytest.mark.asyncio
async def test_wins_for_user(client, two_draws):
    winner_id = two_draws[1].user_id

    resp = await client.get(f"/api/v1/draws/winners/{winner_id}")

    assert [d["window_id"] for d in resp.json()] == ["2025-10-09-13", "2025-10-09-12"]


@pytest.mark.asyncio
async def test_scheduler_status_when_stopped(client):
    resp = await client.get("/api/v1/scheduler/status")
    assert resp.status_code == 200
    assert resp.json() == []
