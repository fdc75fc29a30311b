"""Pytest configuration and fixtures for API tests."""
import os

# Set test env BEFORE any imports that use config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["MASTER_DIRECTOR_PIN"] = "9999"
os.environ["JWT_SECRET"] = "test-secret-not-for-production-0123456789"

import pytest
from httpx import ASGITransport, AsyncClient

from scorekeeper.models.base import engine, init_db
from scorekeeper.services.alerts import alert_store
from web.api.main import app

MASTER_PIN = "9999"
ROOM_PIN = "1234"


@pytest.fixture(autouse=True)
async def _init_db():
    """Fresh in-memory database per test (ASGI lifespan doesn't run with httpx)."""
    await init_db()
    alert_store.clear()
    yield
    await engine.dispose()


@pytest.fixture
async def client():
    """Async HTTP client for testing the API."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def master_headers():
    return {"X-Director-Pin": MASTER_PIN}


@pytest.fixture
def room_headers():
    return {"X-Director-Pin": ROOM_PIN}


@pytest.fixture
async def room(client, master_headers):
    """A tournament room whose own director PIN is ROOM_PIN."""
    r = await client.post(
        "/api/tournaments",
        json={"name": "Sunday Putt", "directorPin": ROOM_PIN},
        headers=master_headers,
    )
    assert r.status_code == 200, r.text
    return r.json()


async def add_player(client, room_code, name, **extra):
    r = await client.post(f"/api/tournaments/{room_code}/players", json={"playerName": name, **extra})
    assert r.status_code == 200, r.text
    return r.json()


async def submit_score(client, room_code, player_id, hole, par, strokes, scratches=0, penalties=0):
    return await client.post(
        f"/api/tournaments/{room_code}/scores",
        json={
            "tournamentPlayerId": player_id,
            "hole": hole,
            "par": par,
            "strokes": strokes,
            "scratches": scratches,
            "penalties": penalties,
        },
    )
