"""Shared fixtures for Influencerium tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from influencerium.api.app import _db, _sessions, app, limiter
from influencerium.auth_providers.user_account import create_user
from influencerium.sessions.service import SessionService
from influencerium.storage.database import Database

TEST_JWT_SECRET = "test-secret-0123456789abcdef-0123456789abcdef"
TEST_PASSWORD = "correct horse battery"


class FakeClock:
    """Controllable UTC clock for expiry tests."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture
async def db(tmp_path):
    """Fresh database file for each test."""
    database = Database(tmp_path / "test.db")
    await database.connect()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def sessions(db, clock):
    """Session service on the fresh database, driven by the fake clock."""
    return SessionService(db, clock=clock)


@pytest_asyncio.fixture
async def make_user(db):
    """Factory inserting users with a given role into the fresh database."""
    counter = {"n": 0}

    async def _make(role: str = "user", *, status: str = "active", email: str | None = None):
        counter["n"] += 1
        return await create_user(
            db,
            email or f"user{counter['n']}@example.com",
            TEST_PASSWORD,
            name=f"User {counter['n']}",
            role=role,
            status=status,
        )

    return _make


@pytest_asyncio.fixture
async def client(tmp_path, monkeypatch):
    """HTTP test client wired to a fresh database."""
    monkeypatch.setenv("INF_JWT_SECRET", TEST_JWT_SECRET)

    # Swap the global DB for tests
    _db.db_path = tmp_path / "api_test.db"
    await _db.connect()

    # Disable rate limiter for tests
    limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await _db.close()


@pytest_asyncio.fixture
async def api_user():
    """Factory inserting users into the app's database (use with ``client``)."""
    counter = {"n": 0}

    async def _make(role: str = "user", *, status: str = "active"):
        counter["n"] += 1
        return await create_user(
            _db,
            f"api{counter['n']}@example.com",
            TEST_PASSWORD,
            name=f"Api {counter['n']}",
            role=role,
            status=status,
        )

    return _make


@pytest_asyncio.fixture
async def login(client):
    """Log a user in through the API and return the response body."""

    async def _login(email: str, device_info: str | None = None, **extra) -> dict:
        resp = await client.post(
            "/auth/login",
            json={"email": email, "password": TEST_PASSWORD, "device_info": device_info, **extra},
        )
        assert resp.status_code == 200, resp.text
        return resp.json()

    return _login


@pytest.fixture
def app_sessions() -> SessionService:
    return _sessions
