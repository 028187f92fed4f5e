"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fixtures for testing:
- A throwaway SQLite database with the real schema (foreign keys enforced)
- An in-memory key/value store with a controllable clock, standing in for Redis
- Seed helpers for countries, states, accounts and admins
- An httpx client bound to the app with database and store overridden
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

# Set required environment variables BEFORE importing app modules
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("LOG_FORMAT", "console")

from geoadmin.db.models import Account, Admin, Base, Country, State
from geoadmin.exceptions import UnavailableError
from geoadmin.models.domain import Principal
from geoadmin.services.passwords import hash_password

# ============================================================================
# Key/value store fake
# ============================================================================


class FakeClock:
    """Monotonic seconds that only move when a test says so."""

    def __init__(self) -> None:
        self.now = 0.0

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryStore:
    """
    KeyValueStore with Redis expiry semantics.

    Set `fail = True` to make every call raise UnavailableError, as a
    dropped Redis connection would.
    """

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.data: dict[str, tuple[str, float]] = {}
        self.fail = False
        self.get_calls: list[str] = []

    def _check(self) -> None:
        if self.fail:
            raise UnavailableError("redis", "simulated outage")

    def _live(self, key: str) -> str | None:
        entry = self.data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self.clock.now >= expires_at:
            del self.data[key]
            return None
        return value

    async def get(self, key: str) -> str | None:
        self._check()
        self.get_calls.append(key)
        return self._live(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._check()
        self.data[key] = (value, self.clock.now + ttl_seconds)

    async def delete(self, *keys: str) -> None:
        self._check()
        for key in keys:
            self.data.pop(key, None)

    async def expire(self, key: str, ttl_seconds: int) -> None:
        self._check()
        value = self._live(key)
        if value is not None:
            self.data[key] = (value, self.clock.now + ttl_seconds)

    def live_keys(self) -> set[str]:
        return {k for k in list(self.data) if self._live(k) is not None}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryStore:
    return InMemoryStore(clock)


# ============================================================================
# Database Fixtures
# ============================================================================


def _enable_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """A fresh SQLite file per test, schema created from the ORM metadata."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    engine = create_async_engine(url, poolclass=NullPool)
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ============================================================================
# Seed helpers
# ============================================================================


# Hashing once keeps tests that create many accounts fast
TEST_PASSWORD = "secret123"
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


class Seeder:
    """Insert rows directly, bypassing services (and cache invalidation)."""

    def __init__(self, factory: async_sessionmaker[AsyncSession]) -> None:
        self.factory = factory

    async def _add(self, obj: Any) -> Any:
        async with self.factory() as session:
            session.add(obj)
            await session.commit()
            await session.refresh(obj)
        return obj

    async def country(self, name: str) -> Country:
        return await self._add(Country(name=name))

    async def state(self, country_id: int, name: str) -> State:
        return await self._add(State(country_id=country_id, name=name))

    async def account(
        self,
        username: str,
        email: str | None = None,
        country_id: int | None = None,
        state_id: int | None = None,
        created_at: datetime | None = None,
    ) -> Account:
        return await self._add(
            Account(
                username=username,
                email=email or f"{username}@example.com",
                password_hash=TEST_PASSWORD_HASH,
                country_id=country_id,
                state_id=state_id,
                created_at=created_at or datetime.now(UTC),
            )
        )

    async def accounts(self, usernames: list[str]) -> list[Account]:
        """Accounts created one second apart, in the given order."""
        base = datetime(2026, 1, 1, tzinfo=UTC)
        return [
            await self.account(name, created_at=base + timedelta(seconds=i))
            for i, name in enumerate(usernames)
        ]

    async def admin(self, username: str = "admin", password_hash: str | None = None) -> Principal:
        admin = await self._add(
            Admin(
                username=username,
                email=f"{username}@admin.example.com",
                password_hash=password_hash or TEST_PASSWORD_HASH,
            )
        )
        return Principal(id=admin.id, username=admin.username)


@pytest.fixture
def seed(session_factory: async_sessionmaker[AsyncSession]) -> Seeder:
    return Seeder(session_factory)


@pytest.fixture
def password() -> str:
    """Plaintext password of every seeded account and admin."""
    return TEST_PASSWORD


# ============================================================================
# API client
# ============================================================================


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession], store: InMemoryStore
) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx client for the app with the database and the Redis store overridden.

    Cookies persist across requests, like a browser session.
    """
    from geoadmin.api.dependencies import get_kv_store
    from geoadmin.db.session import get_db
    from geoadmin.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_kv_store] = lambda: store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


async def fetch_csrf(client: AsyncClient) -> str:
    response = await client.get("/csrf")
    assert response.status_code == 200
    return response.json()["csrf_token"]


@pytest.fixture
def csrf():
    """Async helper returning the client's current CSRF token."""
    return fetch_csrf


@pytest.fixture
def admin_client(client: AsyncClient, seed: Seeder, csrf):
    """
    Async helper: log the client in as an admin and return the CSRF token.

    Usage:
        token = await admin_client()
    """

    async def _login(username: str = "admin") -> str:
        await seed.admin(username)
        token = await csrf(client)
        response = await client.post(
            "/admin/login",
            json={"username": username, "password": TEST_PASSWORD, "csrf_token": token},
        )
        assert response.status_code == 200, response.text
        return response.json()["csrf_token"]

    return _login
