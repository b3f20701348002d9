"""Shared fixtures for the ChartPulse test suite."""

from collections.abc import AsyncGenerator, Callable
from typing import Any

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chartpulse.config.settings import DatabaseSettings
from chartpulse.infrastructure.persistence import Database


# Hey future me - every test gets its own in-memory SQLite. Database switches to StaticPool
# for ":memory:", so all sessions of one test share the same connection (and tables).
@pytest.fixture
async def database() -> AsyncGenerator[Database, None]:
    """Create an in-memory database with all tables."""
    db = Database(DatabaseSettings(url="sqlite+aiosqlite:///:memory:"))
    await db.create_tables()
    yield db
    await db.drop_tables()
    await db.close()


@pytest.fixture
def session_factory(database: Database) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the in-memory database."""
    return database.session_factory


@pytest.fixture
def make_response() -> Callable[..., httpx.Response]:
    """Build real httpx responses so raise_for_status() behaves like production."""

    def _make(
        status_code: int = 200,
        json: Any = None,
        url: str = "https://example.test/",
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        kwargs: dict[str, Any] = {"headers": headers or {}}
        if json is not None:
            kwargs["json"] = json
        return httpx.Response(
            status_code, request=httpx.Request("GET", url), **kwargs
        )

    return _make
