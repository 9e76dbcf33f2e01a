"""Shared pytest fixtures: isolated settings, stores, engines and a SQLite-backed adapter."""

import asyncio
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from shortener.config import Settings
from shortener.database import create_db_engine
from shortener.engine import ShortenerEngine
from shortener.kv_store import InMemoryStore
from shortener.persistence import DatabasePersistence, DisabledPersistence


class YieldingStore(InMemoryStore):
    """In-memory store that suspends on every call, like a networked backend."""

    async def get(self, key: str) -> str | None:
        await asyncio.sleep(0)
        return await super().get(key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.sleep(0)
        await super().set(key, value)

    async def set_if_absent(self, key: str, value: str) -> bool:
        await asyncio.sleep(0)
        return await super().set_if_absent(key, value)

    async def exists(self, key: str) -> bool:
        await asyncio.sleep(0)
        return await super().exists(key)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL=None,
        REDIS_URL=None,
        BASE_URL=None,
        APP_ENV="test",
        PERSISTENCE_TIMEOUT_SECONDS=1.0,
        PERSISTENCE_RETRY_COUNT=1,
    )


@pytest.fixture
def forward() -> InMemoryStore:
    return InMemoryStore("forward")


@pytest.fixture
def reverse() -> InMemoryStore:
    return InMemoryStore("reverse")


@pytest_asyncio.fixture
async def engine(forward: InMemoryStore, reverse: InMemoryStore) -> AsyncGenerator[ShortenerEngine, None]:
    shortener = ShortenerEngine(forward, reverse, persistence=DisabledPersistence())
    yield shortener
    await shortener.drain()


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'shortener.db'}"


@pytest_asyncio.fixture
async def db_persistence(sqlite_url: str) -> AsyncGenerator[DatabasePersistence, None]:
    adapter = DatabasePersistence(create_db_engine(sqlite_url), timeout_seconds=5.0, retry_count=2)
    await adapter.initialize()
    yield adapter
    await adapter.disconnect()


@pytest_asyncio.fixture
async def persistent_engine(
    forward: InMemoryStore, reverse: InMemoryStore, db_persistence: DatabasePersistence
) -> AsyncGenerator[ShortenerEngine, None]:
    shortener = ShortenerEngine(forward, reverse, persistence=db_persistence)
    yield shortener
    await shortener.drain()


@pytest_asyncio.fixture
async def unreachable_persistence(tmp_path: Path) -> AsyncGenerator[DatabasePersistence, None]:
    missing = tmp_path / "missing-dir" / "nested" / "shortener.db"
    adapter = DatabasePersistence(
        create_db_engine(f"sqlite+aiosqlite:///{missing}"),
        timeout_seconds=1.0,
        retry_count=2,
    )
    yield adapter
    await adapter.disconnect()


@pytest_asyncio.fixture
async def yielding_engine() -> AsyncGenerator[ShortenerEngine, None]:
    shortener = ShortenerEngine(YieldingStore("forward"), YieldingStore("reverse"))
    yield shortener
    await shortener.drain()
