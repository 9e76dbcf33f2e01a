"""Async key-value store abstraction backing the forward and reverse indices.

Each store instance owns exactly one namespace and only ever mutates that
namespace, so the forward index (code -> url) and the reverse index
(url -> code) can share one backend without colliding.

Class Relationship Diagram
=========================
::
    KeyValueStore (Protocol)
    ├─ get(key) -> str | None
    ├─ set(key, value) -> None
    ├─ set_if_absent(key, value) -> bool
    ├─ exists(key) -> bool
    ├─ delete(key) -> bool
    ├─ size() -> int
    └─ clear() -> None
          ▲                     ▲
          │                     │
    InMemoryStore          RedisStore
    (dict per instance)    (one Redis hash per namespace)

How to Use
===========
**Step 1 — Pick a backend from settings**::
    forward = create_store(settings.FORWARD_NAMESPACE, settings, client)
    reverse = create_store(settings.REVERSE_NAMESPACE, settings, client)

**Step 2 — Use the async map API**::
    await forward.set("aZ3kQ9", "https://example.com")
    url = await forward.get("aZ3kQ9")

Key Behaviours
===============
- Missing keys return ``None``; lookups never raise for absence.
- Values are stored and returned unchanged (long strings and non-ASCII
  included).
- ``set_if_absent`` is atomic per backend (single-threaded dict access,
  ``HSETNX`` on Redis) and is what the engine uses to claim a code.
- No ordering, iteration or TTL semantics.
"""

import logging
from typing import Protocol, runtime_checkable

import redis.asyncio as redis

from shortener.config import Settings
from shortener.enums import StoreBackend

__all__ = ["KeyValueStore", "InMemoryStore", "RedisStore", "create_store"]

logger = logging.getLogger("urlshortener.kv_store")


@runtime_checkable
class KeyValueStore(Protocol):
    namespace: str
    backend: StoreBackend

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def set_if_absent(self, key: str, value: str) -> bool: ...

    async def delete(self, key: str) -> bool: ...

    async def exists(self, key: str) -> bool: ...

    async def size(self) -> int: ...

    async def clear(self) -> None: ...


class InMemoryStore:
    """Process-local store; the default when no Redis URL is configured."""

    backend = StoreBackend.MEMORY

    def __init__(self, namespace: str):
        self.namespace = namespace
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def set_if_absent(self, key: str, value: str) -> bool:
        if key in self._data:
            return False
        self._data[key] = value
        return True

    async def exists(self, key: str) -> bool:
        return key in self._data

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def size(self) -> int:
        return len(self._data)

    async def clear(self) -> None:
        self._data.clear()

    def __repr__(self) -> str:
        return f"<InMemoryStore(namespace='{self.namespace}', size={len(self._data)})>"


class RedisStore:
    """Store backed by a single Redis hash named ``{prefix}:{namespace}``."""

    backend = StoreBackend.REDIS

    def __init__(self, client: redis.Redis, namespace: str, key_prefix: str = "shortener"):
        assert client is not None, "client must not be None"
        self.namespace = namespace
        self._client = client
        self._hash_key = f"{key_prefix}:{namespace}"

    @property
    def hash_key(self) -> str:
        return self._hash_key

    async def get(self, key: str) -> str | None:
        return await self._client.hget(self._hash_key, key)

    async def set(self, key: str, value: str) -> None:
        await self._client.hset(self._hash_key, key, value)

    async def set_if_absent(self, key: str, value: str) -> bool:
        return bool(await self._client.hsetnx(self._hash_key, key, value))

    async def delete(self, key: str) -> bool:
        return bool(await self._client.hdel(self._hash_key, key))

    async def exists(self, key: str) -> bool:
        return bool(await self._client.hexists(self._hash_key, key))

    async def size(self) -> int:
        return int(await self._client.hlen(self._hash_key))

    async def clear(self) -> None:
        await self._client.delete(self._hash_key)

    def __repr__(self) -> str:
        return f"<RedisStore(namespace='{self.namespace}', key='{self._hash_key}')>"


def create_store(namespace: str, settings: Settings, client: redis.Redis | None = None) -> KeyValueStore:
    """Return a Redis store when a client is available, otherwise an in-memory one."""
    if client is not None:
        logger.debug(f"Using Redis store for namespace '{namespace}'")
        return RedisStore(client, namespace, key_prefix=settings.REDIS_KEY_PREFIX)
    logger.debug(f"Using in-memory store for namespace '{namespace}'")
    return InMemoryStore(namespace)
