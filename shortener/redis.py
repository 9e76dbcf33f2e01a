"""Redis client management for the Redis-backed key-value store.

This module creates and closes the ``redis.asyncio`` client used when
``REDIS_URL`` is configured. The client is owned by ``ServiceManager``; there
is no module-level client, so each manager (and each test) gets its own.

Flow Diagram — Redis client lifecycle
=====================================
::
    ┌─────────────┐
    │ ServiceMgr  │
    │ initialize()│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ REDIS_URL    │
    │ configured? │
    └──────┬──────┘
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌──────────┐
│ In-mem  │  │ create_  │
│ stores  │  │ redis_   │
│         │  │ client() │
└─────────┘  └────┬─────┘
                  ▼
            ┌──────────┐
            │ close_   │
            │ redis()  │
            │ shutdown │
            └──────────┘

Key Behaviours
===============
- UTF-8 encoding with decode_responses, so values round-trip as ``str``.
- ``close_redis`` tolerates ``None`` and is safe to call twice.
"""

import redis.asyncio as redis

from shortener.config import Settings

__all__ = ["create_redis_client", "close_redis"]


def create_redis_client(settings: Settings) -> redis.Redis:
    assert settings.REDIS_URL, "REDIS_URL must be configured for a Redis client"
    return redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
    )


async def close_redis(client: redis.Redis | None) -> None:
    if client is not None:
        await client.aclose()
