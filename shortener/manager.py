"""Explicitly constructed service manager for the shortener core.

``ServiceManager`` builds every shared resource once at process start
(logger, optional Redis client, the two index stores, the persistence
adapter and the engine) and tears them down at shutdown. Nothing lives in
module-level globals, so tests create a fresh manager per case.

Application Lifecycle Diagram
=============================
::
    ┌─────────────┐
    │ ServiceMgr  │
    │ (settings)  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ initialize()│
    │ ─ logger     │
    │ ─ redis?     │
    │ ─ stores     │
    │ ─ persistence│
    │ ─ engine     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ serve calls │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ cleanup()    │
    │ ─ drain      │
    │ ─ disconnect │
    │ ─ close redis│
    └─────────────┘

How to Use
===========
**Step 1 — Start**::
    manager = ServiceManager(get_settings())
    await manager.initialize()

**Step 2 — Use the engine**::
    code = await manager.engine.add_url("https://example.com")

**Step 3 — Shutdown**::
    await manager.cleanup()

Key Behaviours
===============
- ``initialize`` and ``cleanup`` are idempotent.
- Missing DATABASE_URL or REDIS_URL never fails startup; the manager falls
  back to disabled persistence and in-memory indices.
"""

import logging

import redis.asyncio as redis

from shortener.config import Settings, get_settings
from shortener.engine import ShortenerEngine
from shortener.enums import HealthStatus, PersistenceMode, StoreBackend
from shortener.kv_store import KeyValueStore, create_store
from shortener.persistence import PersistenceAdapter, create_persistence
from shortener.redis import close_redis, create_redis_client
from shortener.schemas import HealthResponse

__all__ = ["ServiceManager", "setup_logger"]

LOGGER_NAME = "urlshortener"


def setup_logger(level: str = "INFO") -> logging.Logger:
    """Configure the package logger once; child loggers propagate to it."""
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(level.upper())
    return logger


class ServiceManager:
    """Owns the lifecycle of the stores, persistence adapter and engine."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.logger = setup_logger(self.settings.LOG_LEVEL)
        self.redis_client: redis.Redis | None = None
        self.forward: KeyValueStore | None = None
        self.reverse: KeyValueStore | None = None
        self.persistence: PersistenceAdapter | None = None
        self._engine: ShortenerEngine | None = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def engine(self) -> ShortenerEngine:
        assert self._engine is not None, "ServiceManager.initialize() must run first"
        return self._engine

    async def initialize(self) -> None:
        """Initialize shared resources once at startup."""
        if self._initialized:
            return
        if self.settings.redis_enabled:
            self.redis_client = create_redis_client(self.settings)
        self.forward = create_store(self.settings.FORWARD_NAMESPACE, self.settings, self.redis_client)
        self.reverse = create_store(self.settings.REVERSE_NAMESPACE, self.settings, self.redis_client)

        self.persistence = create_persistence(self.settings)
        await self.persistence.initialize()

        self._engine = ShortenerEngine.from_settings(self.settings, self.forward, self.reverse, self.persistence)
        self._initialized = True
        self.logger.info(
            f"Shortener ready (store={self.forward.backend.value}, persistence={self.persistence.mode.value})"
        )

    async def cleanup(self) -> None:
        """Cleanup shared resources at shutdown."""
        if not self._initialized:
            return
        await self.engine.drain()
        await self.persistence.disconnect()
        await close_redis(self.redis_client)
        self.redis_client = None
        self._initialized = False
        self.logger.info("Shortener shut down")

    async def health(self) -> HealthResponse:
        store = self.forward.backend if self.forward is not None else StoreBackend.MEMORY
        mode = self.persistence.mode if self.persistence is not None else PersistenceMode.DISABLED
        if not self._initialized:
            return HealthResponse(status=HealthStatus.UNHEALTHY, persistence=mode, store=store)

        status = HealthStatus.HEALTHY
        try:
            await self.forward.size()
        except Exception as exc:
            self.logger.error(f"Index store health check failed: {exc}")
            status = HealthStatus.UNHEALTHY
        if not await self.persistence.ping():
            self.logger.warning("Persistence health check failed")
            status = HealthStatus.UNHEALTHY
        return HealthResponse(status=status, persistence=mode, store=store)
