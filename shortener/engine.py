"""Deduplicating short-code engine over the forward and reverse indices.

This module owns the one invariant the whole system relies on: the forward
index (code -> url) and the reverse index (url -> code) always describe the
same set of pairs, and each distinct URL string has exactly one code.

Flow Diagram — add_url()
========================
::
    ┌─────────────┐
    │ add_url(u)  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lock(u)      │  per-URL, other URLs proceed
    └──────┬──────┘
           ▼
    ┌─────────────┐   HIT   ┌─────────────┐
    │ reverse     ├────────►│ return      │
    │ .get(u)     │         │ existing    │
    └──────┬──────┘         └─────────────┘
      MISS │
           ▼
    ┌─────────────┐  lost claim
    │ generate +  ├──────────┐
    │ forward.set │◄─────────┘ re-draw (capped)
    │ _if_absent  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ reverse.set │  failure → forward.delete(code), re-raise
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ schedule    │  background task, never awaited by caller
    │ save_record │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ return code │
    └─────────────┘

Flow Diagram — redirect()
=========================
::
    ┌─────────────┐        ┌─────────────┐
    │ forward     │  None  │ return None │
    │ .get(code)  ├───────►│ (not found) │
    └──────┬──────┘        └─────────────┘
           ▼
    ┌─────────────┐
    │ schedule    │
    │ record_visit│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ return url  │
    └─────────────┘

How to Use
===========
**Step 1 — Build (normally done by ServiceManager)**::
    forward, reverse = InMemoryStore("forward"), InMemoryStore("reverse")
    engine = ShortenerEngine(forward, reverse)

**Step 2 — Shorten and resolve**::
    code = await engine.add_url("https://example.com")
    url = await engine.resolve(code)

**Step 3 — Shutdown**::
    await engine.drain()

Key Behaviours
===============
- URLs are compared by exact string equality.
- Repeated ``add_url`` for one URL returns one code and stores nothing new.
- Persistence work runs in the background; its failures are logged and never
  reach ``add_url`` or ``redirect`` callers.
- ``ExhaustionError`` is the only generation failure callers can see.
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from shortener.codegen import CodeGenerator
from shortener.config import Settings
from shortener.errors import ExhaustionError
from shortener.kv_store import KeyValueStore
from shortener.locks import KeyedLock
from shortener.metrics import CODE_COLLISIONS_TOTAL, CODES_GENERATED_TOTAL, DEDUP_HITS_TOTAL, REDIRECTS_TOTAL
from shortener.persistence import DisabledPersistence, PersistenceAdapter
from shortener.schemas import ShortenedURL, compose_short_url

__all__ = ["ShortenerEngine"]

logger = logging.getLogger("urlshortener.engine")


class ShortenerEngine:
    """Allocates codes, deduplicates URLs and feeds the persistence adapter.

    Args:
        forward: Store mapping code -> url.
        reverse: Store mapping url -> code.
        generator: Code generator checking ``forward``; built with defaults
            when omitted.
        persistence: Adapter informed of new records and visits; disabled
            when omitted.
        base_url: Prefix for display links, see ``shorten``.
        reset_clears_persistence: Default for ``reset(clear_persistent=None)``.
    """

    def __init__(
        self,
        forward: KeyValueStore,
        reverse: KeyValueStore,
        generator: CodeGenerator | None = None,
        persistence: PersistenceAdapter | None = None,
        base_url: str | None = None,
        reset_clears_persistence: bool = False,
    ):
        assert forward is not reverse, "forward and reverse indices must be separate namespaces"
        self._forward = forward
        self._reverse = reverse
        self._generator = generator or CodeGenerator(forward)
        self._persistence = persistence or DisabledPersistence()
        self._base_url = base_url
        self._reset_clears_persistence = reset_clears_persistence
        self._locks = KeyedLock()
        self._pending: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        forward: KeyValueStore,
        reverse: KeyValueStore,
        persistence: PersistenceAdapter,
    ) -> "ShortenerEngine":
        generator = CodeGenerator(
            forward,
            max_attempts=settings.CODE_GENERATION_MAX_ATTEMPTS,
        )
        return cls(
            forward,
            reverse,
            generator=generator,
            persistence=persistence,
            base_url=settings.BASE_URL,
            reset_clears_persistence=settings.RESET_CLEARS_PERSISTENCE,
        )

    @property
    def forward(self) -> KeyValueStore:
        return self._forward

    @property
    def reverse(self) -> KeyValueStore:
        return self._reverse

    @property
    def generator(self) -> CodeGenerator:
        return self._generator

    @property
    def persistence(self) -> PersistenceAdapter:
        return self._persistence

    @property
    def pending_tasks(self) -> int:
        return len(self._pending)

    # ========================================================================
    # PUBLIC API METHODS
    # ========================================================================

    async def generate_code(self) -> str:
        return await self._generator.generate_code()

    async def add_url(self, url: str) -> str:
        """Return the code for ``url``, allocating one the first time it is seen.

        Any string is accepted as-is, including the empty string.

        Raises:
            ExhaustionError: no free code could be claimed.
        """
        assert isinstance(url, str), f"url must be a string, got {type(url).__name__}"

        async with self._locks.hold(url):
            existing = await self._reverse.get(url)
            if existing is not None:
                DEDUP_HITS_TOTAL.inc()
                logger.debug(f"Reusing code {existing} for known URL")
                return existing

            code = await self._claim_code(url)
            try:
                await self._reverse.set(url, code)
            except Exception:
                await self._release_code(code)
                raise

        CODES_GENERATED_TOTAL.inc()
        logger.info(f"Allocated code {code} for {url[:80]}")
        self._schedule(self._persistence.save_record(code, url), f"save_record:{code}")
        return code

    async def shorten(self, url: str) -> ShortenedURL:
        code = await self.add_url(url)
        return ShortenedURL(
            short_code=code,
            original_url=url,
            short_url=compose_short_url(self._base_url, code),
        )

    async def resolve(self, code: str) -> str | None:
        return await self._forward.get(code)

    async def record_visit(self, code: str) -> int:
        REDIRECTS_TOTAL.inc()
        return await self._persistence.increment_clicks(code)

    async def redirect(self, code: str) -> str | None:
        """Resolve ``code`` and count the visit in the background."""
        url = await self.resolve(code)
        if url is None:
            logger.debug(f"Unknown code requested: {code}")
            return None
        self._schedule(self.record_visit(code), f"record_visit:{code}")
        return url

    async def size(self) -> int:
        return await self._forward.size()

    async def drain(self) -> None:
        """Wait for every scheduled persistence task to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def reset(self, clear_persistent: bool | None = None) -> None:
        """Drop every mapping from both indices.

        Persistent records are cleared too when ``clear_persistent`` is true;
        ``None`` falls back to the configured default.
        """
        await self.drain()
        await self._forward.clear()
        await self._reverse.clear()
        if clear_persistent is None:
            clear_persistent = self._reset_clears_persistence
        if clear_persistent:
            await self._persistence.clear()
        logger.info(f"Indices reset (persistent records cleared: {clear_persistent})")

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    async def _claim_code(self, url: str) -> str:
        attempts = self._generator.max_attempts
        for attempt in range(1, attempts + 1):
            code = await self._generator.generate_code()
            try:
                claimed = await self._forward.set_if_absent(code, url)
            except Exception as exc:
                logger.error(f"Forward index unreachable while claiming code: {exc}")
                raise ExhaustionError(attempt, "forward index unreachable") from exc
            if claimed:
                return code
            CODE_COLLISIONS_TOTAL.inc()
            logger.warning(f"Code {code} was claimed concurrently, drawing again")
        raise ExhaustionError(attempts, "every claimed code was taken concurrently")

    async def _release_code(self, code: str) -> None:
        """Undo a forward claim after the reverse write failed. Never raises."""
        try:
            await self._forward.delete(code)
        except Exception as exc:
            logger.error(f"Could not release claimed code {code}; forward entry is orphaned: {exc!r}")
            return
        logger.error(f"Reverse index write failed; released claimed code {code}")

    def _schedule(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._pending.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            logger.warning(f"Background task {task.get_name()} was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background task {task.get_name()} failed: {exc!r}")
