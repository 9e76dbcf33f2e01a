"""Best-effort persistence of code -> URL records and click counters.

The in-memory/online indices are the source of truth for redirects. This
adapter keeps a durable copy plus click counts and must never block or fail
that path, so every public method returns a documented default instead of
raising.

State Diagram — Adapter configuration
=====================================
::
                 process startup
                        │
                        ▼
               ┌────────────────┐
               │ DATABASE_URL   │
               │ configured?    │
               └───────┬────────┘
            NO         │         YES
        ┌──────────────┴──────────────┐
        ▼                             ▼
┌────────────────┐           ┌────────────────┐
│ Disabled       │           │ Database       │
│ Persistence    │           │ Persistence    │
│ every op → the │           │ real I/O, falls│
│ default value  │           │ back to the    │
└────────────────┘           │ same defaults  │
                             └────────────────┘

    (no transitions at runtime)

Flow Diagram — one enabled operation
====================================
::
    ┌─────────────┐
    │ public op   │
    └──────┬──────┘
           ▼
    ┌─────────────┐   error / timeout    ┌─────────────┐
    │ _attempt()  ├─────────────────────►│ retry while │
    │ wait_for()  │◄─────────────────────┤ attempts    │
    └──────┬──────┘                      │ remain      │
           │                             └──────┬──────┘
           ▼                                    ▼
    Outcome.success(value)        Outcome.failure(BackendUnavailable)
           │                                    │
           └────────────┬───────────────────────┘
                        ▼
              outcome.value_or(default)

Defaults
========
- save_record → None
- increment_clicks → 0
- get_stats → None
- list_all → []

Classes:
    PersistenceAdapter:  Protocol shared by both configurations.
    DisabledPersistence:  No backend configured.
    DatabasePersistence:  SQLAlchemy async backend.

Functions:
    create_persistence():  Selects the configuration from settings.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol, TypeVar

from sqlalchemy import delete, func, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from shortener.config import Settings
from shortener.database import create_db_engine, create_session_factory, init_db
from shortener.enums import PersistenceMode
from shortener.errors import BackendUnavailable
from shortener.metrics import PERSISTENCE_FAILURES_TOTAL
from shortener.models import URLRecord
from shortener.outcome import Outcome
from shortener.schemas import URLRecordSchema

__all__ = [
    "PersistenceAdapter",
    "DisabledPersistence",
    "DatabasePersistence",
    "create_persistence",
]

T = TypeVar("T")

logger = logging.getLogger("urlshortener.persistence")


class PersistenceAdapter(Protocol):
    mode: PersistenceMode

    @property
    def enabled(self) -> bool: ...

    async def initialize(self) -> None: ...

    async def save_record(self, code: str, url: str) -> None: ...

    async def increment_clicks(self, code: str) -> int: ...

    async def get_stats(self, code: str) -> URLRecordSchema | None: ...

    async def list_all(self) -> list[URLRecordSchema]: ...

    async def clear(self) -> None: ...

    async def ping(self) -> bool: ...

    async def disconnect(self) -> None: ...


class DisabledPersistence:
    """No backend configured: every operation is a no-op returning its default."""

    mode = PersistenceMode.DISABLED

    @property
    def enabled(self) -> bool:
        return False

    async def initialize(self) -> None:
        return None

    async def save_record(self, code: str, url: str) -> None:
        return None

    async def increment_clicks(self, code: str) -> int:
        return 0

    async def get_stats(self, code: str) -> URLRecordSchema | None:
        return None

    async def list_all(self) -> list[URLRecordSchema]:
        return []

    async def clear(self) -> None:
        return None

    async def ping(self) -> bool:
        return True

    async def disconnect(self) -> None:
        return None


class DatabasePersistence:
    """SQLAlchemy-backed adapter with bounded timeouts and retries.

    Every database call goes through ``_attempt`` and comes back as an
    ``Outcome``; the public methods are the only place where a failed outcome
    becomes a default value and a log line.

    Args:
        engine: Async engine for the configured database.
        timeout_seconds: Upper bound for a single attempt.
        retry_count: Attempts per idempotent operation. Click increments
            are never retried, so a timeout after commit cannot count twice.
    """

    mode = PersistenceMode.ENABLED

    def __init__(self, engine: AsyncEngine, timeout_seconds: float = 2.0, retry_count: int = 2):
        assert engine is not None, "engine must not be None"
        assert timeout_seconds > 0, f"timeout_seconds must be positive, got {timeout_seconds!r}"
        assert retry_count > 0, f"retry_count must be positive, got {retry_count!r}"
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._timeout = timeout_seconds
        self._retry_count = retry_count
        self._closed = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "DatabasePersistence":
        engine = create_db_engine(settings.DATABASE_URL, echo=(settings.APP_ENV == "development"))
        return cls(
            engine,
            timeout_seconds=settings.PERSISTENCE_TIMEOUT_SECONDS,
            retry_count=settings.PERSISTENCE_RETRY_COUNT,
        )

    @property
    def enabled(self) -> bool:
        return True

    # ========================================================================
    # PUBLIC API METHODS
    # ========================================================================

    async def initialize(self) -> None:
        """Create the schema if missing. A failure leaves the adapter serving defaults."""
        if self._closed:
            return
        for attempt in range(1, self._retry_count + 1):
            try:
                await asyncio.wait_for(init_db(self._engine), timeout=self._timeout)
                logger.info("Persistence schema ready")
                return
            except Exception as exc:
                logger.warning(f"Schema initialization attempt {attempt} failed: {exc}")
        PERSISTENCE_FAILURES_TOTAL.labels(operation="initialize").inc()
        logger.error("Persistence backend unavailable at startup; continuing with defaults")

    async def save_record(self, code: str, url: str) -> None:
        """Create the record with zero clicks, or only bump ``updated_at`` if it exists."""

        async def _save(session: AsyncSession) -> bool:
            result = await session.execute(
                update(URLRecord)
                .where(URLRecord.short_code == code)
                .values(updated_at=func.now())
                .execution_options(synchronize_session=False)
            )
            created = result.rowcount == 0
            if created:
                session.add(URLRecord(short_code=code, original_url=url, clicks=0))
            try:
                await session.commit()
            except IntegrityError:
                # Another writer inserted the same code first; the record exists.
                await session.rollback()
                created = False
            return created

        outcome = await self._attempt("save_record", _save)
        if not outcome.ok:
            self._log_failure(outcome)
            return None
        logger.debug(f"Record {'created' if outcome.value else 'touched'} for {code}")
        return None

    async def increment_clicks(self, code: str) -> int:
        """Atomically add one click and return the new count, or 0."""

        async def _increment(session: AsyncSession) -> int | None:
            result = await session.execute(
                update(URLRecord)
                .where(URLRecord.short_code == code)
                .values(clicks=URLRecord.clicks + 1)
                .returning(URLRecord.clicks)
                .execution_options(synchronize_session=False)
            )
            clicks = result.scalar_one_or_none()
            await session.commit()
            return clicks

        outcome = await self._attempt("increment_clicks", _increment, retries=1)
        if not outcome.ok:
            self._log_failure(outcome)
        elif outcome.value is None:
            logger.debug(f"No persisted record to count a click for {code}")
        return outcome.value_or(0)

    async def get_stats(self, code: str) -> URLRecordSchema | None:
        async def _get(session: AsyncSession) -> URLRecordSchema | None:
            result = await session.execute(select(URLRecord).where(URLRecord.short_code == code))
            record = result.scalar_one_or_none()
            return URLRecordSchema.model_validate(record) if record else None

        outcome = await self._attempt("get_stats", _get)
        if not outcome.ok:
            self._log_failure(outcome)
        return outcome.value_or(None)

    async def list_all(self) -> list[URLRecordSchema]:
        """All records, newest first."""

        async def _list(session: AsyncSession) -> list[URLRecordSchema]:
            result = await session.execute(
                select(URLRecord).order_by(URLRecord.created_at.desc(), URLRecord.id.desc())
            )
            return [URLRecordSchema.model_validate(record) for record in result.scalars().all()]

        outcome = await self._attempt("list_all", _list)
        if not outcome.ok:
            self._log_failure(outcome)
        return outcome.value_or([])

    async def clear(self) -> None:
        async def _clear(session: AsyncSession) -> int:
            result = await session.execute(delete(URLRecord).execution_options(synchronize_session=False))
            await session.commit()
            return result.rowcount

        outcome = await self._attempt("clear", _clear)
        if not outcome.ok:
            self._log_failure(outcome)
            return None
        logger.info(f"Cleared {outcome.value} persisted records")
        return None

    async def ping(self) -> bool:
        async def _ping(session: AsyncSession) -> bool:
            await session.execute(text("SELECT 1"))
            return True

        outcome = await self._attempt("ping", _ping, retries=1)
        return outcome.value_or(False)

    async def disconnect(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._engine.dispose()
        logger.info("Persistence engine disposed")

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    async def _attempt(
        self,
        operation: str,
        call: Callable[[AsyncSession], Awaitable[T]],
        retries: int | None = None,
    ) -> Outcome[T]:
        """Run ``call`` in a fresh session with a timeout, retrying on failure.

        Never raises; any exception (including the timeout) is captured as a
        ``BackendUnavailable`` in the returned outcome.
        """
        if self._closed:
            return Outcome.failure(BackendUnavailable(operation))

        async def _in_session() -> T:
            async with self._session_factory() as session:
                return await call(session)

        attempts = retries or self._retry_count
        last_error: BaseException | None = None
        for attempt in range(1, attempts + 1):
            try:
                # Session setup and teardown share the per-attempt budget
                value = await asyncio.wait_for(_in_session(), timeout=self._timeout)
                return Outcome.success(value)
            except Exception as exc:
                last_error = exc
                logger.debug(f"{operation} attempt {attempt}/{attempts} failed: {exc!r}")

        PERSISTENCE_FAILURES_TOTAL.labels(operation=operation).inc()
        return Outcome.failure(BackendUnavailable(operation, last_error))

    @staticmethod
    def _log_failure(outcome: Outcome) -> None:
        logger.warning(f"{outcome.error}; using default value")


def create_persistence(settings: Settings) -> PersistenceAdapter:
    """Pick the adapter configuration once, from configuration presence."""
    if not settings.persistence_enabled:
        logger.warning("DATABASE_URL not set. Persistence is disabled; records live only in the indices.")
        return DisabledPersistence()
    try:
        return DatabasePersistence.from_settings(settings)
    except Exception as exc:
        logger.error(f"Could not configure persistence backend ({exc}); falling back to disabled mode")
        return DisabledPersistence()
