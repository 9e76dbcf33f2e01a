"""Database engine and session management for the persistence adapter.

This module provides SQLAlchemy async engine setup and schema creation. The
engine is only built when ``DATABASE_URL`` is configured; with no URL the
persistence adapter runs disabled and this module is never touched.

Flow Diagram — Database Setup
=============================
::
    ┌─────────────┐
    │ create_     │
    │ persistence │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ create_db_   │
    │ engine()    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ create_     │
    │ session_    │
    │ factory()   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ init_db()    │
    │ (create_all) │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ engine.     │
    │ dispose()   │
    │ on shutdown │
    └─────────────┘

How to Use
===========
**Step 1 — Build the engine**::
    engine = create_db_engine(settings.DATABASE_URL, echo=False)
    session_factory = create_session_factory(engine)

**Step 2 — Create tables**::
    await init_db(engine)

**Step 3 — Use a session**::
    async with session_factory() as session:
        result = await session.execute(select(URLRecord))

Key Behaviours
===============
- Sessions do not expire attributes on commit, so records can be read after
  the session closes.
- Connection pooling with pre-ping for server databases; SQLite URLs use the
  driver's default pool.
- Tables are created on startup when missing.

Classes:
    Base:  SQLAlchemy declarative base for all models.

Functions:
    create_db_engine():  Builds the async engine.
    create_session_factory():  Builds the session maker bound to an engine.
    init_db():  Creates all tables.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

__all__ = ["Base", "create_db_engine", "create_session_factory", "init_db"]


class Base(DeclarativeBase):
    pass


def create_db_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    assert database_url, "database_url must be a non-empty string"
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=echo)
    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    # Imported for its side effect of registering the table on Base.metadata
    from shortener import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
