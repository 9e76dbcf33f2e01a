"""FastAPI application entry point for the URL shortener.

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn shortener.main:app --host 0.0.0.0 --port 8000

**Step 2 — Shorten and follow a link**::
    curl -X POST http://localhost:8000/api/shorten \
         -H "Content-Type: application/json" \
         -d '{"url": "https://example.com"}'
    curl -i http://localhost:8000/s/<code>

Key Behaviours
===============
- The lifespan hook initializes the ``ServiceManager`` on startup and
  drains background persistence work before disconnecting on shutdown.
- ``create_app`` accepts a prebuilt manager so tests can inject isolated
  stores and adapters.
- Prometheus metrics are exposed at /metrics unless ``instrument=False``.
"""

__all__ = ["app", "create_app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from shortener.config import Settings, get_settings
from shortener.manager import ServiceManager
from shortener.routes import router


def create_app(
    settings: Settings | None = None,
    manager: ServiceManager | None = None,
    instrument: bool = True,
) -> FastAPI:
    settings = settings or get_settings()
    manager = manager or ServiceManager(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # Startup
        await manager.initialize()
        yield
        # Shutdown
        await manager.cleanup()

    application = FastAPI(
        title=settings.APP_NAME,
        version="1.0.0",
        description="Short-code allocation and redirect core",
        lifespan=lifespan,
    )
    application.state.manager = manager

    if instrument:
        Instrumentator(
            should_group_status_codes=True,
            should_ignore_untemplated=False,
            should_respect_env_var=False,
        ).instrument(application).expose(application)

    application.include_router(router)
    return application


app = create_app()
