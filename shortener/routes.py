"""FastAPI routes: a thin HTTP surface over ``ShortenerEngine``.

No business logic lives here; every handler is one engine or adapter call
plus status-code mapping.

API Endpoint Overview
=====================
::
    GET  /health
        └─ HealthResponse (200)

    POST /api/shorten
        ├─ URLCreate (request body)
        └─ ShortenedURL (201) or 422/503

    GET  /api/urls
        └─ list[URLRecordSchema] (200, newest first)

    GET  /api/stats/:code
        └─ URLRecordSchema (200) or 404

    GET  /s/:code
        └─ 307 Redirect or 404
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse

from shortener.engine import ShortenerEngine
from shortener.errors import ExhaustionError
from shortener.manager import ServiceManager
from shortener.schemas import HealthResponse, ShortenedURL, URLCreate, URLRecordSchema

__all__ = ["router", "get_service_manager", "get_engine"]

logger = logging.getLogger("urlshortener.routes")

router = APIRouter()


def get_service_manager(request: Request) -> ServiceManager:
    return request.app.state.manager


def get_engine(manager: ServiceManager = Depends(get_service_manager)) -> ShortenerEngine:
    return manager.engine


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(manager: ServiceManager = Depends(get_service_manager)) -> HealthResponse:
    return await manager.health()


@router.post("/api/shorten", response_model=ShortenedURL, status_code=201, tags=["urls"])
async def shorten_url(payload: URLCreate, engine: ShortenerEngine = Depends(get_engine)) -> ShortenedURL:
    try:
        return await engine.shorten(payload.url)
    except ExhaustionError as exc:
        logger.error(f"URL shortening failed: {exc}")
        raise HTTPException(status_code=503, detail="Could not allocate a short code") from exc


@router.get("/api/urls", response_model=list[URLRecordSchema], tags=["urls"])
async def list_urls(engine: ShortenerEngine = Depends(get_engine)) -> list[URLRecordSchema]:
    return await engine.persistence.list_all()


@router.get("/api/stats/{code}", response_model=URLRecordSchema, tags=["urls"])
async def get_stats(code: str, engine: ShortenerEngine = Depends(get_engine)) -> URLRecordSchema:
    record = await engine.persistence.get_stats(code)
    if record is None:
        raise HTTPException(status_code=404, detail="Short URL not found")
    return record


@router.get("/s/{code}", tags=["redirect"])
async def redirect_to_url(code: str, engine: ShortenerEngine = Depends(get_engine)) -> RedirectResponse:
    url = await engine.redirect(code)
    if url is None:
        raise HTTPException(status_code=404, detail="Short URL not found")
    return RedirectResponse(url=url, status_code=307)
