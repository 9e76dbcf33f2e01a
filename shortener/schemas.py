"""Pydantic schemas for records returned by the core and the HTTP adapter.

Schema Hierarchy
=================
::
    URLRecordSchema (core output)
    ├─ short_code: str
    ├─ original_url: str
    ├─ clicks: int (>= 0)
    ├─ created_at: datetime
    └─ updated_at: datetime

    ShortenedURL (core output)
    ├─ short_code: str
    ├─ original_url: str
    └─ short_url: str | None (None when BASE_URL is unset)

    URLCreate (HTTP input)
    └─ url: str (non-empty, otherwise untouched)

    HealthResponse (HTTP output)
    ├─ status: HealthStatus
    ├─ persistence: PersistenceMode
    └─ store: StoreBackend

Key Behaviours
===============
- URLs are never normalized: whitespace, trailing slashes and scheme are kept
  exactly as submitted.
- URLRecordSchema reads ORM attributes, so adapter results are detached from
  database sessions.
"""

import datetime

from pydantic import BaseModel, Field, field_validator

from shortener.enums import HealthStatus, PersistenceMode, StoreBackend

__all__ = [
    "URLRecordSchema",
    "ShortenedURL",
    "URLCreate",
    "HealthResponse",
    "compose_short_url",
]


def compose_short_url(base_url: str | None, short_code: str) -> str | None:
    if not base_url:
        return None
    return f"{base_url.rstrip('/')}/s/{short_code}"


class URLRecordSchema(BaseModel):
    short_code: str
    original_url: str
    clicks: int = Field(0, ge=0)
    created_at: datetime.datetime
    updated_at: datetime.datetime

    model_config = {"from_attributes": True}


class ShortenedURL(BaseModel):
    short_code: str
    original_url: str
    short_url: str | None = None


class URLCreate(BaseModel):
    url: str

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v:
            raise ValueError("URL is required")
        return v


class HealthResponse(BaseModel):
    status: HealthStatus
    persistence: PersistenceMode
    store: StoreBackend
