"""Configuration management for the URL shortener core.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

Flow Diagram — get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache  │
    │ (lru_cache)  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 — Import**::
    from shortener.config import get_settings

**Step 2 — Get settings**::
    settings = get_settings()
    if settings.persistence_enabled:
        ...

**Step 3 — Override in tests**::
    settings = Settings(DATABASE_URL=None, REDIS_URL=None)

Key Behaviours
===============
- Settings are cached after first access for performance.
- Environment variables override defaults automatically.
- DATABASE_URL, REDIS_URL and BASE_URL are optional. Leaving DATABASE_URL
  unset runs the persistence adapter in disabled mode, leaving REDIS_URL
  unset keeps both indices in process memory.

Classes:
    Settings:  Pydantic model for all configuration values.

"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "url-shortener"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Display layer only: composes "{BASE_URL}/s/{code}"
    BASE_URL: str | None = None

    # Persistence adapter; unset means disabled mode
    DATABASE_URL: str | None = None
    PERSISTENCE_TIMEOUT_SECONDS: float = 2.0
    PERSISTENCE_RETRY_COUNT: int = 2
    RESET_CLEARS_PERSISTENCE: bool = False

    # Key-value backend for the forward/reverse indices; unset means in-memory
    REDIS_URL: str | None = None
    REDIS_KEY_PREFIX: str = "shortener"
    FORWARD_NAMESPACE: str = "forward"
    REVERSE_NAMESPACE: str = "reverse"

    # Short code generation; the code length is fixed by the schema
    CODE_GENERATION_MAX_ATTEMPTS: int = 16

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    @property
    def persistence_enabled(self) -> bool:
        return bool(self.DATABASE_URL)

    @property
    def redis_enabled(self) -> bool:
        return bool(self.REDIS_URL)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
