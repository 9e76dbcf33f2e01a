"""Shared enums for the URL shortener core.

This module defines all status and mode enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["HealthStatus", "PersistenceMode", "StoreBackend"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class PersistenceMode(StrEnum):
    """Configuration of the persistence adapter, fixed at startup."""

    DISABLED = "disabled"
    ENABLED = "enabled"


class StoreBackend(StrEnum):
    """Backend holding the forward and reverse indices."""

    MEMORY = "memory"
    REDIS = "redis"
