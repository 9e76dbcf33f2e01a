"""Result type used inside the persistence adapter.

Every database call returns an ``Outcome`` instead of raising, so the
"never throws past the adapter" contract shows up in signatures. Public
adapter methods unwrap it with ``value_or(default)``.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from shortener.errors import BackendUnavailable

__all__ = ["Outcome"]

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: T | None = None
    error: BackendUnavailable | None = None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BackendUnavailable) -> "Outcome[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def value_or(self, default: T) -> T:
        """Return the value on success, ``default`` on failure or when the value is ``None``."""
        if self.error is not None or self.value is None:
            return default
        return self.value
