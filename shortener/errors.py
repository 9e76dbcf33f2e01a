"""Exception hierarchy for the URL shortener core.

Lookups of unknown codes or URLs are not errors: they return ``None``.
``BackendUnavailable`` never escapes the persistence adapter; it only travels
inside an ``Outcome`` until the adapter converts it to a default value.
``ExhaustionError`` is the one failure that reaches callers of ``add_url``.
"""

__all__ = ["ShortenerError", "BackendUnavailable", "ExhaustionError"]


class ShortenerError(Exception):
    """Base class for all errors raised by the shortener core."""


class BackendUnavailable(ShortenerError):
    """Persistence I/O failed, timed out, or the backend is unreachable."""

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause!r}" if cause is not None else ""
        super().__init__(f"Persistence backend unavailable during {operation}{detail}")


class ExhaustionError(ShortenerError):
    """No collision-free short code could be produced."""

    def __init__(self, attempts: int, reason: str = "code space exhausted"):
        self.attempts = attempts
        self.reason = reason
        super().__init__(f"Could not allocate a short code after {attempts} attempts: {reason}")
