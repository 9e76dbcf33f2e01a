"""Short code generation with collision re-draws.

Flow Diagram — generate_code()
==============================
::
    ┌─────────────┐
    │ attempt = 1  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Draw 6 chars │◄──────────────┐
    │ (nanoid)     │               │
    └──────┬──────┘               │
           ▼                      │
    ┌─────────────┐   taken       │
    │ forward     ├───────────────┤ attempt += 1
    │ .exists()?  │               │ (cap reached →
    └──────┬──────┘               │  ExhaustionError)
      free │                      │
           ▼
    ┌─────────────┐
    │ Return code │
    └─────────────┘

Key Behaviours
===============
- Each character is an independent uniform draw from 62 symbols
  (62^6 ≈ 56.8 billion codes).
- A collision re-draws the whole string, never single characters.
- Attempts are capped; hitting the cap or failing to reach the forward index
  raises ``ExhaustionError``.
- ``generate_code`` only proves the code was free when checked. The engine
  claims it with ``set_if_absent`` to close the gap.
"""

import logging

from nanoid import generate

from shortener.errors import ExhaustionError
from shortener.kv_store import KeyValueStore
from shortener.metrics import CODE_COLLISIONS_TOTAL

__all__ = ["ALPHABET", "DEFAULT_CODE_LENGTH", "DEFAULT_MAX_ATTEMPTS", "CodeGenerator", "generate_candidate"]

ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
DEFAULT_CODE_LENGTH = 6
DEFAULT_MAX_ATTEMPTS = 16

logger = logging.getLogger("urlshortener.codegen")


def generate_candidate(length: int = DEFAULT_CODE_LENGTH) -> str:
    assert isinstance(length, int) and length > 0, f"length must be a positive integer, got {length!r}"
    return generate(ALPHABET, length)


class CodeGenerator:
    """Draws codes that are not yet present in the forward index."""

    def __init__(
        self,
        forward: KeyValueStore,
        length: int = DEFAULT_CODE_LENGTH,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        assert forward is not None, "forward index must not be None"
        assert max_attempts > 0, f"max_attempts must be positive, got {max_attempts!r}"
        self._forward = forward
        self.length = length
        self.max_attempts = max_attempts

    async def generate_code(self) -> str:
        """Return a code that is absent from the forward index.

        Raises:
            ExhaustionError: every attempt collided, or the forward index
                could not be queried.
        """
        for attempt in range(1, self.max_attempts + 1):
            candidate = generate_candidate(self.length)
            try:
                taken = await self._forward.exists(candidate)
            except Exception as exc:
                logger.error(f"Forward index unreachable while generating code: {exc}")
                raise ExhaustionError(attempt, "forward index unreachable") from exc
            if not taken:
                return candidate
            CODE_COLLISIONS_TOTAL.inc()
            logger.warning(f"Short code collision on attempt {attempt}: {candidate}")

        raise ExhaustionError(self.max_attempts)
