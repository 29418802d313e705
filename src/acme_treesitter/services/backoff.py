"""Full-jitter truncated exponential backoff."""

from __future__ import annotations

import random

from tenacity import RetryCallState
from tenacity.wait import wait_base

__all__ = ["Backoff", "BackoffWait"]

# Exponents past this always hit the cap.
_MAX_EXPONENT = 62


class Backoff:
    """Retry delays drawn uniformly from ``[0, min(cap, base * 2**attempt)]``.

    Every caller draws independently across the whole window, so a cohort of
    sessions that failed together (acme-styles restarting, say) spreads its
    retries out instead of bunching up near the ceiling.
    """

    def __init__(self, base: float, cap: float, *, rng: random.Random | None = None) -> None:
        if base < 0 or cap < 0:
            raise ValueError("backoff delays must be non-negative")
        self.base = float(base)
        self.cap = float(cap)
        self._attempt = 0
        self._rng = rng or random.Random()

    @property
    def attempt(self) -> int:
        return self._attempt

    @property
    def ceiling(self) -> float:
        """Upper bound for the next :meth:`next` call."""

        if self._attempt >= _MAX_EXPONENT:
            return self.cap
        return min(self.cap, self.base * (1 << self._attempt))

    def next(self) -> float:
        """Advance the attempt counter and return a delay in seconds."""

        ceiling = self.ceiling
        self._attempt += 1
        if ceiling <= 0:
            return 0.0
        return self._rng.uniform(0.0, ceiling)

    def reset(self) -> None:
        """Start again from ``base``; call after a successful attempt."""

        self._attempt = 0

    def __repr__(self) -> str:
        return f"Backoff(base={self.base!r}, cap={self.cap!r}, attempt={self._attempt})"


class BackoffWait(wait_base):
    """tenacity wait strategy that draws from a :class:`Backoff`."""

    def __init__(self, backoff: Backoff) -> None:
        self.backoff = backoff

    def __call__(self, retry_state: RetryCallState) -> float:
        del retry_state
        return self.backoff.next()

    def __repr__(self) -> str:
        return f"BackoffWait({self.backoff!r})"
