"""Single-shot quiet-period timer."""

from __future__ import annotations

import asyncio
from typing import Callable

__all__ = ["DebounceScheduler", "DEFAULT_DEBOUNCE_SECONDS"]

DEFAULT_DEBOUNCE_SECONDS = 0.2


class DebounceScheduler:
    """Collapses a burst of notifications into one deferred callback.

    The first :meth:`notify` after the last firing arms a timer; further
    notifications while it is armed are ignored, so the callback runs once per
    burst, ``delay`` seconds after the burst began.
    """

    def __init__(
        self,
        delay: float,
        on_fire: Callable[[], None],
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._delay = max(0.0, delay)
        self._on_fire = on_fire
        self._loop = loop or asyncio.get_running_loop()
        self._handle: asyncio.TimerHandle | None = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def notify(self) -> bool:
        """Arm the timer unless it already is; returns ``True`` when armed now."""

        if self._handle is not None:
            return False
        self._handle = self._loop.call_later(self._delay, self._fire)
        return True

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._on_fire()
