"""Per-window highlighting session.

One :class:`SessionController` runs as its own asyncio task for every acme
window with a recognised language. It allocates an acme-styles layer, paints
an initial highlight, then re-highlights the whole body once per burst of
edits. Any failure other than cancellation restarts the session after a
full-jitter backoff, so acme-styles or acme restarts are ridden out
transparently.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from dataclasses import dataclass, field

from tenacity import AsyncRetrying, retry_if_exception_type, retry_if_not_exception_type, stop_after_attempt

from ..errors import WindowError, WindowNotFoundError
from ..highlight.compose import StyleSpan, compose
from ..highlight.languages import LanguageResolver
from ..highlight.styles import StyleTable
from ..interfaces import AnnotationSource, CompositorClient, Window, WindowSource
from ..services.backoff import Backoff, BackoffWait
from ..services.compositor import OptionalLayer
from .debounce import DEFAULT_DEBOUNCE_SECONDS, DebounceScheduler

__all__ = ["SessionController", "SessionSettings", "WindowSession"]

LOGGER = logging.getLogger(__name__)


class _Event(enum.Enum):
    EDIT = "edit"
    DEBOUNCE_FIRED = "debounce"
    STREAM_END = "end"


class _Outcome(enum.Enum):
    CLOSED = "closed"
    CANCELED = "canceled"
    FAILED = "failed"


@dataclass(slots=True)
class SessionSettings:
    """Tunables for a window session."""

    layer_name: str = "treesitter"
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    backoff_base: float = 0.2
    backoff_cap: float = 30.0
    cleanup_timeout: float = 2.0
    first_line_attempts: int = 3


@dataclass(slots=True)
class WindowSession:
    """State owned by one controller for one window."""

    id: int
    name: str
    language: str | None = None
    layer: OptionalLayer = field(default_factory=OptionalLayer)
    debounce: DebounceScheduler | None = None
    highlight_count: int = 0
    attempts: int = 0

    @property
    def debounce_pending(self) -> bool:
        return self.debounce is not None and self.debounce.pending


class SessionController:
    """Drives highlighting for one window until it closes or the task is cancelled."""

    def __init__(
        self,
        win_id: int,
        name: str,
        *,
        windows: WindowSource,
        compositor: CompositorClient,
        annotations: AnnotationSource,
        resolver: LanguageResolver,
        styles: StyleTable,
        settings: SessionSettings | None = None,
        backoff: Backoff | None = None,
    ) -> None:
        self._windows = windows
        self._compositor = compositor
        self._annotations = annotations
        self._resolver = resolver
        self._styles = styles
        self._settings = settings or SessionSettings()
        self._backoff = backoff or Backoff(self._settings.backoff_base, self._settings.backoff_cap)
        self.session = WindowSession(id=win_id, name=name)

    @property
    def backoff(self) -> Backoff:
        return self._backoff

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def run(self) -> None:
        """Run until the window closes; cancellation deletes the layer.

        Retries are unbounded: a window keeps trying to reach acme and
        acme-styles for as long as it is open, language detection included. A
        window that no longer exists, or whose language cannot be determined,
        ends the session.
        """

        session = self.session
        while True:
            session.attempts += 1
            try:
                if session.language is None:
                    language = await self.resolve_language()
                    if language is None:
                        LOGGER.debug("Window %s %r: no language matched", session.id, session.name)
                        return
                    session.language = language
                    LOGGER.info("Window %s %r: highlighting as %s", session.id, session.name, language)
                await self._run_once()
                return
            except WindowNotFoundError as exc:
                LOGGER.debug("Window %s is gone: %s", session.id, exc)
                return
            except Exception as exc:
                delay = self._backoff.next()
                LOGGER.warning("Window %s: %s; retrying in %.2fs", session.id, exc, delay)
                LOGGER.debug("Window %s session failure", session.id, exc_info=True)
                # Task cancellation interrupts the sleep directly.
                await asyncio.sleep(delay)

    async def resolve_language(self) -> str | None:
        """Filename handlers first, then the ``#!`` line of the body.

        A body that cannot be read raises :class:`WindowError` once the quick
        retries are spent.
        """

        session = self.session
        language = self._resolver.resolve_by_filename(session.name)
        if language is not None:
            return language
        if session.name.endswith("/"):
            return None
        first_line = await self._read_first_line()
        return self._resolver.resolve_by_interpreter_line(first_line)

    async def _read_first_line(self) -> str:
        backoff = Backoff(self._settings.backoff_base, self._settings.backoff_cap)
        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.first_line_attempts)),
            wait=BackoffWait(backoff),
            retry=retry_if_exception_type(WindowError) & retry_if_not_exception_type(WindowNotFoundError),
        )
        first_line = ""
        async for attempt in retrying:
            with attempt:
                window = await self._windows.open(self.session.id)
                first_line = await window.read_first_line()
        return first_line

    async def _run_once(self) -> None:
        session = self.session
        window = await self._windows.open(session.id)
        session.layer.replace(await self._compositor.open_layer(session.id, self._settings.layer_name))
        outcome = _Outcome.FAILED
        try:
            await self.highlight(window)
            self._backoff.reset()
            await self._watch(window)
            outcome = _Outcome.CLOSED
        except WindowNotFoundError:
            # The window closed under us; acme drops its styles itself.
            outcome = _Outcome.CLOSED
            raise
        except asyncio.CancelledError:
            outcome = _Outcome.CANCELED
            raise
        finally:
            await self._release_layer(outcome)

    async def _release_layer(self, outcome: _Outcome) -> None:
        layer = self.session.layer
        if not layer.present:
            return
        try:
            if outcome is _Outcome.CLOSED:
                # acme drops the window state itself; leave the layer for it to reap.
                await asyncio.wait_for(layer.clear(), self._settings.cleanup_timeout)
            else:
                await asyncio.wait_for(layer.delete(), self._settings.cleanup_timeout)
        except Exception:
            LOGGER.debug("Window %s: layer cleanup (%s) failed", self.session.id, outcome.value, exc_info=True)
        finally:
            layer.replace(None)

    # ------------------------------------------------------------------
    # Edit watching
    # ------------------------------------------------------------------
    async def _watch(self, window: Window) -> None:
        """Multiplex edits, debounce firings and end-of-stream on one queue."""

        session = self.session
        events: asyncio.Queue[tuple[_Event, BaseException | None]] = asyncio.Queue()
        session.debounce = DebounceScheduler(
            self._settings.debounce_seconds,
            lambda: events.put_nowait((_Event.DEBOUNCE_FIRED, None)),
        )
        pump = asyncio.create_task(self._pump_edits(window, events), name=f"edits-{session.id}")
        LOGGER.debug("Window %s: watching edits", session.id)
        try:
            while True:
                event, error = await events.get()
                if event is _Event.EDIT:
                    session.debounce.notify()
                elif event is _Event.DEBOUNCE_FIRED:
                    await self.highlight(window)
                elif isinstance(error, WindowNotFoundError):
                    raise error
                elif error is not None:
                    raise WindowError(f"edit stream failed: {error}") from error
                else:
                    LOGGER.debug("Window %s: closed", session.id)
                    return
        finally:
            session.debounce.cancel()
            session.debounce = None
            pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pump

    @staticmethod
    async def _pump_edits(window: Window, events: asyncio.Queue[tuple[_Event, BaseException | None]]) -> None:
        try:
            async for _ in window.edit_notifications():
                events.put_nowait((_Event.EDIT, None))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            events.put_nowait((_Event.STREAM_END, exc))
            return
        events.put_nowait((_Event.STREAM_END, None))

    # ------------------------------------------------------------------
    # Highlighting
    # ------------------------------------------------------------------
    async def highlight(self, window: Window) -> list[StyleSpan]:
        """Recompute the whole body and apply it to the layer."""

        session = self.session
        source = await window.read_full_text()
        spans = await asyncio.to_thread(self.compute_spans, source)
        await session.layer.apply(spans)
        session.highlight_count += 1
        LOGGER.debug("Window %s: applied %d spans", session.id, len(spans))
        return spans

    def compute_spans(self, source: bytes) -> list[StyleSpan]:
        language = self.session.language
        if language is None:
            return []
        captures = self._annotations.parse_and_query(language, source)
        return compose(captures, source, self._styles)
