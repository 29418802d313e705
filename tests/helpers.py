"""Shared test helpers and stub collaborators.

The fakes here stand in for acme, acme-styles and tree-sitter so session and
daemon behaviour can be driven deterministically. Import from here instead of
redefining them per test module.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Callable, Iterable, Sequence

from acme_treesitter.errors import WindowNotFoundError
from acme_treesitter.highlight.compose import Capture, StyleSpan
from acme_treesitter.highlight.languages import LanguageResolver, compile_handlers
from acme_treesitter.highlight.styles import StyleTable
from acme_treesitter.interfaces import EditKind, WindowInfo
from acme_treesitter.session.controller import SessionController, SessionSettings

PYTHON_HANDLERS: tuple[tuple[str, str], ...] = ((r"\.py$", "python"), (r"\.go$", "go"))

_CLOSE = object()


class FakeWindow:
    """An acme window whose edit log is fed by the test."""

    def __init__(self, win_id: int, text: bytes = b"") -> None:
        self.id = win_id
        self.text = text
        self.full_reads = 0
        self.first_line_errors: list[Exception] = []
        self.read_errors: list[Exception] = []
        self._log: asyncio.Queue[object] = asyncio.Queue()

    async def read_full_text(self) -> bytes:
        self.full_reads += 1
        if self.read_errors:
            raise self.read_errors.pop(0)
        return self.text

    async def read_first_line(self) -> str:
        if self.first_line_errors:
            raise self.first_line_errors.pop(0)
        first, _, _ = self.text.partition(b"\n")
        return first.decode("utf-8", "replace")

    async def edit_notifications(self) -> AsyncIterator[EditKind]:
        while True:
            item = await self._log.get()
            if item is _CLOSE:
                return
            if isinstance(item, BaseException):
                raise item
            yield item  # type: ignore[misc]

    def edit(self, count: int = 1, kind: EditKind = EditKind.INSERT) -> None:
        for _ in range(count):
            self._log.put_nowait(kind)

    def close(self) -> None:
        self._log.put_nowait(_CLOSE)

    def fail(self, exc: BaseException) -> None:
        self._log.put_nowait(exc)


class FakeWindowSource:
    """In-memory acme: a window table, an index listing and a new-window log."""

    def __init__(self, windows: Iterable[FakeWindow] = (), *, names: dict[int, str] | None = None) -> None:
        self.windows: dict[int, FakeWindow] = {window.id: window for window in windows}
        self.names: dict[int, str] = dict(names or {})
        self.open_errors: list[Exception] = []
        self.list_errors: list[Exception] = []
        self.opens = 0
        self.list_calls = 0
        self._log: asyncio.Queue[object] = asyncio.Queue()

    async def open(self, win_id: int) -> FakeWindow:
        self.opens += 1
        if self.open_errors:
            raise self.open_errors.pop(0)
        window = self.windows.get(win_id)
        if window is None:
            raise WindowNotFoundError(f"window {win_id} is not open")
        return window

    async def list_windows(self) -> list[WindowInfo]:
        self.list_calls += 1
        if self.list_errors:
            raise self.list_errors.pop(0)
        return [WindowInfo(win_id, self.names.get(win_id, "")) for win_id in self.windows]

    async def watch_new_windows(self) -> AsyncIterator[WindowInfo]:
        while True:
            item = await self._log.get()
            if item is _CLOSE:
                return
            if isinstance(item, BaseException):
                raise item
            yield item  # type: ignore[misc]

    def announce(self, window: FakeWindow, name: str) -> None:
        self.windows[window.id] = window
        self.names[window.id] = name
        self._log.put_nowait(WindowInfo(window.id, name))

    def disconnect(self, exc: BaseException | None = None) -> None:
        self._log.put_nowait(exc if exc is not None else _CLOSE)


class FakeLayer:
    """Records what a session did to its acme-styles layer."""

    def __init__(self, win_id: int, layer_id: int, name: str) -> None:
        self.win_id = win_id
        self.layer_id = layer_id
        self.name = name
        self.applied: list[list[StyleSpan]] = []
        self.apply_errors: list[Exception] = []
        self.cleared = 0
        self.deleted = 0

    async def apply(self, spans: Sequence[StyleSpan]) -> None:
        if self.apply_errors:
            raise self.apply_errors.pop(0)
        self.applied.append(list(spans))

    async def clear(self) -> None:
        self.cleared += 1

    async def delete(self) -> None:
        self.deleted += 1


class FakeCompositor:
    """Hands out :class:`FakeLayer` objects, optionally failing first."""

    def __init__(self) -> None:
        self.layers: list[FakeLayer] = []
        self.open_errors: list[Exception] = []
        self.open_calls = 0

    async def open_layer(self, win_id: int, name: str) -> FakeLayer:
        self.open_calls += 1
        if self.open_errors:
            raise self.open_errors.pop(0)
        layer = FakeLayer(win_id, len(self.layers) + 1, name)
        self.layers.append(layer)
        return layer


class FakeAnnotations:
    """Returns canned captures for every parse."""

    def __init__(self, captures: Iterable[Capture] = (), *, languages: Iterable[str] = ("python",)) -> None:
        self.captures = list(captures)
        self.languages = set(languages)
        self.calls = 0

    def has_language(self, language_id: str) -> bool:
        return language_id in self.languages

    def parse_and_query(self, language_id: str, source: bytes) -> list[Capture]:
        self.calls += 1
        return list(self.captures)


def fast_settings(**overrides: float) -> SessionSettings:
    """Session settings with timings short enough for unit tests."""

    values = {
        "debounce_seconds": 0.01,
        "backoff_base": 0.001,
        "backoff_cap": 0.005,
        "cleanup_timeout": 0.5,
    }
    values.update(overrides)
    return SessionSettings(**values)  # type: ignore[arg-type]


def make_resolver(
    annotations: FakeAnnotations,
    handlers: Iterable[tuple[str, str]] = PYTHON_HANDLERS,
) -> LanguageResolver:
    return LanguageResolver(compile_handlers(handlers), annotations.has_language)


def make_controller(
    win_id: int,
    name: str,
    *,
    windows: FakeWindowSource,
    compositor: FakeCompositor,
    annotations: FakeAnnotations,
    settings: SessionSettings | None = None,
) -> SessionController:
    return SessionController(
        win_id,
        name,
        windows=windows,
        compositor=compositor,
        annotations=annotations,
        resolver=make_resolver(annotations),
        styles=StyleTable.canonical(),
        settings=settings or fast_settings(),
    )


async def wait_until(predicate: Callable[[], bool], *, timeout: float = 2.0) -> None:
    """Poll ``predicate`` on the event loop until it holds or ``timeout`` passes."""

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.005)
