"""Process-level supervisor: window discovery and the session registry."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable

from .errors import WindowError
from .highlight.languages import LanguageResolver, compile_handlers
from .highlight.styles import StyleTable, load_style_file
from .interfaces import AnnotationSource, CompositorClient, WindowSource
from .services.backoff import Backoff
from .services.config import DaemonConfig
from .session.controller import SessionController, SessionSettings

__all__ = ["DaemonContext", "Daemon", "build_context"]

LOGGER = logging.getLogger(__name__)

ControllerFactory = Callable[..., SessionController]


@dataclass(slots=True)
class DaemonContext:
    """Shared, process-scoped state handed to every session."""

    config: DaemonConfig
    styles: StyleTable
    resolver: LanguageResolver
    annotations: AnnotationSource
    windows: WindowSource
    compositor: CompositorClient
    active: set[int] = field(default_factory=set)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def session_settings(self) -> SessionSettings:
        config = self.config
        return SessionSettings(
            layer_name=config.layer_name,
            debounce_seconds=config.debounce_seconds,
            backoff_base=config.session_backoff.base_seconds,
            backoff_cap=config.session_backoff.cap_seconds,
            cleanup_timeout=config.cleanup_timeout,
        )


def build_context(config: DaemonConfig) -> DaemonContext:
    """Wire the real acme, acme-styles and tree-sitter collaborators.

    Raises :class:`~acme_treesitter.errors.ConfigError` for a bad style file or
    handler pattern.
    """

    from .highlight.annotations import LanguageRegistry, TreeSitterAnnotationSource
    from .services.acme import AcmeWindowSource
    from .services.compositor import AcmeStylesClient

    styles = load_style_file(config.style_file) if config.style_file else StyleTable.canonical()
    registry = LanguageRegistry.from_builtin(queries_dir=config.queries_dir)
    annotations = TreeSitterAnnotationSource(registry)
    handlers = compile_handlers((handler.pattern, handler.language_id) for handler in config.filename_handlers)
    return DaemonContext(
        config=config,
        styles=styles,
        resolver=LanguageResolver(handlers, annotations.has_language),
        annotations=annotations,
        windows=AcmeWindowSource(config.acme_service),
        compositor=AcmeStylesClient(config.styles_service),
    )


class Daemon:
    """Starts one session per acme window and keeps the acme log connected."""

    def __init__(self, context: DaemonContext, *, controller_factory: ControllerFactory = SessionController) -> None:
        self._ctx = context
        self._controller_factory = controller_factory
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def context(self) -> DaemonContext:
        return self._ctx

    @property
    def tasks(self) -> frozenset[asyncio.Task[None]]:
        return frozenset(self._tasks)

    async def start_session(self, win_id: int, name: str) -> bool:
        """Start a session for ``win_id`` unless one is already running."""

        async with self._ctx.lock:
            if win_id in self._ctx.active:
                return False
            try:
                controller = self._controller_factory(
                    win_id,
                    name,
                    windows=self._ctx.windows,
                    compositor=self._ctx.compositor,
                    annotations=self._ctx.annotations,
                    resolver=self._ctx.resolver,
                    styles=self._ctx.styles,
                    settings=self._ctx.session_settings(),
                )
            except Exception:
                LOGGER.exception("Window %s: cannot create session", win_id)
                return False
            self._ctx.active.add(win_id)
        task = asyncio.create_task(self._run_session(win_id, controller), name=f"window-{win_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _run_session(self, win_id: int, controller: SessionController) -> None:
        try:
            await controller.run()
        except asyncio.CancelledError:
            raise
        except Exception:
            # Sessions retry their own failures; anything reaching here is a bug,
            # and it must not take other windows down with it.
            LOGGER.exception("Window %s: session crashed", win_id)
        finally:
            async with self._ctx.lock:
                self._ctx.active.discard(win_id)

    async def run(self) -> None:
        """Follow acme until cancelled, reconnecting with backoff."""

        reconnect = self._ctx.config.reconnect_backoff
        backoff = Backoff(reconnect.base_seconds, reconnect.cap_seconds)
        try:
            while True:
                if await self._follow_acme(backoff):
                    backoff.reset()
                delay = backoff.next()
                LOGGER.debug("Reconnecting to acme in %.2fs", delay)
                await asyncio.sleep(delay)
        finally:
            await self.shutdown()

    async def _follow_acme(self, backoff: Backoff) -> bool:
        """Seed sessions and consume the acme log; ``True`` if any event arrived."""

        windows = self._ctx.windows
        try:
            existing = await windows.list_windows()
        except WindowError as exc:
            LOGGER.warning("Listing acme windows failed (attempt %d): %s", backoff.attempt + 1, exc)
            return False
        for info in existing:
            await self.start_session(info.id, info.name)

        LOGGER.info("Connected to acme log (%d windows open)", len(existing))
        received = False
        try:
            async for info in windows.watch_new_windows():
                received = True
                await self.start_session(info.id, info.name)
        except WindowError as exc:
            LOGGER.warning("acme log read error, reconnecting: %s", exc)
        else:
            LOGGER.warning("acme log closed, reconnecting")
        return received

    async def shutdown(self) -> None:
        """Cancel every session and wait for their layer cleanup to finish."""

        tasks = list(self._tasks)
        if not tasks:
            return
        LOGGER.info("Stopping %d window session(s)", len(tasks))
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
