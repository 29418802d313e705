"""acme file-server access: window list, window log and window bodies."""

from __future__ import annotations

import logging
from typing import AsyncIterator

from ..errors import WindowError, WindowNotFoundError
from ..interfaces import EditKind, WindowInfo
from .ninep import DEFAULT_COMMAND, NinePClient

__all__ = ["AcmeWindowSource", "AcmeWindow", "parse_index", "parse_log_event"]

LOGGER = logging.getLogger(__name__)
_EDIT_KINDS = {ord("I"): EditKind.INSERT, ord("D"): EditKind.DELETE}


class AcmeWindow:
    """One acme window, addressed by id over its own 9P requests."""

    def __init__(self, win_id: int, client: NinePClient) -> None:
        self.id = win_id
        self._client = client

    async def read_full_text(self) -> bytes:
        return await self._client.read(self.id, "body")

    async def read_first_line(self) -> str:
        body = await self.read_full_text()
        first, _, _ = body.partition(b"\n")
        return first.decode("utf-8", "replace")

    async def edit_notifications(self) -> AsyncIterator[EditKind]:
        """Body edits from ``<id>/log``; ends when acme closes the window."""

        async for line in self._client.stream_lines(self.id, "log"):
            kind = _EDIT_KINDS.get(line[0]) if line else None
            if kind is not None:
                yield kind

    def __repr__(self) -> str:
        return f"AcmeWindow({self.id})"


class AcmeWindowSource:
    """Window discovery and access for a running acme."""

    def __init__(self, service: str = "acme", *, command: str = DEFAULT_COMMAND) -> None:
        self._client = NinePClient(
            service,
            command=command,
            error=WindowError,
            missing_error=WindowNotFoundError,
        )

    async def list_windows(self) -> list[WindowInfo]:
        payload = await self._client.read("index")
        return parse_index(payload)

    async def watch_new_windows(self) -> AsyncIterator[WindowInfo]:
        """Windows announced by ``acme/log`` as they are created.

        The stream ends (or raises :class:`WindowError`) when the connection to
        acme drops; callers reconnect.
        """

        async for line in self._client.stream_lines("log"):
            event = parse_log_event(line)
            if event is None:
                continue
            op, info = event
            if op == "new":
                yield info

    async def open(self, win_id: int) -> AcmeWindow:
        """Confirm the window exists by reading its ``ctl`` file.

        Only acme answering that ``ctl`` does not exist means the window is
        gone; a failure to reach acme stays a plain, retryable
        :class:`WindowError`.
        """

        try:
            await self._client.read(win_id, "ctl")
        except WindowNotFoundError as exc:
            raise WindowNotFoundError(f"window {win_id} is not open: {exc}", path=exc.path) from exc
        return AcmeWindow(win_id, self._client)


def parse_index(payload: bytes) -> list[WindowInfo]:
    """Parse ``acme/index``: five numeric columns, then the tag."""

    windows: list[WindowInfo] = []
    for raw in payload.decode("utf-8", "replace").splitlines():
        fields = raw.split()
        if not fields:
            continue
        try:
            win_id = int(fields[0])
        except ValueError:
            LOGGER.debug("Skipping malformed index line %r", raw)
            continue
        name = fields[5] if len(fields) > 5 else ""
        windows.append(WindowInfo(win_id, name))
    return windows


def parse_log_event(line: bytes) -> tuple[str, WindowInfo] | None:
    """Parse an ``acme/log`` line of the form ``id op name``."""

    fields = line.decode("utf-8", "replace").split(" ", 2)
    if len(fields) < 2:
        return None
    try:
        win_id = int(fields[0])
    except ValueError:
        return None
    name = fields[2].strip() if len(fields) > 2 else ""
    return fields[1], WindowInfo(win_id, name)
