"""Thin asyncio wrapper around plan9port's ``9p`` command.

Every operation runs its own short-lived ``9p`` process, which dials the
service afresh. That gives each request a dedicated connection: a restarted
acme or acme-styles is picked up on the next call and concurrent sessions never
share fids.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from typing import AsyncIterator

from ..errors import TransportError

__all__ = ["NinePClient", "DEFAULT_COMMAND"]

LOGGER = logging.getLogger(__name__)
DEFAULT_COMMAND = os.environ.get("ACME_TREESITTER_9P", "9p")
_MISSING_MARKERS = ("does not exist", "file not found")
# plan9port reports an absent service socket as "dial ...: connect: no such file".
_DIAL_MARKERS = ("dial", "connect")


class NinePClient:
    """Runs ``9p read``/``9p write`` against one service name."""

    def __init__(
        self,
        service: str,
        *,
        command: str = DEFAULT_COMMAND,
        error: type[TransportError] = TransportError,
        missing_error: type[TransportError] | None = None,
    ) -> None:
        self.service = service
        self._command = command
        self._error = error
        self._missing_error = missing_error or error

    def path(self, *parts: object) -> str:
        return "/".join([self.service, *(str(part) for part in parts)])

    async def read(self, *parts: object) -> bytes:
        path = self.path(*parts)
        process = await self._spawn("read", path, stdin=False)
        try:
            stdout, stderr = await process.communicate()
        finally:
            await _reap(process)
        self._check(process, path, stderr)
        return stdout

    async def write(self, data: bytes, *parts: object) -> None:
        path = self.path(*parts)
        process = await self._spawn("write", path, stdin=True)
        try:
            _, stderr = await process.communicate(data)
        finally:
            await _reap(process)
        self._check(process, path, stderr)

    async def stream_lines(self, *parts: object) -> AsyncIterator[bytes]:
        """Yield lines from a file that the server keeps open (acme logs).

        Ends quietly when the server closes the file; a failing ``9p`` process
        raises the client's error type.
        """

        path = self.path(*parts)
        process = await self._spawn("read", path, stdin=False)
        try:
            assert process.stdout is not None
            async for line in process.stdout:
                yield line.rstrip(b"\n")
            stderr = await process.stderr.read() if process.stderr is not None else b""
            await process.wait()
            self._check(process, path, stderr)
        finally:
            await _reap(process)

    async def _spawn(self, verb: str, path: str, *, stdin: bool) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                self._command,
                verb,
                path,
                stdin=asyncio.subprocess.PIPE if stdin else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise self._error(f"cannot run {self._command}: {exc}", path=path) from exc

    def _check(self, process: asyncio.subprocess.Process, path: str, stderr: bytes | None) -> None:
        if process.returncode == 0:
            return
        detail = (stderr or b"").decode("utf-8", "replace").strip() or f"exit status {process.returncode}"
        error_cls = self._missing_error if _is_missing(detail) else self._error
        raise error_cls(f"{path}: {detail}", path=path, returncode=process.returncode)


def _is_missing(detail: str) -> bool:
    """True when the server answered that the file itself does not exist."""

    lowered = detail.lower()
    if any(marker in lowered for marker in _DIAL_MARKERS):
        return False
    return any(marker in lowered for marker in _MISSING_MARKERS)


async def _reap(process: asyncio.subprocess.Process) -> None:
    """Make sure ``process`` is gone, killing it if the caller bailed out early."""

    if process.returncode is not None:
        return
    with contextlib.suppress(ProcessLookupError):
        process.kill()
    # Shielded so a second cancellation cannot leave a zombie behind.
    with contextlib.suppress(asyncio.CancelledError):
        await asyncio.shield(process.wait())
    LOGGER.debug("Killed 9p process %s", process.pid)
