"""Exception hierarchy for the highlighting daemon.

Startup problems (configuration, style table) are fatal and surface through the
CLI exit code. Everything raised while a window session is running is contained
by that session's retry loop.
"""

from __future__ import annotations

__all__ = [
    "AcmeTreesitterError",
    "ConfigError",
    "StyleTableError",
    "TransportError",
    "WindowError",
    "WindowNotFoundError",
    "CompositorError",
]


class AcmeTreesitterError(Exception):
    """Base class for all daemon errors."""


class ConfigError(AcmeTreesitterError):
    """Raised when the configuration file cannot be read or understood."""


class StyleTableError(ConfigError):
    """Raised when a style file cannot be loaded into a style table."""


class TransportError(AcmeTreesitterError):
    """A 9P operation against acme or acme-styles failed."""

    def __init__(self, message: str, *, path: str | None = None, returncode: int | None = None) -> None:
        super().__init__(message)
        self.path = path
        self.returncode = returncode


class WindowError(TransportError):
    """Reading from an acme window failed; usually transient."""


class WindowNotFoundError(WindowError):
    """The window no longer exists in acme."""


class CompositorError(TransportError):
    """acme-styles is absent, restarting, or rejected a layer operation."""
