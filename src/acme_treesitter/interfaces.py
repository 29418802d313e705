"""Protocols describing the external collaborators a window session talks to."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import AsyncIterator, Protocol, Sequence

from .highlight.compose import Capture, StyleSpan

__all__ = [
    "EditKind",
    "WindowInfo",
    "Window",
    "WindowSource",
    "Layer",
    "CompositorClient",
    "AnnotationSource",
]


class EditKind(enum.Enum):
    """Body edit notification kinds reported by an acme window log."""

    INSERT = "I"
    DELETE = "D"


@dataclass(frozen=True, slots=True)
class WindowInfo:
    """Identifier and filename of an acme window."""

    id: int
    name: str


class Window(Protocol):
    """Handle on one open acme window."""

    id: int

    async def read_full_text(self) -> bytes:
        ...

    async def read_first_line(self) -> str:
        ...

    def edit_notifications(self) -> AsyncIterator[EditKind]:
        ...


class WindowSource(Protocol):
    """Access to the editor's window list and window contents."""

    async def list_windows(self) -> list[WindowInfo]:
        ...

    def watch_new_windows(self) -> AsyncIterator[WindowInfo]:
        ...

    async def open(self, win_id: int) -> Window:
        ...


class Layer(Protocol):
    """A named per-window slot in the compositor."""

    async def apply(self, spans: Sequence[StyleSpan]) -> None:
        ...

    async def clear(self) -> None:
        ...

    async def delete(self) -> None:
        ...


class CompositorClient(Protocol):
    """Allocates compositor layers."""

    async def open_layer(self, win_id: int, name: str) -> Layer:
        ...


class AnnotationSource(Protocol):
    """Produces lexical captures for a buffer, in priority order."""

    def has_language(self, language_id: str) -> bool:
        ...

    def parse_and_query(self, language_id: str, source: bytes) -> list[Capture]:
        ...
