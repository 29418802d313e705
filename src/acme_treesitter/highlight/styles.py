"""Canonical style table and capture-name resolution."""

from __future__ import annotations

import enum
import logging
from pathlib import Path
from typing import Iterable, Mapping

from ..errors import StyleTableError

__all__ = ["StyleKind", "StyleTable", "load_style_file", "MAX_STYLES"]

LOGGER = logging.getLogger(__name__)

# Style indices are stored one per source byte.
MAX_STYLES = 256


class StyleKind(enum.IntEnum):
    """Style kinds understood by the default acme-styles palette."""

    DEFAULT = 0
    COMMENT = 1
    STRING = 2
    KEYWORD = 3
    NUMBER = 4
    FUNCTION = 5
    TYPE = 6
    CONSTANT = 7
    OPERATOR = 8
    VARIABLE = 9

    @property
    def style_name(self) -> str:
        return self.name.lower()


class StyleTable:
    """Ordered list of style names; index 0 is the unstyled sentinel."""

    def __init__(self, names: Iterable[str]) -> None:
        ordered = [name.strip() for name in names]
        if not ordered:
            raise StyleTableError("style table is empty")
        if len(ordered) > MAX_STYLES:
            raise StyleTableError(f"style table has {len(ordered)} entries; at most {MAX_STYLES} are supported")
        self._names: tuple[str, ...] = tuple(ordered)
        index: dict[str, int] = {}
        for position, name in enumerate(ordered):
            # First occurrence wins, matching how acme-styles numbers its palette.
            index.setdefault(name, position)
        self._index: Mapping[str, int] = index

    @classmethod
    def canonical(cls) -> "StyleTable":
        return cls(kind.style_name for kind in StyleKind)

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def name_for(self, index: int) -> str:
        return self._names[index]

    def lookup(self, capture_name: str) -> int:
        """Resolve ``capture_name`` with hierarchical fallback.

        ``"function.method.builtin"`` tries ``function.method.builtin``, then
        ``function.method``, then ``function``. Returns 0 when no level is
        registered; index 0 itself also means "unstyled".
        """

        name = capture_name.lstrip("@")
        while name:
            index = self._index.get(name)
            if index is not None:
                return index
            name, dot, _ = name.rpartition(".")
            if not dot:
                break
        return 0


def load_style_file(path: Path | str) -> StyleTable:
    """Read an acme styles file into a :class:`StyleTable`.

    Blank lines and lines starting with ``#`` are skipped; the first token of
    every other line names a style, numbered in file order from 0.
    """

    target = Path(path).expanduser()
    try:
        text = target.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise StyleTableError(f"cannot read style file {target}: {exc}") from exc

    names: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        names.append(stripped.split()[0])
    table = StyleTable(names)
    LOGGER.debug("Loaded %d style entries from %s", len(table), target)
    return table
