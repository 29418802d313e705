"""Turn prioritized byte-range captures into acme-styles span entries.

Tree-sitter reports captures as byte ranges that may overlap; acme-styles wants
non-overlapping ranges measured in runes. :func:`compose` resolves overlaps by
letting the first capture claim a byte ("first match wins"), then walks the
buffer once to convert claimed byte runs into rune-offset spans.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from .styles import StyleTable

__all__ = [
    "Capture",
    "StyleSpan",
    "compose",
    "apply_capture",
    "spans_from_styles",
    "format_spans",
    "unit_width",
]


@dataclass(frozen=True, slots=True)
class Capture:
    """A named byte range ``[start_byte, end_byte)`` produced by a query."""

    name: str
    start_byte: int
    end_byte: int


@dataclass(frozen=True, slots=True)
class StyleSpan:
    """Style index applied to runes ``[start, end)``."""

    style: int
    start: int
    end: int

    def to_line(self) -> str:
        return f"{self.style} {self.start} {self.end}"


def compose(captures: Iterable[Capture], source: bytes, table: StyleTable) -> list[StyleSpan]:
    """Return ordered, non-overlapping spans for ``source``.

    ``captures`` are consumed in the order given; that order is the priority.
    Capture names resolve through :meth:`StyleTable.lookup`; unresolved names
    are ignored.
    """

    if not source:
        return []
    styles = bytearray(len(source))
    for capture in captures:
        index = table.lookup(capture.name)
        if index == 0:
            continue
        apply_capture(styles, capture.start_byte, capture.end_byte, index)
    return spans_from_styles(styles, source)


def apply_capture(styles: bytearray, start: int, end: int, index: int) -> None:
    """Claim every still-unstyled byte in ``[start, end)`` for ``index``."""

    if index == 0:
        return
    start = max(0, start)
    end = min(end, len(styles))
    for position in range(start, end):
        if styles[position] == 0:
            styles[position] = index


def spans_from_styles(styles: Sequence[int], source: bytes) -> list[StyleSpan]:
    """Collapse a per-byte style array into rune-offset spans.

    The style of a character is the style of its first byte. A capture boundary
    that falls inside a multibyte character is therefore resolved by the lead
    byte alone and the continuation bytes' styles are dropped, the same way
    acme-styles compresses its own entries. Unstyled runs are omitted entirely.
    """

    spans: list[StyleSpan] = []
    limit = min(len(styles), len(source))
    byte_offset = 0
    rune_offset = 0
    current = 0
    span_start = 0
    while byte_offset < limit:
        style = styles[byte_offset]
        if style != current:
            if current != 0:
                spans.append(StyleSpan(current, span_start, rune_offset))
            current = style
            span_start = rune_offset
        byte_offset += unit_width(source, byte_offset)
        rune_offset += 1
    if current != 0:
        spans.append(StyleSpan(current, span_start, rune_offset))
    return spans


def unit_width(source: bytes, offset: int) -> int:
    """Byte length of the UTF-8 character starting at ``offset``.

    Invalid, overlong, surrogate and truncated sequences count as a single
    byte, the same way acme turns each bad byte into one replacement rune.
    """

    lead = source[offset]
    if lead < 0x80:
        return 1
    if 0xC2 <= lead <= 0xDF:
        width, low, high = 2, 0x80, 0xBF
    elif lead == 0xE0:
        width, low, high = 3, 0xA0, 0xBF
    elif lead == 0xED:
        width, low, high = 3, 0x80, 0x9F
    elif 0xE1 <= lead <= 0xEF:
        width, low, high = 3, 0x80, 0xBF
    elif lead == 0xF0:
        width, low, high = 4, 0x90, 0xBF
    elif 0xF1 <= lead <= 0xF3:
        width, low, high = 4, 0x80, 0xBF
    elif lead == 0xF4:
        width, low, high = 4, 0x80, 0x8F
    else:
        return 1
    if offset + width > len(source):
        return 1
    if not low <= source[offset + 1] <= high:
        return 1
    for position in range(offset + 2, offset + width):
        if not 0x80 <= source[position] <= 0xBF:
            return 1
    return width


def format_spans(spans: Iterable[StyleSpan]) -> str:
    """Render spans as ``"idx start end\\n"`` lines for a layer style file."""

    return "".join(f"{span.to_line()}\n" for span in spans)
