"""Capture composition, style tables, language detection and tree-sitter captures."""

from .compose import Capture, StyleSpan, compose, format_spans
from .languages import LanguageResolver, compile_handlers
from .styles import StyleKind, StyleTable, load_style_file

__all__ = [
    "Capture",
    "StyleSpan",
    "compose",
    "format_spans",
    "LanguageResolver",
    "compile_handlers",
    "StyleKind",
    "StyleTable",
    "load_style_file",
]
