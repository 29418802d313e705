"""Language detection from window filenames and interpreter lines."""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping

from ..errors import ConfigError

__all__ = [
    "CompiledHandler",
    "LanguageResolver",
    "compile_handlers",
    "interpreter_from_shebang",
    "language_for_interpreter",
]

LOGGER = logging.getLogger(__name__)

_INTERPRETER_LANGUAGES: Mapping[str, str] = {
    "sh": "bash",
    "bash": "bash",
    "dash": "bash",
    "ksh": "bash",
    "zsh": "bash",
    "fish": "bash",
    "python": "python",
    "node": "javascript",
    "nodejs": "javascript",
    "deno": "javascript",
    "bun": "javascript",
    "ts-node": "javascript",
    "java": "java",
    "jbang": "java",
    "scala": "scala",
    "amm": "scala",
    "rust-script": "rust",
    "go": "go",
}
_VERSION_SUFFIX = re.compile(r"[0-9][0-9.]*$")
# env options that consume the following word.
_ENV_ARG_FLAGS = frozenset({"-u", "--unset", "-C", "--chdir"})


@dataclass(frozen=True, slots=True)
class CompiledHandler:
    """A filename pattern paired with the language it selects."""

    pattern: re.Pattern[str]
    language_id: str


def compile_handlers(handlers: Iterable[tuple[str, str]]) -> list[CompiledHandler]:
    """Compile ``(pattern, language_id)`` pairs; bad patterns are fatal."""

    compiled: list[CompiledHandler] = []
    for pattern, language_id in handlers:
        try:
            compiled.append(CompiledHandler(re.compile(pattern), language_id))
        except re.error as exc:
            raise ConfigError(f"filename handler pattern {pattern!r}: {exc}") from exc
    return compiled


def interpreter_from_shebang(line: str) -> str:
    """Return the interpreter named by a ``#!`` line, or ``""``.

    ``#!/usr/bin/env -S python3 -u`` yields ``python3``: the ``env``
    indirection and its options are skipped.
    """

    if not line.startswith("#!"):
        return ""
    words = line[2:].split()
    if not words:
        return ""
    program = posixpath.basename(words[0])
    if program != "env":
        return program
    skip_next = False
    for word in words[1:]:
        if skip_next:
            skip_next = False
            continue
        if word in _ENV_ARG_FLAGS:
            skip_next = True
            continue
        if word.startswith("-") or "=" in word:
            continue
        return posixpath.basename(word)
    return ""


def language_for_interpreter(interpreter: str) -> str:
    """Map an interpreter name to a language id, ignoring version suffixes."""

    if not interpreter:
        return ""
    language = _INTERPRETER_LANGUAGES.get(interpreter)
    if language:
        return language
    base = _VERSION_SUFFIX.sub("", interpreter)
    return _INTERPRETER_LANGUAGES.get(base, "")


class LanguageResolver:
    """Resolves window names and first lines to registered language ids."""

    def __init__(self, handlers: Iterable[CompiledHandler], is_registered: Callable[[str], bool]) -> None:
        self._handlers = tuple(handlers)
        self._is_registered = is_registered

    def resolve_by_filename(self, name: str) -> str | None:
        for handler in self._handlers:
            if handler.pattern.search(name):
                # The first matching pattern decides, even when its grammar is missing.
                if self._is_registered(handler.language_id):
                    return handler.language_id
                LOGGER.debug("%s matched %s but that language is not registered", name, handler.language_id)
                return None
        return None

    def resolve_by_interpreter_line(self, first_line: str) -> str | None:
        language = language_for_interpreter(interpreter_from_shebang(first_line.strip()))
        if language and self._is_registered(language):
            return language
        return None
