"""Tree-sitter backed capture source."""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from types import ModuleType
from typing import Mapping

from tree_sitter import Language, Parser, Query, QueryCursor, QueryError

from .compose import Capture

__all__ = [
    "GrammarSpec",
    "LanguageEntry",
    "LanguageRegistry",
    "TreeSitterAnnotationSource",
    "BUILTIN_GRAMMARS",
    "registry_summary",
]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GrammarSpec:
    """Where to find a grammar: the wheel module and its language factory."""

    language_id: str
    module: str
    factory: str = "language"
    query: str | None = None

    @property
    def query_name(self) -> str:
        return self.query or self.language_id


# language_id values match the ones used in config filename_handlers.
BUILTIN_GRAMMARS: tuple[GrammarSpec, ...] = (
    GrammarSpec("go", "tree_sitter_go"),
    GrammarSpec("c", "tree_sitter_c"),
    # C grammar stands in for C++ until a C++ grammar is bundled.
    GrammarSpec("cpp", "tree_sitter_c", query="c"),
    GrammarSpec("python", "tree_sitter_python"),
    GrammarSpec("rust", "tree_sitter_rust"),
    GrammarSpec("javascript", "tree_sitter_javascript"),
    GrammarSpec("bash", "tree_sitter_bash"),
)


@dataclass(slots=True)
class LanguageEntry:
    """A compiled grammar and its highlights query (``None`` if it failed)."""

    language_id: str
    language: Language
    query: Query | None = None


class LanguageRegistry:
    """Grammars and compiled highlight queries, shared read-only by all sessions."""

    def __init__(self) -> None:
        self._entries: dict[str, LanguageEntry] = {}

    def __contains__(self, language_id: object) -> bool:
        return language_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, language_id: str) -> LanguageEntry | None:
        return self._entries.get(language_id)

    @property
    def language_ids(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def register(self, language_id: str, language: Language, query_source: str | None) -> LanguageEntry:
        """Register ``language``; a query that fails to compile leaves it unhighlighted."""

        entry = LanguageEntry(language_id=language_id, language=language)
        if query_source:
            try:
                entry.query = Query(language, query_source)
            except QueryError as exc:
                LOGGER.warning("Highlight query for %s failed to compile: %s", language_id, exc)
        else:
            LOGGER.info("No highlight query available for %s", language_id)
        self._entries[language_id] = entry
        return entry

    @classmethod
    def from_builtin(
        cls,
        *,
        queries_dir: Path | str | None = None,
        grammars: tuple[GrammarSpec, ...] = BUILTIN_GRAMMARS,
    ) -> "LanguageRegistry":
        """Load every bundled grammar that is importable.

        Query source, first found: ``<queries_dir>/<name>.scm``, the query
        bundled with this package, then the one shipped in the grammar wheel.
        """

        registry = cls()
        overrides = Path(queries_dir).expanduser() if queries_dir else None
        for spec in grammars:
            try:
                module = importlib.import_module(spec.module)
            except ImportError as exc:
                LOGGER.warning("Grammar %s unavailable (%s); %s files stay unhighlighted", spec.module, exc, spec.language_id)
                continue
            language = Language(getattr(module, spec.factory)())
            query_source = (
                _read_override(overrides, spec.query_name)
                or _bundled_query(spec.query_name)
                or _packaged_query(module)
            )
            registry.register(spec.language_id, language, query_source)
        LOGGER.debug("Registered languages: %s", ", ".join(registry.language_ids) or "(none)")
        return registry


class TreeSitterAnnotationSource:
    """Parses buffers and runs the highlights query for a language."""

    def __init__(self, registry: LanguageRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> LanguageRegistry:
        return self._registry

    def has_language(self, language_id: str) -> bool:
        return language_id in self._registry

    def parse_and_query(self, language_id: str, source: bytes) -> list[Capture]:
        """Return captures ordered by query pattern, then by position.

        Earlier patterns in a highlights query are more specific, so they come
        first and win overlaps in the composer. Unknown languages and languages
        without a query yield no captures.
        """

        entry = self._registry.get(language_id)
        if entry is None or entry.query is None or not source:
            return []

        # Parsers and cursors are per call so worker threads never share them.
        parser = Parser(entry.language)
        tree = parser.parse(source)
        cursor = QueryCursor(entry.query)
        ranked: list[tuple[int, int, int, Capture]] = []
        sequence = 0
        for pattern_index, captures in cursor.matches(tree.root_node):
            for name, nodes in captures.items():
                for node in nodes:
                    ranked.append(
                        (pattern_index, node.start_byte, sequence, Capture(name, node.start_byte, node.end_byte))
                    )
                    sequence += 1
        ranked.sort(key=lambda item: item[:3])
        return [item[3] for item in ranked]


def _read_override(directory: Path | None, language_id: str) -> str | None:
    if directory is None:
        return None
    candidate = directory / f"{language_id}.scm"
    if not candidate.is_file():
        return None
    try:
        return candidate.read_text(encoding="utf-8")
    except OSError as exc:
        LOGGER.warning("Cannot read query override %s: %s", candidate, exc)
        return None


def _bundled_query(name: str) -> str | None:
    resource = resources.files("acme_treesitter").joinpath("queries", f"{name}.scm")
    if not resource.is_file():
        return None
    return resource.read_text(encoding="utf-8")


def _packaged_query(module: ModuleType) -> str | None:
    try:
        query = getattr(module, "HIGHLIGHTS_QUERY")
    except (AttributeError, OSError):
        return None
    return query if isinstance(query, str) else None


def registry_summary(registry: LanguageRegistry) -> Mapping[str, bool]:
    """Language id → whether a highlight query is available."""

    summary: dict[str, bool] = {}
    for language_id in registry.language_ids:
        entry = registry.get(language_id)
        summary[language_id] = bool(entry and entry.query is not None)
    return summary
