"""Tests for the style table and style file loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from acme_treesitter.errors import ConfigError, StyleTableError
from acme_treesitter.highlight.styles import MAX_STYLES, StyleKind, StyleTable, load_style_file


def test_canonical_table_matches_style_kinds() -> None:
    table = StyleTable.canonical()

    assert table.names[0] == "default"
    assert len(table) == len(StyleKind)
    for kind in StyleKind:
        assert table.lookup(kind.style_name) == kind.value


def test_lookup_falls_back_through_dotted_levels() -> None:
    table = StyleTable(["default", "function"])

    assert table.lookup("function.method") == 1
    assert table.lookup("function.method.builtin") == 1
    assert table.lookup("@function.call") == 1


def test_lookup_unknown_kind_is_unstyled() -> None:
    table = StyleTable(["default", "function"])

    assert table.lookup("keyword.return") == 0
    assert table.lookup("") == 0
    assert table.lookup("@") == 0


def test_lookup_prefers_the_most_specific_entry() -> None:
    table = StyleTable(["default", "function", "function.method"])

    assert table.lookup("function.method.call") == 2
    assert table.lookup("function.builtin") == 1


def test_duplicate_names_keep_first_index() -> None:
    table = StyleTable(["default", "keyword", "keyword"])

    assert table.lookup("keyword") == 1
    assert table.name_for(2) == "keyword"


def test_empty_table_is_rejected() -> None:
    with pytest.raises(StyleTableError):
        StyleTable([])


def test_oversized_table_is_rejected() -> None:
    with pytest.raises(StyleTableError):
        StyleTable(f"style{index}" for index in range(MAX_STYLES + 1))


def test_load_style_file_skips_comments_and_blank_lines(tmp_path: Path) -> None:
    path = tmp_path / "styles"
    path.write_text(
        "# acme-styles palette\n"
        "default\n"
        "\n"
        "comment   fg=#888888 italic\n"
        "   # indented comment\n"
        "keyword fg=#0000aa\n",
        encoding="utf-8",
    )

    table = load_style_file(path)

    assert table.names == ("default", "comment", "keyword")
    assert table.lookup("keyword.control") == 2


def test_load_style_file_without_entries_is_an_error(tmp_path: Path) -> None:
    path = tmp_path / "styles"
    path.write_text("# nothing here\n\n", encoding="utf-8")

    with pytest.raises(StyleTableError):
        load_style_file(path)


def test_missing_style_file_is_a_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_style_file(tmp_path / "absent")
