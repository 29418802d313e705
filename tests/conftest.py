"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from acme_treesitter.highlight.styles import StyleTable


@pytest.fixture
def table() -> StyleTable:
    return StyleTable.canonical()
