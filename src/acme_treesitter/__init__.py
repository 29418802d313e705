"""Live tree-sitter syntax highlighting for acme windows via acme-styles."""

__version__ = "0.3.0"
