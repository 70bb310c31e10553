"""Syntax, scope and module resolution built on tree-sitter."""

from .provider import ParsedSource, SyntaxProvider, node_text

__all__ = ["ParsedSource", "SyntaxProvider", "node_text"]
