"""Tree-sitter syntax provider for JavaScript, TypeScript and TSX sources."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import tree_sitter_javascript as tsjavascript
import tree_sitter_typescript as tstypescript
from tree_sitter import Language, Node, Parser, Tree

from .vue import extract_script

_GRAMMAR_BY_SUFFIX = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
}

_GRAMMAR_BY_VUE_LANG = {
    "ts": "typescript",
    "typescript": "typescript",
    "tsx": "tsx",
    "js": "javascript",
    "javascript": "javascript",
    "jsx": "javascript",
}


class UnsupportedSourceError(ValueError):
    """Raised when a file cannot be turned into a syntax tree."""


@dataclass
class ParsedSource:
    """A syntax tree plus the bytes it was parsed from."""

    path: str
    tree: Tree
    source: bytes
    grammar: str
    line_offset: int = 0

    @property
    def root(self) -> Node:
        return self.tree.root_node

    def text(self, node: Node) -> str:
        return node_text(node, self.source)

    def line_of(self, node: Node) -> int:
        """One-based line of ``node`` in the original file."""
        return node.start_point[0] + 1 + self.line_offset


def node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def grammar_for(path: str | Path) -> Optional[str]:
    return _GRAMMAR_BY_SUFFIX.get(Path(path).suffix.lower())


class SyntaxProvider:
    """Parses script files and Vue single-file components."""

    def __init__(self) -> None:
        self._parsers: Dict[str, Parser] = {}

    def parse_file(self, path: str | Path) -> Optional[ParsedSource]:
        """Parse ``path``; return None for Vue files without a script block."""
        path = Path(path)
        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() == ".vue":
            return self.parse_vue(text, str(path))
        grammar = grammar_for(path)
        if grammar is None:
            raise UnsupportedSourceError(f"Unsupported source file: {path}")
        return self.parse_text(text, grammar, str(path))

    def parse_vue(self, text: str, path: str = "<vue>") -> Optional[ParsedSource]:
        block = extract_script(text)
        if block is None:
            return None
        grammar = _GRAMMAR_BY_VUE_LANG.get((block.lang or "js").lower(), "javascript")
        return self.parse_text(block.content, grammar, path, line_offset=block.line_offset)

    def parse_text(
        self, text: str, grammar: str, path: str = "<memory>", *, line_offset: int = 0
    ) -> ParsedSource:
        source = text.encode("utf-8")
        tree = self._get_parser(grammar).parse(source)
        return ParsedSource(
            path=path, tree=tree, source=source, grammar=grammar, line_offset=line_offset
        )

    def _get_parser(self, grammar: str) -> Parser:
        parser = self._parsers.get(grammar)
        if parser is None:
            parser = Parser(_load_language(grammar))
            self._parsers[grammar] = parser
        return parser


def _load_language(grammar: str) -> Language:
    if grammar == "javascript":
        return Language(tsjavascript.language())
    if grammar == "typescript":
        return Language(tstypescript.language_typescript())
    if grammar == "tsx":
        return Language(tstypescript.language_tsx())
    raise UnsupportedSourceError(f"Unknown grammar: {grammar}")


__all__ = ["ParsedSource", "UnsupportedSourceError", "SyntaxProvider", "grammar_for", "node_text"]
