"""Tests for the lexical scope resolver."""

from __future__ import annotations

from typing import List

from tree_sitter import Node

from depaudit.parsing.provider import ParsedSource, SyntaxProvider
from depaudit.parsing.scopes import ScopeResolver


def _identifiers(parsed: ParsedSource, name: str) -> List[Node]:
    found: List[Node] = []
    stack = [parsed.root]
    while stack:
        node = stack.pop()
        if node.type in {"identifier", "type_identifier"} and parsed.text(node) == name:
            found.append(node)
        stack.extend(node.children)
    return sorted(found, key=lambda node: node.start_byte)


def test_import_binding_is_visible_in_nested_functions(syntax: SyntaxProvider) -> None:
    parsed = syntax.parse_text(
        """
import _ from 'lodash'
function run() {
  return () => _.map([], x => x)
}
""",
        "typescript",
    )
    resolver = ScopeResolver(parsed.root, parsed.source)
    declaration_site, usage = _identifiers(parsed, "_")

    declarations = resolver.declarations_for(usage)

    assert len(declarations) == 1
    assert declarations[0].kind == "import"
    assert declarations[0].identifier_span == (declaration_site.start_byte, declaration_site.end_byte)


def test_parameters_and_block_bindings_shadow_imports(syntax: SyntaxProvider) -> None:
    parsed = syntax.parse_text(
        """
import fs from 'fs'
function read(fs) { return fs.readFileSync('a') }
{
  const fs = null
  fs.open()
}
fs.stat()
""",
        "typescript",
    )
    resolver = ScopeResolver(parsed.root, parsed.source)
    occurrences = _identifiers(parsed, "fs")
    param_use = occurrences[2]
    block_use = occurrences[4]
    top_use = occurrences[5]

    assert [d.kind for d in resolver.declarations_for(param_use)] == ["parameter"]
    assert [d.kind for d in resolver.declarations_for(block_use)] == ["const"]
    assert [d.kind for d in resolver.declarations_for(top_use)] == ["import"]


def test_var_is_hoisted_to_function_scope(syntax: SyntaxProvider) -> None:
    parsed = syntax.parse_text(
        """
function outer() {
  if (true) { var hoisted = 1 }
  return hoisted
}
""",
        "javascript",
    )
    resolver = ScopeResolver(parsed.root, parsed.source)
    usage = _identifiers(parsed, "hoisted")[-1]

    assert [d.kind for d in resolver.declarations_for(usage)] == ["var"]


def test_destructuring_and_catch_parameters_are_declarations(syntax: SyntaxProvider) -> None:
    parsed = syntax.parse_text(
        """
const { a, b: [c], ...rest } = source
try { go() } catch (err) { report(err, a, c, rest) }
""",
        "javascript",
    )
    resolver = ScopeResolver(parsed.root, parsed.source)

    for name in ("c", "rest", "err"):
        assert resolver.declarations_for(_identifiers(parsed, name)[-1]), name
    assert resolver.declarations_for(_identifiers(parsed, "source")[0]) == []
    assert resolver.declarations_for(_identifiers(parsed, "report")[0]) == []


def test_type_parameters_and_interfaces(syntax: SyntaxProvider) -> None:
    parsed = syntax.parse_text(
        """
interface Shape { size: number }
function pick<T>(value: T): Shape { return value as any }
let w: Window
""",
        "typescript",
    )
    resolver = ScopeResolver(parsed.root, parsed.source)

    assert [d.kind for d in resolver.declarations_for(_identifiers(parsed, "T")[-1])] == ["type_parameter"]
    assert [d.kind for d in resolver.declarations_for(_identifiers(parsed, "Shape")[-1])] == [
        "interface_declaration"
    ]
    assert resolver.declarations_for(_identifiers(parsed, "Window")[0]) == []


def test_signature_parameters_stay_inside_the_signature(syntax: SyntaxProvider) -> None:
    parsed = syntax.parse_text(
        """
type Handler = (fetch: string) => void
interface Api {
  load(fetch: number): void
  new (fetch: boolean): Api
}
declare function send(fetch: string): void
fetch('/x')
""",
        "typescript",
    )
    resolver = ScopeResolver(parsed.root, parsed.source)
    usage = _identifiers(parsed, "fetch")[-1]

    assert resolver.declarations_for(usage) == []
