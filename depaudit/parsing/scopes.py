"""Lexical scope model: maps identifier references to their declaration sites."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from tree_sitter import Node

from ..models import Span
from .provider import node_text

FUNCTION_NODES = {
    "function_declaration",
    "function_expression",
    "function",
    "generator_function_declaration",
    "generator_function",
    "arrow_function",
    "method_definition",
}

# TS signatures own their parameter and type parameter names.
SIGNATURE_NODES = {
    "function_type",
    "constructor_type",
    "function_signature",
    "call_signature",
    "construct_signature",
    "method_signature",
    "abstract_method_signature",
}

BLOCK_NODES = {
    "statement_block",
    "for_statement",
    "for_in_statement",
    "catch_clause",
    "class_body",
    "switch_body",
}

_HOISTED_DECLARATIONS = {
    "function_declaration",
    "generator_function_declaration",
    "class_declaration",
    "abstract_class_declaration",
}

_TYPE_DECLARATIONS = {
    "interface_declaration",
    "type_alias_declaration",
    "enum_declaration",
    "internal_module",
    "module",
}

_NAME_NODES = {"identifier", "type_identifier", "shorthand_property_identifier_pattern"}

_PARAMETER_NODES = {"required_parameter", "optional_parameter"}


@dataclass(frozen=True)
class Declaration:
    """One site that introduces a name."""

    name: str
    kind: str
    identifier_span: Span
    site_span: Span


@dataclass
class Scope:
    node_type: str
    parent: Optional["Scope"]
    names: Dict[str, List[Declaration]] = field(default_factory=dict)

    @property
    def is_function(self) -> bool:
        return self.node_type in FUNCTION_NODES or self.node_type == "program"

    def declare(self, declaration: Declaration) -> None:
        self.names.setdefault(declaration.name, []).append(declaration)

    def function_scope(self) -> "Scope":
        scope: Scope = self
        while not scope.is_function and scope.parent is not None:
            scope = scope.parent
        return scope


def span_of(node: Node) -> Span:
    return (node.start_byte, node.end_byte)


def pattern_identifiers(node: Optional[Node]) -> Iterator[Node]:
    """Yield every identifier bound by a (possibly destructuring) pattern."""
    if node is None:
        return
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type in _NAME_NODES:
            yield current
            continue
        if current.type == "pair_pattern":
            stack.append(current.child_by_field_name("value"))
            continue
        if current.type in {"assignment_pattern", "object_assignment_pattern"}:
            stack.append(current.child_by_field_name("left"))
            continue
        if current.type in _PARAMETER_NODES:
            stack.append(current.child_by_field_name("pattern"))
            continue
        if current.type in {"object_pattern", "array_pattern", "rest_pattern"}:
            stack.extend(reversed(current.named_children))
    return


def _creates_scope(node: Node) -> bool:
    if node.type in FUNCTION_NODES or node.type in SIGNATURE_NODES:
        return True
    if node.type in BLOCK_NODES:
        # A function or catch body shares the scope of its owner.
        if node.type == "statement_block" and node.parent is not None:
            return node.parent.type not in FUNCTION_NODES and node.parent.type != "catch_clause"
        return True
    return False


class ScopeResolver:
    """Builds the scope tree of one file and answers declaration lookups."""

    def __init__(self, root: Node, source: bytes) -> None:
        self._source = source
        self._scopes: Dict[int, Scope] = {}
        self.program = Scope(node_type=root.type, parent=None)
        self._scopes[root.id] = self.program
        self._build(root)

    # ------------------------------------------------------------------
    # Queries

    def declarations_for(self, identifier: Node) -> List[Declaration]:
        """Declarations of ``identifier``'s name in the innermost scope that has any."""
        name = node_text(identifier, self._source)
        scope = self.scope_of(identifier)
        while scope is not None:
            found = scope.names.get(name)
            if found:
                return list(found)
            scope = scope.parent
        return []

    def scope_of(self, node: Node) -> Scope:
        current = node.parent
        while current is not None:
            scope = self._scopes.get(current.id)
            if scope is not None:
                return scope
            current = current.parent
        return self.program

    # ------------------------------------------------------------------
    # Construction

    def _build(self, root: Node) -> None:
        stack: List[tuple[Node, Scope]] = [(child, self.program) for child in reversed(root.children)]
        while stack:
            node, enclosing = stack.pop()
            scope = enclosing
            if _creates_scope(node):
                scope = Scope(node_type=node.type, parent=enclosing)
                self._scopes[node.id] = scope

            self._declare(node, enclosing, scope)

            for child in reversed(node.children):
                stack.append((child, scope))

    def _declare(self, node: Node, enclosing: Scope, own: Scope) -> None:
        kind = node.type
        if kind == "import_statement":
            self._declare_import(node)
        elif kind == "variable_declarator":
            declaration = node.parent
            is_var = declaration is not None and declaration.type == "variable_declaration"
            target = enclosing.function_scope() if is_var else enclosing
            label = "var" if is_var else _lexical_kind(declaration, self._source)
            for ident in pattern_identifiers(node.child_by_field_name("name")):
                self._add(target, ident, label, node)
        elif kind in _HOISTED_DECLARATIONS or kind in _TYPE_DECLARATIONS:
            name = node.child_by_field_name("name")
            if name is not None and name.type in _NAME_NODES:
                self._add(enclosing, name, kind, node)
        elif kind in {"function_expression", "function", "generator_function"}:
            name = node.child_by_field_name("name")
            if name is not None:
                self._add(own, name, kind, node)
        elif kind == "formal_parameters":
            for param in node.named_children:
                for ident in pattern_identifiers(param):
                    self._add(enclosing, ident, "parameter", param)
        elif kind == "arrow_function":
            param = node.child_by_field_name("parameter")
            if param is not None:
                self._add(own, param, "parameter", param)
        elif kind == "catch_clause":
            for ident in pattern_identifiers(node.child_by_field_name("parameter")):
                self._add(own, ident, "parameter", node)
        elif kind == "for_in_statement":
            if any(child.type in {"const", "let", "var"} for child in node.children):
                is_var = any(child.type == "var" for child in node.children)
                target = own.function_scope() if is_var else own
                for ident in pattern_identifiers(node.child_by_field_name("left")):
                    self._add(target, ident, "loop", node)
        elif kind == "type_parameter":
            name = node.child_by_field_name("name")
            if name is not None:
                self._add(enclosing, name, "type_parameter", node)

    def _declare_import(self, node: Node) -> None:
        for child in node.named_children:
            if child.type == "import_clause":
                for part in child.named_children:
                    if part.type == "identifier":
                        self._add(self.program, part, "import", child)
                    elif part.type == "namespace_import":
                        for ident in part.named_children:
                            if ident.type == "identifier":
                                self._add(self.program, ident, "import", part)
                    elif part.type == "named_imports":
                        for spec in part.named_children:
                            if spec.type != "import_specifier":
                                continue
                            local = spec.child_by_field_name("alias") or spec.child_by_field_name("name")
                            if local is not None and local.type == "identifier":
                                self._add(self.program, local, "import", spec)
            elif child.type == "import_require_clause":
                for ident in child.named_children:
                    if ident.type == "identifier":
                        self._add(self.program, ident, "import", child)
                        break

    def _add(self, scope: Scope, ident: Node, kind: str, site: Node) -> None:
        scope.declare(
            Declaration(
                name=node_text(ident, self._source),
                kind=kind,
                identifier_span=span_of(ident),
                site_span=span_of(site),
            )
        )


def _lexical_kind(declaration: Optional[Node], source: bytes) -> str:
    if declaration is None or not declaration.children:
        return "let"
    return node_text(declaration.children[0], source)


__all__ = [
    "Declaration",
    "Scope",
    "ScopeResolver",
    "pattern_identifiers",
    "span_of",
]
