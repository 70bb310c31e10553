"""Scope-aware traversal that turns identifier references into usage events."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from tree_sitter import Node

from .aggregator import CallRecordAggregator
from .classifiers import Pipelines
from .models import GLOBAL_MODULE, FileVisit, ImportBinding, UsageEvent
from .parsing.provider import ParsedSource
from .parsing.scopes import ScopeResolver, span_of

MAX_CHAIN_DEPTH = 64
_DEADLINE_CHECK_INTERVAL = 256

_REFERENCE_NODES = {"identifier", "type_identifier", "shorthand_property_identifier"}
_JSX_NAME_NODES = {"member_expression", "nested_identifier", "jsx_namespace_name"}


class FileTimeoutError(RuntimeError):
    """Raised when one file exceeds its analysis time budget."""


@dataclass
class WalkStats:
    nodes: int = 0
    target_events: int = 0
    global_events: int = 0


def _is_field(parent: Node, field_name: str, child: Node) -> bool:
    target = parent.child_by_field_name(field_name)
    return target is not None and target.id == child.id


def _first_named(node: Node) -> Optional[Node]:
    return node.named_children[0] if node.named_child_count else None


def _is_chain_property(node: Node) -> bool:
    """True for the right-hand name of ``a.b`` style chains."""
    parent = node.parent
    if parent is None:
        return False
    if parent.type == "member_expression":
        return _is_field(parent, "property", node)
    if parent.type == "nested_identifier":
        first = _first_named(parent)
        return first is not None and first.id != node.id
    if parent.type == "nested_type_identifier":
        return _is_field(parent, "name", node)
    return False


def is_reference(node: Node) -> bool:
    """Whether ``node`` reads a name, as opposed to only naming something."""
    if node.type not in _REFERENCE_NODES:
        return False
    parent = node.parent
    if parent is None:
        return True
    if _is_chain_property(node):
        return False
    if parent.type == "export_specifier" and _is_field(parent, "alias", node):
        return False
    current = parent
    while current is not None and current.type in _JSX_NAME_NODES:
        current = current.parent
    if current is not None and current.type == "jsx_closing_element":
        return False
    return True


def _skip_children(node: Node) -> bool:
    if node.type == "import_statement":
        return True
    # ``export { a } from 'x'`` names another module's exports.
    return node.type == "export_statement" and node.child_by_field_name("source") is not None


def climb_chain(node: Node, parsed: ParsedSource) -> Tuple[Node, int, str]:
    """Follow property accesses upward from ``node``.

    Returns the topmost node of the chain, the number of steps taken and the
    dotted API name (``a.b.c``).
    """
    parts = [parsed.text(node)]
    current = node
    depth = 0
    while depth < MAX_CHAIN_DEPTH:
        parent = current.parent
        if parent is None:
            break
        prop: Optional[Node] = None
        if parent.type == "member_expression" and _is_field(parent, "object", current):
            prop = parent.child_by_field_name("property")
        elif parent.type == "nested_identifier":
            if _first_named(parent) is not None and _first_named(parent).id == current.id:
                prop = parent.named_children[-1]
        elif parent.type == "nested_type_identifier" and _is_field(parent, "module", current):
            prop = parent.child_by_field_name("name")
        if prop is None or prop.id == current.id:
            break
        parts.append(parsed.text(prop))
        current = parent
        depth += 1
    return current, depth, ".".join(parts)


class UsageWalker:
    """Visits every node of a file once and dispatches matched references."""

    def __init__(
        self,
        pipelines: Pipelines,
        *,
        global_analysis: bool = False,
        global_apis: Iterable[str] = (),
        timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.pipelines = pipelines
        self.global_analysis = global_analysis
        self.global_apis = frozenset(global_apis)
        self.timeout = timeout
        self.clock = clock

    def walk(
        self,
        parsed: ParsedSource,
        bindings: Iterable[ImportBinding],
        aggregator: CallRecordAggregator,
        *,
        file: str,
        project: str,
        repo_hint: str = "",
    ) -> WalkStats:
        bindings = tuple(bindings)
        by_name: Dict[str, List[ImportBinding]] = {}
        for binding in bindings:
            by_name.setdefault(binding.local_name, []).append(binding)

        stats = WalkStats()
        if by_name or self.global_analysis:
            self._traverse(parsed, by_name, aggregator, stats, file=file, project=project, repo_hint=repo_hint)
        visit = FileVisit(
            file=file,
            project=project,
            repo_hint=repo_hint,
            root=parsed.root,
            source=parsed.source,
            line_offset=parsed.line_offset,
            bindings=bindings,
        )
        self.pipelines.target.finish_file(visit, aggregator)
        return stats

    def _traverse(
        self,
        parsed: ParsedSource,
        by_name: Dict[str, List[ImportBinding]],
        aggregator: CallRecordAggregator,
        stats: WalkStats,
        *,
        file: str,
        project: str,
        repo_hint: str,
    ) -> None:
        resolver = ScopeResolver(parsed.root, parsed.source)
        deadline = self.clock() + self.timeout if self.timeout else None

        def emit(node: Node, module: str, binding: Optional[ImportBinding]) -> UsageEvent:
            top, depth, api_name = climb_chain(node, parsed)
            return UsageEvent(
                module=module,
                api_name=api_name,
                node=top,
                depth=depth,
                file=file,
                project=project,
                repo_hint=repo_hint,
                line=parsed.line_of(node),
                binding=binding,
            )

        # Iterative post-order, left to right.
        stack: List[Tuple[Node, bool]] = [(parsed.root, False)]
        while stack:
            node, expanded = stack.pop()
            if not expanded:
                stack.append((node, True))
                if not _skip_children(node):
                    for child in reversed(node.children):
                        stack.append((child, False))
                continue

            stats.nodes += 1
            if deadline is not None and stats.nodes % _DEADLINE_CHECK_INTERVAL == 0:
                if self.clock() > deadline:
                    raise FileTimeoutError(
                        f"Analysis of {file} exceeded {self.timeout:g}s after {stats.nodes} nodes"
                    )

            if not is_reference(node):
                continue
            name = parsed.text(node)

            candidates = by_name.get(name)
            declarations = None
            if candidates:
                declarations = resolver.declarations_for(node)
                sites = {
                    (declaration.identifier_span, declaration.site_span) for declaration in declarations
                }
                own_span = span_of(node)
                match = next(
                    (
                        binding
                        for binding in candidates
                        if (binding.identifier_span, binding.declaration_span) in sites
                        and binding.identifier_span != own_span
                    ),
                    None,
                )
                if match is not None:
                    self.pipelines.target.dispatch(emit(node, match.module, match), aggregator)
                    stats.target_events += 1
                    continue

            if not self.global_analysis:
                continue
            if self.global_apis and name not in self.global_apis:
                continue
            if declarations is None:
                declarations = resolver.declarations_for(node)
            if len(declarations) == 1:
                continue
            self.pipelines.global_.dispatch(emit(node, GLOBAL_MODULE, None), aggregator)
            stats.global_events += 1


__all__ = ["FileTimeoutError", "MAX_CHAIN_DEPTH", "UsageWalker", "WalkStats", "climb_chain", "is_reference"]
