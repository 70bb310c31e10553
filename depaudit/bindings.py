"""Import binding extraction for one parsed file."""

from __future__ import annotations

from typing import Iterator, List, Optional, Sequence

from tree_sitter import Node

from .aggregator import CallRecordAggregator
from .ghost import GhostDependencyDetector
from .models import ImportBinding, ModuleType, ResolvedModule
from .parsing.modules import ModuleResolver
from .parsing.provider import ParsedSource
from .parsing.scopes import span_of


def _string_value(node: Optional[Node], parsed: ParsedSource) -> Optional[str]:
    if node is None or node.type != "string":
        return None
    text = parsed.text(node)
    if len(text) >= 2 and text[0] in "'\"" and text[-1] == text[0]:
        return text[1:-1]
    return None


def iter_import_statements(root: Node) -> Iterator[Node]:
    """Top-level import declarations in source order."""
    for child in root.named_children:
        if child.type == "import_statement":
            yield child


class BindingExtractor:
    """Turns import declarations into bindings and registers them."""

    def __init__(
        self,
        resolver: ModuleResolver,
        *,
        analysis_target: Sequence[str] = (),
        ghost: GhostDependencyDetector | None = None,
    ) -> None:
        self.resolver = resolver
        self.analysis_target = set(analysis_target)
        self.ghost = ghost

    def extract(
        self,
        parsed: ParsedSource,
        aggregator: CallRecordAggregator,
        *,
        file: str,
        project: str,
        repo_hint: str = "",
    ) -> List[ImportBinding]:
        bindings: List[ImportBinding] = []
        for statement in iter_import_statements(parsed.root):
            specifier = _string_value(statement.child_by_field_name("source"), parsed)
            require_clause = None
            if specifier is None:
                require_clause = next(
                    (child for child in statement.named_children if child.type == "import_require_clause"),
                    None,
                )
                if require_clause is None:
                    continue
                source = require_clause.child_by_field_name("source") or next(
                    (child for child in require_clause.named_children if child.type == "string"), None
                )
                specifier = _string_value(source, parsed)
                if specifier is None:
                    continue

            resolution = self.resolver.resolve(specifier)
            if resolution.module_type is ModuleType.LOCAL_FILE:
                continue
            if not self._is_target(resolution):
                continue

            line = parsed.line_of(statement)
            found = list(self._bindings_of(statement, require_clause, specifier, resolution, parsed, line))
            for binding in found:
                aggregator.register_import(binding, file=file, project=project, repo_hint=repo_hint)
            bindings.extend(found)

            if self.ghost is not None:
                self.ghost.flag(resolution, aggregator)
        return bindings

    def _is_target(self, resolution: ResolvedModule) -> bool:
        if not self.analysis_target:
            return True
        return (
            resolution.specifier in self.analysis_target
            or resolution.resolved in self.analysis_target
            or (resolution.package_name or "") in self.analysis_target
        )

    def _bindings_of(
        self,
        statement: Node,
        require_clause: Optional[Node],
        specifier: str,
        resolution: ResolvedModule,
        parsed: ParsedSource,
        line: int,
    ) -> Iterator[ImportBinding]:
        def make(local: Node, origin: Optional[str], site: Node) -> ImportBinding:
            return ImportBinding(
                module=specifier,
                local_name=parsed.text(local),
                origin=origin,
                declaration_span=span_of(site),
                identifier_span=span_of(local),
                line=line,
                resolution=resolution,
            )

        if require_clause is not None:
            local = next((c for c in require_clause.named_children if c.type == "identifier"), None)
            if local is not None:
                yield make(local, None, require_clause)
            return

        for clause in statement.named_children:
            if clause.type != "import_clause":
                continue
            for part in clause.named_children:
                if part.type == "identifier":
                    yield make(part, None, clause)
                elif part.type == "namespace_import":
                    local = next((c for c in part.named_children if c.type == "identifier"), None)
                    if local is not None:
                        yield make(local, "*", part)
                elif part.type == "named_imports":
                    for spec in part.named_children:
                        if spec.type != "import_specifier":
                            continue
                        name = spec.child_by_field_name("name")
                        alias = spec.child_by_field_name("alias")
                        if name is None:
                            continue
                        if alias is not None:
                            imported = parsed.text(name)
                            if name.type == "string":
                                imported = imported[1:-1]
                            yield make(alias, imported, spec)
                        elif name.type == "identifier":
                            yield make(name, None, spec)


__all__ = ["BindingExtractor", "iter_import_statements"]
