"""Expand scan sources into the concrete files to analyse."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, Iterator, List, Sequence

from .logging import get_logger
from .models import FileKind, ScanSource, SourceFile

logger = get_logger("locator")

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    ".depaudit",
}

_SUFFIXES: Dict[FileKind, tuple[str, ...]] = {
    FileKind.SCRIPT: (".ts", ".tsx", ".mts", ".cts", ".js", ".jsx", ".mjs", ".cjs"),
    FileKind.TEMPLATE: (".vue",),
}

_DECLARATION_SUFFIXES = (".d.ts", ".d.mts", ".d.cts")
_GLOB_CHARS = set("*?[")


class LocatorError(RuntimeError):
    """Raised when a scan source names paths that cannot be expanded."""


@dataclass
class ExcludeRule:
    """A gitignore-style exclude pattern."""

    pattern: str
    directory_only: bool
    anchored: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False

        if self.anchored or self.has_slash:
            candidates = [self.pattern]
            if self.pattern.startswith("**/"):
                candidates.append(self.pattern[3:])
            for pattern in candidates:
                if fnmatchcase(rel_path, pattern):
                    return not self.directory_only or is_dir
                if self.directory_only and (
                    rel_path.startswith(f"{pattern}/") or fnmatchcase(rel_path, f"{pattern}/*")
                ):
                    return True
            return False

        parts = rel_path.split("/")
        if self.directory_only:
            parents = parts if is_dir else parts[:-1]
            return any(fnmatchcase(part, self.pattern) for part in parents)
        return any(fnmatchcase(part, self.pattern) for part in parts)


def build_exclude_rule(pattern: str) -> ExcludeRule | None:
    pattern = pattern.strip()
    if not pattern or pattern.startswith("#"):
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern.rstrip("/")

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern.lstrip("/")

    return ExcludeRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        has_slash="/" in pattern,
    )


def _is_excluded(rel_paths: Sequence[str], is_dir: bool, rules: Sequence[ExcludeRule]) -> bool:
    return any(rule.matches(rel, is_dir) for rule in rules for rel in rel_paths if rel)


def _matches_kind(path: Path, kind: FileKind) -> bool:
    name = path.name.lower()
    if kind is FileKind.SCRIPT and name.endswith(_DECLARATION_SUFFIXES):
        return False
    return name.endswith(_SUFFIXES[kind])


class SourceLocator:
    """Resolves a ScanSource's include/exclude lists against a root directory."""

    def __init__(self, root: Path) -> None:
        self.root = root.resolve()

    def locate(self, source: ScanSource, kind: FileKind = FileKind.SCRIPT) -> List[SourceFile]:
        """Return the files of ``kind`` that ``source`` covers, sorted by show path."""
        rules = [rule for rule in map(build_exclude_rule, source.exclude) if rule is not None]
        found: Dict[str, SourceFile] = {}

        for include in source.include:
            for path, _ in self._expand_include(include, rules):
                if not _matches_kind(path, kind):
                    continue
                entry = self._to_source_file(source, path, kind)
                found.setdefault(entry.show_path, entry)

        files = sorted(found.values(), key=lambda item: item.show_path)
        logger.debug("Located %d %s files for %s", len(files), kind.value, source.name)
        return files

    def show_path(self, source: ScanSource, path: Path) -> str:
        relative = self._relative(path)
        if source.format is not None:
            relative = source.format(relative)
        return f"{source.name}&{relative}"

    # ------------------------------------------------------------------
    # Internal helpers

    def _expand_include(
        self, include: str, rules: Sequence[ExcludeRule]
    ) -> Iterator[tuple[Path, Path]]:
        if _GLOB_CHARS.intersection(include):
            try:
                matches = sorted(self.root.glob(include))
            except (ValueError, NotImplementedError) as exc:
                raise LocatorError(f"Invalid include pattern {include!r}: {exc}") from exc
            for match in matches:
                if match.is_dir():
                    yield from self._walk(match, rules)
                elif match.is_file() and not self._excluded_file(match, self.root, rules):
                    yield match, self.root
            return

        target = (self.root / include).resolve()
        if not target.exists():
            raise LocatorError(f"Include path does not exist: {include}")
        if target.is_file():
            if not self._excluded_file(target, target.parent, rules):
                yield target, target.parent
            return
        yield from self._walk(target, rules)

    def _walk(self, include_root: Path, rules: Sequence[ExcludeRule]) -> Iterator[tuple[Path, Path]]:
        for dirpath, dirnames, filenames in os.walk(include_root):
            current = Path(dirpath)
            kept = []
            for name in sorted(dirnames):
                if name in _EXCLUDED_DIRS:
                    continue
                candidate = current / name
                if _is_excluded(self._rel_variants(candidate, include_root), True, rules):
                    continue
                kept.append(name)
            dirnames[:] = kept

            for filename in sorted(filenames):
                candidate = current / filename
                if self._excluded_file(candidate, include_root, rules):
                    continue
                yield candidate, include_root

    def _excluded_file(self, path: Path, include_root: Path, rules: Sequence[ExcludeRule]) -> bool:
        return _is_excluded(self._rel_variants(path, include_root), False, rules)

    def _rel_variants(self, path: Path, include_root: Path) -> List[str]:
        variants = [self._relative(path)]
        try:
            variants.append(path.relative_to(include_root).as_posix())
        except ValueError:
            pass
        return variants

    def _relative(self, path: Path) -> str:
        try:
            return path.resolve().relative_to(self.root).as_posix()
        except ValueError:
            return path.resolve().as_posix()

    def _to_source_file(self, source: ScanSource, path: Path, kind: FileKind) -> SourceFile:
        return SourceFile(
            path=str(path),
            show_path=self.show_path(source, path),
            relative_path=self._relative(path),
            kind=kind,
            project=source.name,
        )


__all__ = ["ExcludeRule", "LocatorError", "SourceLocator", "build_exclude_rule"]
