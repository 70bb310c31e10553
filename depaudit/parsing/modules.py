"""Module specifier classification: aliases, built-ins and node_modules lookup."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, Iterable, Optional, Protocol

from ..logging import get_logger
from ..models import ModuleType, PathAliases, ResolvedModule

logger = get_logger("modules")

NODE_BUILTINS = frozenset(
    {
        "assert", "assert/strict", "async_hooks", "buffer", "child_process", "cluster",
        "console", "constants", "crypto", "dgram", "diagnostics_channel", "dns",
        "dns/promises", "domain", "events", "fs", "fs/promises", "http", "http2", "https",
        "inspector", "module", "net", "os", "path", "path/posix", "path/win32",
        "perf_hooks", "process", "punycode", "querystring", "readline",
        "readline/promises", "repl", "stream", "stream/consumers", "stream/promises",
        "stream/web", "string_decoder", "sys", "timers", "timers/promises", "tls",
        "trace_events", "tty", "url", "util", "util/types", "v8", "vm", "wasi",
        "worker_threads", "zlib", "test", "sqlite", "sea",
    }
)

_LOCAL_PREFIXES = ("src/", "app/", "libs/", "packages/")
_SOURCE_EXTENSIONS = ("", ".ts", ".tsx", ".d.ts", ".js", ".jsx", ".mjs", ".cjs", ".vue", ".json")
_INDEX_FILES = ("index.ts", "index.tsx", "index.js", "index.jsx", "index.vue")
_NODE_MODULES = "node_modules"


class ModuleResolver(Protocol):
    """Classifies a module specifier for one project."""

    def resolve(self, specifier: str) -> ResolvedModule:
        ...


def package_name_of(specifier: str) -> Optional[str]:
    """Return the publishable package part of a bare specifier."""
    if not specifier or specifier.startswith((".", "/")):
        return None
    parts = specifier.split("/")
    if specifier.startswith("@"):
        if len(parts) < 2 or not parts[1]:
            return None
        return "/".join(parts[:2])
    return parts[0]


def package_name_from_path(path: str) -> Optional[str]:
    """Return the package owning ``path``, taken after the last node_modules segment.

    This strips package-manager virtual stores such as
    ``node_modules/.pnpm/lodash@4.17.21/node_modules/lodash``.
    """
    parts = Path(path).as_posix().split("/")
    indexes = [index for index, part in enumerate(parts) if part == _NODE_MODULES]
    if not indexes:
        return None
    rest = parts[indexes[-1] + 1 :]
    if not rest or not rest[0]:
        return None
    if rest[0].startswith("@"):
        return "/".join(rest[:2]) if len(rest) >= 2 else None
    return rest[0]


def types_package_for(package: str) -> str:
    """``@scope/name`` becomes ``@types/scope__name``; ``name`` becomes ``@types/name``."""
    if package.startswith("@"):
        scope, _, name = package[1:].partition("/")
        return f"@types/{scope}__{name}"
    return f"@types/{package}"


def runtime_package_for(types_package: str) -> str:
    """Inverse of :func:`types_package_for`."""
    name = types_package[len("@types/") :]
    if "__" in name:
        scope, _, rest = name.partition("__")
        return f"@{scope}/{rest}"
    return name


def is_builtin(specifier: str) -> bool:
    if specifier.startswith("node:"):
        return True
    return specifier in NODE_BUILTINS


def expand_alias(specifier: str, aliases: Optional[PathAliases]) -> Optional[str]:
    """Return the alias target for ``specifier`` or None when no pattern matches.

    The first matching pattern wins; its first target is used with the ``*``
    capture substituted in, and a trailing ``/index`` is dropped.
    """
    if aliases is None or not aliases.paths:
        return None
    for pattern, targets in aliases.paths.items():
        if not targets:
            continue
        regex = "^" + re.escape(pattern).replace(r"\*", "(.*)") + "$"
        match = re.match(regex, specifier)
        if match is None:
            continue
        capture = match.group(1) if match.groups() else ""
        target = targets[0].replace("*", capture)
        if target.endswith("/index"):
            target = target[: -len("/index")]
        return target
    return None


class NodeModuleResolver:
    """Node-style resolution for one project, memoised per specifier."""

    def __init__(
        self,
        project_root: Path,
        *,
        aliases: Optional[PathAliases] = None,
        declared: Iterable[str] = (),
    ) -> None:
        self.project_root = project_root.resolve()
        self.aliases = aliases
        self.declared = frozenset(declared)
        self._memo: Dict[str, ResolvedModule] = {}

    def resolve(self, specifier: str) -> ResolvedModule:
        cached = self._memo.get(specifier)
        if cached is None:
            cached = self._resolve(specifier)
            self._memo[specifier] = cached
            logger.debug("Resolved %s as %s", specifier, cached.module_type.name)
        return cached

    def _resolve(self, specifier: str) -> ResolvedModule:
        if not specifier:
            return ResolvedModule(specifier, specifier, ModuleType.UNKNOWN)

        expanded = expand_alias(specifier, self.aliases)
        if expanded is not None:
            if _NODE_MODULES + "/" in expanded:
                return ResolvedModule(
                    specifier,
                    expanded,
                    ModuleType.NODE_PACKAGE,
                    package_name=package_name_from_path(expanded),
                )
            return ResolvedModule(specifier, expanded, ModuleType.LOCAL_FILE)

        if specifier.startswith((".", "/")) or re.match(r"^[A-Za-z]:[\\/]", specifier):
            return ResolvedModule(specifier, specifier, ModuleType.LOCAL_FILE)

        if is_builtin(specifier):
            return ResolvedModule(specifier, specifier, ModuleType.NODE_MODULE)

        if self._under_base_url(specifier):
            return ResolvedModule(specifier, specifier, ModuleType.LOCAL_FILE)

        package = package_name_of(specifier)
        if package is None:
            return ResolvedModule(specifier, specifier, ModuleType.UNKNOWN)

        installed = self._find_installed(package)
        if installed is not None:
            return ResolvedModule(
                specifier,
                specifier,
                ModuleType.NODE_PACKAGE,
                package_name=package_name_from_path(installed) or package,
                path=installed,
            )
        types_path = self._find_installed(types_package_for(package))
        if types_path is not None:
            return ResolvedModule(
                specifier,
                specifier,
                ModuleType.NODE_PACKAGE,
                package_name=package_name_from_path(types_path) or types_package_for(package),
                path=types_path,
            )
        if package in self.declared:
            return ResolvedModule(specifier, specifier, ModuleType.NODE_PACKAGE, package_name=package)
        return ResolvedModule(specifier, specifier, ModuleType.UNKNOWN, package_name=package)

    def _find_installed(self, package: str) -> Optional[str]:
        current = self.project_root
        while True:
            candidate = current / _NODE_MODULES / package
            if candidate.exists():
                return Path(os.path.realpath(candidate)).as_posix()
            if current.parent == current:
                return None
            current = current.parent

    def _under_base_url(self, specifier: str) -> bool:
        if self.aliases is None:
            return False
        if self.aliases.paths and specifier.startswith(_LOCAL_PREFIXES):
            return True
        if self.aliases.base_url is None:
            return False
        base = Path(self.aliases.base_url) / specifier
        if any(Path(f"{base}{suffix}").is_file() for suffix in _SOURCE_EXTENSIONS):
            return True
        return base.is_dir() and any((base / name).is_file() for name in _INDEX_FILES)


__all__ = [
    "ModuleResolver",
    "NODE_BUILTINS",
    "NodeModuleResolver",
    "expand_alias",
    "is_builtin",
    "package_name_from_path",
    "package_name_of",
    "runtime_package_for",
    "types_package_for",
]
