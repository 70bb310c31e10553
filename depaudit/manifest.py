"""Readers for package.json manifests and tsconfig path aliases."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from .logging import get_logger
from .models import PathAliases, ProjectManifest

logger = get_logger("manifest")

_MAX_EXTENDS_DEPTH = 8
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


class ManifestError(RuntimeError):
    """Raised when a manifest or tsconfig file cannot be read."""


def load_package_json(path: Path, *, project: str) -> ProjectManifest:
    """Return the declared dependencies of ``path``."""
    data = _read_json(path, allow_comments=False)
    if not isinstance(data, dict):
        raise ManifestError(f"{path} does not contain a JSON object")
    return ProjectManifest(
        name=project,
        dependencies=_string_map(data.get("dependencies")),
        dev_dependencies=_string_map(data.get("devDependencies")),
    )


def load_path_aliases(path: Path) -> PathAliases:
    """Return ``compilerOptions.paths`` of a tsconfig, following relative ``extends``."""
    return _load_aliases(path.resolve(), seen=set(), depth=0)


def _load_aliases(path: Path, *, seen: Set[Path], depth: int) -> PathAliases:
    if path in seen or depth > _MAX_EXTENDS_DEPTH:
        raise ManifestError(f"Circular or too deep tsconfig extends chain at {path}")
    seen.add(path)

    data = _read_json(path, allow_comments=True)
    if not isinstance(data, dict):
        raise ManifestError(f"{path} does not contain a JSON object")

    aliases = PathAliases()
    parent = data.get("extends")
    if isinstance(parent, str) and parent.startswith("."):
        parent_path = (path.parent / parent).resolve()
        if parent_path.suffix != ".json":
            parent_path = parent_path.with_name(parent_path.name + ".json")
        aliases = _load_aliases(parent_path, seen=seen, depth=depth + 1)

    options = data.get("compilerOptions")
    if not isinstance(options, dict):
        return aliases

    base_url = options.get("baseUrl")
    if isinstance(base_url, str):
        aliases.base_url = str((path.parent / base_url).resolve())

    paths = options.get("paths")
    if isinstance(paths, dict):
        aliases.paths = {
            str(alias): [str(item) for item in targets if isinstance(item, str)]
            for alias, targets in paths.items()
            if isinstance(targets, list)
        }
    return aliases


def strip_json_comments(text: str) -> str:
    """Remove ``//`` and ``/* */`` comments and trailing commas outside strings."""
    result: List[str] = []
    index = 0
    length = len(text)
    in_string = False
    while index < length:
        char = text[index]
        if in_string:
            result.append(char)
            if char == "\\" and index + 1 < length:
                result.append(text[index + 1])
                index += 2
                continue
            if char == '"':
                in_string = False
            index += 1
            continue
        if char == '"':
            in_string = True
            result.append(char)
            index += 1
            continue
        if text.startswith("//", index):
            end = text.find("\n", index)
            index = length if end == -1 else end
            continue
        if text.startswith("/*", index):
            end = text.find("*/", index + 2)
            index = length if end == -1 else end + 2
            continue
        result.append(char)
        index += 1
    return _TRAILING_COMMA.sub(r"\1", "".join(result))


def _read_json(path: Path, *, allow_comments: bool) -> Any:
    try:
        text = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestError(f"Unable to read {path}: {exc}") from exc
    if allow_comments:
        text = strip_json_comments(text)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Invalid JSON in {path}: {exc}") from exc


def _string_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(key): str(item) for key, item in value.items() if isinstance(key, str)}


def find_package_json(start: Path, *, stop: Optional[Path] = None) -> Optional[Path]:
    """Walk upward from ``start`` to the nearest package.json."""
    current = start if start.is_dir() else start.parent
    while True:
        candidate = current / "package.json"
        if candidate.is_file():
            return candidate
        if stop is not None and current == stop:
            return None
        if current.parent == current:
            return None
        current = current.parent


__all__ = [
    "ManifestError",
    "find_package_json",
    "load_package_json",
    "load_path_aliases",
    "strip_json_comments",
]
