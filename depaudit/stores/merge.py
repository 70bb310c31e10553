"""Schema-driven deep merge for usage maps.

Every field of the result document has a declared merge strategy, so merging a
cached file contribution into the run totals never guesses from a field's
name or value type.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Union


class Strategy(Enum):
    SUM = "sum"
    UNION = "union"
    OVERWRITE = "overwrite"


@dataclass(frozen=True)
class Keyed:
    """A mapping with dynamic keys whose values all follow ``child``."""

    child: "Schema"


Schema = Union[Strategy, Keyed, Mapping[str, Any]]


CALL_FILE_SCHEMA: Mapping[str, Schema] = {
    "projectName": Strategy.OVERWRITE,
    "httpRepo": Strategy.OVERWRITE,
    "lines": Strategy.UNION,
    "callNum": Strategy.SUM,
}

USAGE_RECORD_SCHEMA: Mapping[str, Schema] = {
    "callNum": Strategy.SUM,
    "callOrigin": Strategy.OVERWRITE,
    "isBlack": Strategy.OVERWRITE,
    "callFiles": Keyed(CALL_FILE_SCHEMA),
}

IMPORT_FILE_SCHEMA: Mapping[str, Schema] = {
    "projectName": Strategy.OVERWRITE,
    "httpRepo": Strategy.OVERWRITE,
    "lines": Strategy.UNION,
}

IMPORT_ENTRY_SCHEMA: Mapping[str, Schema] = {
    "callOrigin": Strategy.OVERWRITE,
    "callFiles": Keyed(IMPORT_FILE_SCHEMA),
}

# module -> api name -> usage record
USAGE_BUCKET_SCHEMA = Keyed(Keyed(USAGE_RECORD_SCHEMA))
# module -> local name -> import entry
IMPORT_INDEX_SCHEMA = Keyed(Keyed(IMPORT_ENTRY_SCHEMA))
# project -> package names
GHOST_SCHEMA = Keyed(Strategy.UNION)

CONTRIBUTION_SCHEMA: Mapping[str, Schema] = {
    "importItemMap": IMPORT_INDEX_SCHEMA,
    "apiMap": USAGE_BUCKET_SCHEMA,
    "methodMap": USAGE_BUCKET_SCHEMA,
    "typeMap": USAGE_BUCKET_SCHEMA,
    "globalMap": USAGE_BUCKET_SCHEMA,
    "ghostDependenciesWarn": GHOST_SCHEMA,
}


class MergeError(ValueError):
    """Raised when a value does not have the shape its schema declares."""


def merge(target: Dict[str, Any], source: Mapping[str, Any], schema: Schema) -> Dict[str, Any]:
    """Merge ``source`` into ``target`` in place and return ``target``.

    ``source`` is never aliased into ``target``; new sub-trees are deep copied.
    """
    if isinstance(schema, Keyed):
        for key, value in source.items():
            target[key] = _merge_value(target.get(key), value, schema.child, key)
        return target
    if isinstance(schema, Mapping):
        for key, value in source.items():
            field_schema = schema.get(key, Strategy.OVERWRITE)
            target[key] = _merge_value(target.get(key), value, field_schema, key)
        return target
    raise MergeError(f"Top-level schema must describe a mapping, got {schema!r}")


def _merge_value(existing: Any, incoming: Any, schema: Schema, key: str) -> Any:
    if isinstance(schema, Strategy):
        if schema is Strategy.SUM:
            return _sum(existing, incoming, key)
        if schema is Strategy.UNION:
            return _union(existing, incoming, key)
        return copy.deepcopy(incoming)

    if not isinstance(incoming, Mapping):
        raise MergeError(f"Expected a mapping for {key!r}, got {type(incoming).__name__}")
    if existing is None:
        existing = {}
    elif not isinstance(existing, dict):
        raise MergeError(f"Cannot merge mapping into {type(existing).__name__} at {key!r}")
    return merge(existing, incoming, schema)


def _sum(existing: Any, incoming: Any, key: str) -> int:
    if not isinstance(incoming, int) or isinstance(incoming, bool):
        raise MergeError(f"Expected an integer for {key!r}, got {incoming!r}")
    if existing is None:
        return incoming
    return int(existing) + incoming


def _union(existing: Any, incoming: Any, key: str) -> List[Any]:
    if not isinstance(incoming, list):
        raise MergeError(f"Expected a list for {key!r}, got {type(incoming).__name__}")
    result = list(existing) if isinstance(existing, list) else []
    for item in incoming:
        if item not in result:
            result.append(copy.deepcopy(item))
    return result


__all__ = [
    "CALL_FILE_SCHEMA",
    "CONTRIBUTION_SCHEMA",
    "GHOST_SCHEMA",
    "IMPORT_ENTRY_SCHEMA",
    "IMPORT_INDEX_SCHEMA",
    "Keyed",
    "MergeError",
    "Strategy",
    "USAGE_BUCKET_SCHEMA",
    "USAGE_RECORD_SCHEMA",
    "merge",
]
