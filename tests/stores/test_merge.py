"""Tests for the schema-driven merge."""

from __future__ import annotations

import pytest

from depaudit.stores.merge import (
    CONTRIBUTION_SCHEMA,
    GHOST_SCHEMA,
    USAGE_BUCKET_SCHEMA,
    Keyed,
    MergeError,
    Strategy,
    merge,
)


def _record(lines, calls, origin=None, file="app&a.ts"):
    return {
        "callNum": calls,
        "callOrigin": origin,
        "isBlack": False,
        "callFiles": {file: {"projectName": "app", "httpRepo": "", "lines": lines, "callNum": calls}},
    }


def test_merge_sums_counts_and_unions_lines() -> None:
    target = {"lodash": {"_.map": _record([1, 2], 2)}}
    source = {"lodash": {"_.map": _record([2, 5], 3)}}

    merge(target, source, USAGE_BUCKET_SCHEMA)

    record = target["lodash"]["_.map"]
    assert record["callNum"] == 5
    assert record["callFiles"]["app&a.ts"]["lines"] == [1, 2, 5]
    assert record["callFiles"]["app&a.ts"]["callNum"] == 5


def test_merge_overwrites_scalars_and_adds_new_keys() -> None:
    target = {"lodash": {"_.map": _record([1], 1, origin=None)}}
    source = {
        "lodash": {"_.map": _record([1], 1, origin="map")},
        "react": {"useState": _record([4], 1, file="app&b.ts")},
    }

    merge(target, source, USAGE_BUCKET_SCHEMA)

    assert target["lodash"]["_.map"]["callOrigin"] == "map"
    assert target["react"]["useState"]["callFiles"]["app&b.ts"]["lines"] == [4]


def test_merge_never_aliases_source() -> None:
    source = {"lodash": {"_.map": _record([1], 1)}}
    target: dict = {}

    merge(target, source, USAGE_BUCKET_SCHEMA)
    target["lodash"]["_.map"]["callFiles"]["app&a.ts"]["lines"].append(99)

    assert source["lodash"]["_.map"]["callFiles"]["app&a.ts"]["lines"] == [1]


def test_merge_ghost_lists_deduplicate() -> None:
    target = {"app": ["left-pad"]}

    merge(target, {"app": ["left-pad", "moment"], "admin": ["axios"]}, GHOST_SCHEMA)

    assert target == {"app": ["left-pad", "moment"], "admin": ["axios"]}


def test_merge_rejects_shape_mismatch() -> None:
    with pytest.raises(MergeError):
        merge({"count": 1}, {"count": "two"}, {"count": Strategy.SUM})
    with pytest.raises(MergeError):
        merge({}, {"a": [1]}, Keyed({"x": Strategy.SUM}))


def test_contribution_schema_covers_document_buckets() -> None:
    assert set(CONTRIBUTION_SCHEMA) == {
        "importItemMap",
        "apiMap",
        "methodMap",
        "typeMap",
        "globalMap",
        "ghostDependenciesWarn",
    }
