"""Tests for import binding extraction."""

from __future__ import annotations

from typing import Dict

from depaudit.aggregator import CallRecordAggregator
from depaudit.bindings import BindingExtractor
from depaudit.ghost import GhostDependencyDetector
from depaudit.models import ModuleType, ResolvedModule
from depaudit.parsing.modules import package_name_of
from depaudit.parsing.provider import SyntaxProvider


class FakeResolver:
    """Resolves by a fixed table; everything else is an undeclared package."""

    def __init__(self, table: Dict[str, ModuleType]) -> None:
        self.table = table
        self.calls: list[str] = []

    def resolve(self, specifier: str) -> ResolvedModule:
        self.calls.append(specifier)
        module_type = self.table.get(specifier, ModuleType.UNKNOWN)
        return ResolvedModule(
            specifier=specifier,
            resolved=specifier,
            module_type=module_type,
            package_name=package_name_of(specifier) if module_type is not ModuleType.NODE_MODULE else None,
        )


SOURCE = """
import React, { useState as useLocalState, useEffect } from 'react'
import * as fs from 'fs'
import helper from './helper'
import type { Options } from 'lib-types'
import 'side-effect'
import legacy = require('legacy')
"""


def test_extract_records_every_binding_form(syntax: SyntaxProvider) -> None:
    parsed = syntax.parse_text(SOURCE, "typescript")
    resolver = FakeResolver(
        {
            "react": ModuleType.NODE_PACKAGE,
            "fs": ModuleType.NODE_MODULE,
            "./helper": ModuleType.LOCAL_FILE,
        }
    )
    aggregator = CallRecordAggregator()

    bindings = BindingExtractor(resolver).extract(
        parsed, aggregator, file="app&src/a.ts", project="app", repo_hint="https://repo"
    )

    summary = [(b.module, b.local_name, b.origin) for b in bindings]
    assert summary == [
        ("react", "React", None),
        ("react", "useLocalState", "useState"),
        ("react", "useEffect", None),
        ("fs", "fs", "*"),
        ("lib-types", "Options", None),
        ("legacy", "legacy", None),
    ]
    assert all(b.line >= 1 for b in bindings)
    assert bindings[0].line == 2

    index = aggregator.buckets.import_items
    assert "./helper" not in index
    assert index["react"]["useLocalState"]["callOrigin"] == "useState"
    assert index["react"]["React"]["callFiles"]["app&src/a.ts"] == {
        "projectName": "app",
        "httpRepo": "https://repo",
        "lines": [2],
    }


def test_extract_honours_analysis_target(syntax: SyntaxProvider) -> None:
    parsed = syntax.parse_text(SOURCE, "typescript")
    resolver = FakeResolver({"react": ModuleType.NODE_PACKAGE, "fs": ModuleType.NODE_MODULE})
    aggregator = CallRecordAggregator()

    bindings = BindingExtractor(resolver, analysis_target=["fs"]).extract(
        parsed, aggregator, file="app&a.ts", project="app"
    )

    assert {b.module for b in bindings} == {"fs"}
    assert list(aggregator.buckets.import_items) == ["fs"]


def test_extract_flags_ghosts_including_side_effect_imports(syntax: SyntaxProvider) -> None:
    parsed = syntax.parse_text(SOURCE, "typescript")
    resolver = FakeResolver(
        {
            "react": ModuleType.NODE_PACKAGE,
            "fs": ModuleType.NODE_MODULE,
            "./helper": ModuleType.LOCAL_FILE,
        }
    )
    aggregator = CallRecordAggregator()
    ghost = GhostDependencyDetector("app", frozenset({"react"}))

    BindingExtractor(resolver, ghost=ghost).extract(parsed, aggregator, file="app&a.ts", project="app")

    assert aggregator.buckets.ghosts == {"app": ["lib-types", "side-effect", "legacy"]}
