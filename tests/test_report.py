"""Tests for the result document and Markdown summary writers."""

from __future__ import annotations

from pathlib import Path

from depaudit.aggregator import UsageBuckets
from depaudit.engine import AnalysisResult
from depaudit.models import DiagnosisInfo, ScanSource
from depaudit.report import load_document, render_summary, top_usages, write_document


def _entry(calls: int, files: int = 1, is_black: bool = False) -> dict:
    return {
        "callNum": calls,
        "callOrigin": None,
        "isBlack": is_black,
        "callFiles": {
            f"app&src/f{index}.ts": {"projectName": "app", "httpRepo": "", "lines": [1], "callNum": 1}
            for index in range(files)
        },
    }


def _result() -> AnalysisResult:
    buckets = UsageBuckets(
        import_items={"lodash": {"_": {"callOrigin": None, "callFiles": {}}}},
        method={
            "lodash": {"_.map": _entry(5, files=2), "_.debounce": _entry(1)},
            "fs": {"fs.readFileSync": _entry(2, is_black=True)},
        },
        type={"lib": {"Options": _entry(1)}},
        ghosts={"app": ["left-pad"]},
        diagnostics=[DiagnosisInfo(project_name="app", file="app&src/bad.ts", stack="Traceback\nboom")],
    )
    return AnalysisResult(
        buckets=buckets,
        version_map={"app": {"lodash": "^4.17.21"}},
        scan_sources=[ScanSource(name="app", include=("src",))],
        files_analyzed=3,
    )


def test_top_usages_orders_by_call_count() -> None:
    rows = top_usages(_result().buckets.method, limit=2)

    assert [(row.module, row.api, row.calls, row.files) for row in rows] == [
        ("lodash", "_.map", 5, 2),
        ("fs", "fs.readFileSync", 2, 1),
    ]


def test_write_document_round_trips(tmp_path: Path) -> None:
    path = write_document(_result(), tmp_path / "out" / "result.json")

    document = load_document(path)

    assert document["methodMap"]["lodash"]["_.map"]["callNum"] == 5
    assert document["ghostDependenciesWarn"] == {"app": ["left-pad"]}
    assert document["diagnosisInfo"][0]["file"] == "app&src/bad.ts"
    assert document["scanSource"][0]["include"] == ["src"]


def test_render_summary_lists_findings() -> None:
    summary = render_summary(_result())

    assert "_.map" in summary
    assert "fs.readFileSync" in summary
    assert "left-pad" in summary
    assert "app&src/bad.ts" in summary
    assert "Options" in summary


def test_render_summary_prefers_override_templates(tmp_path: Path) -> None:
    (tmp_path / "summary.md.j2").write_text("projects: {{ projects | join(',') }}\n", encoding="utf-8")

    assert render_summary(_result(), templates_dir=tmp_path) == "projects: app"
