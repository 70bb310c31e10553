"""Writers for the JSON result document and the Markdown summary."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from jinja2 import Environment, FileSystemLoader

from .engine import AnalysisResult
from .models import Bucket

_TEMPLATE_NAME = "summary.md.j2"
_DEFAULT_TOP = 10


@dataclass
class UsageRow:
    module: str
    api: str
    calls: int
    files: int
    is_black: bool


def write_document(result: AnalysisResult, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(result.to_document(), indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
    )
    return path


def load_document(path: Path) -> Dict[str, Any]:
    """Read a previously written result document."""
    return json.loads(path.read_text(encoding="utf-8"))


def top_usages(usage_map: Mapping[str, Mapping[str, Any]], limit: int = _DEFAULT_TOP) -> List[UsageRow]:
    rows = [
        UsageRow(
            module=module,
            api=api,
            calls=int(entry.get("callNum", 0)),
            files=len(entry.get("callFiles", {})),
            is_black=bool(entry.get("isBlack")),
        )
        for module, apis in usage_map.items()
        for api, entry in apis.items()
    ]
    rows.sort(key=lambda row: (-row.calls, row.module, row.api))
    return rows[:limit]


def render_summary(
    result: AnalysisResult,
    *,
    templates_dir: Optional[Path] = None,
    limit: int = _DEFAULT_TOP,
) -> str:
    buckets = result.buckets
    sections = [
        ("Method calls", top_usages(buckets.usage_map(Bucket.METHOD), limit)),
        ("Type references", top_usages(buckets.usage_map(Bucket.TYPE), limit)),
        ("Other API access", top_usages(buckets.usage_map(Bucket.API), limit)),
        ("Global APIs", top_usages(buckets.usage_map(Bucket.GLOBAL), limit)),
    ]
    blacklisted = [
        row
        for usage_map in buckets.usage_maps().values()
        for row in top_usages(usage_map, limit=10**6)
        if row.is_black
    ]
    env = _create_env(templates_dir)
    template = env.get_template(_TEMPLATE_NAME)
    return template.render(
        projects=[source.name for source in result.scan_sources],
        imported_modules=sorted(buckets.import_items),
        sections=sections,
        blacklisted=blacklisted,
        ghosts={project: sorted(names) for project, names in sorted(buckets.ghosts.items())},
        diagnostics=buckets.diagnostics,
        files_analyzed=result.files_analyzed,
        files_from_cache=result.files_from_cache,
        skipped_sources=result.skipped_sources,
    )


def write_summary(result: AnalysisResult, path: Path, *, templates_dir: Optional[Path] = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_summary(result, templates_dir=templates_dir), encoding="utf-8")
    return path


def _create_env(templates_dir: Path | None) -> Environment:
    directories = []
    if templates_dir:
        directories.append(str(templates_dir))
    directories.append(str(Path(__file__).with_name("templates")))
    loader = FileSystemLoader(directories)
    return Environment(loader=loader, autoescape=False, trim_blocks=True, lstrip_blocks=True)


__all__ = ["load_document", "render_summary", "top_usages", "write_document", "write_summary"]
