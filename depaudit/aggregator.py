"""Call record aggregation into the typed usage buckets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping
from urllib.parse import quote

from .models import Bucket, DiagnosisInfo, ImportBinding, UsageEvent
from .stores.merge import CONTRIBUTION_SCHEMA, merge

UsageMap = Dict[str, Dict[str, Dict[str, Any]]]


def deep_link(repo_hint: str, show_path: str, line: int | None = None) -> str:
    """Build ``{repoHint}/{urlEncodedRelativePath}#L{line}`` for a show path."""
    _, _, relative = show_path.partition("&")
    relative = relative or show_path
    base = repo_hint.rstrip("/")
    link = f"{base}/{quote(relative)}" if base else quote(relative)
    if line is not None:
        link = f"{link}#L{line}"
    return link


@dataclass
class UsageBuckets:
    """One named field per bucket of the result document."""

    import_items: UsageMap = field(default_factory=dict)
    api: UsageMap = field(default_factory=dict)
    method: UsageMap = field(default_factory=dict)
    type: UsageMap = field(default_factory=dict)
    global_: UsageMap = field(default_factory=dict)
    ghosts: Dict[str, List[str]] = field(default_factory=dict)
    diagnostics: List[DiagnosisInfo] = field(default_factory=list)

    def usage_map(self, bucket: Bucket) -> UsageMap:
        if bucket is Bucket.METHOD:
            return self.method
        if bucket is Bucket.TYPE:
            return self.type
        if bucket is Bucket.API:
            return self.api
        if bucket is Bucket.GLOBAL:
            return self.global_
        raise ValueError(f"Unknown bucket: {bucket!r}")

    def usage_maps(self) -> Dict[Bucket, UsageMap]:
        return {bucket: self.usage_map(bucket) for bucket in Bucket}


class CallRecordAggregator:
    """The only writer of :class:`UsageBuckets`."""

    def __init__(self, buckets: UsageBuckets | None = None) -> None:
        self.buckets = buckets if buckets is not None else UsageBuckets()

    def record(self, bucket: Bucket, event: UsageEvent) -> None:
        apis = self.buckets.usage_map(bucket).setdefault(event.module, {})
        entry = apis.get(event.api_name)
        if entry is None:
            entry = {
                "callNum": 0,
                "callOrigin": event.origin,
                "callFiles": {},
                "isBlack": False,
            }
            apis[event.api_name] = entry
        entry["callNum"] += 1

        call_file = entry["callFiles"].get(event.file)
        if call_file is None:
            call_file = {
                "projectName": event.project,
                "httpRepo": event.repo_hint,
                "lines": [],
                "callNum": 0,
            }
            entry["callFiles"][event.file] = call_file
        call_file["callNum"] += 1
        if event.line not in call_file["lines"]:
            call_file["lines"].append(event.line)

    def register_import(
        self, binding: ImportBinding, *, file: str, project: str, repo_hint: str
    ) -> None:
        names = self.buckets.import_items.setdefault(binding.module, {})
        entry = names.get(binding.local_name)
        if entry is None:
            entry = {"callOrigin": binding.origin, "callFiles": {}}
            names[binding.local_name] = entry
        call_file = entry["callFiles"].setdefault(
            file, {"projectName": project, "httpRepo": repo_hint, "lines": []}
        )
        if binding.line not in call_file["lines"]:
            call_file["lines"].append(binding.line)

    def flag_ghost(self, project: str, package: str) -> bool:
        """Add ``package`` to the project's ghost list; return False when already present."""
        flagged = self.buckets.ghosts.setdefault(project, [])
        if package in flagged:
            return False
        flagged.append(package)
        return True

    def diagnose(self, info: DiagnosisInfo) -> None:
        self.buckets.diagnostics.append(info)

    def absorb(self, contribution: Mapping[str, Any]) -> None:
        """Merge a per-file snapshot (fresh or cached) into these buckets."""
        target = self.snapshot_view()
        merge(target, contribution, CONTRIBUTION_SCHEMA)

    def snapshot(self) -> Dict[str, Any]:
        """A JSON-serialisable copy of everything recorded so far."""
        return merge({}, self.snapshot_view(), CONTRIBUTION_SCHEMA)

    def snapshot_view(self) -> Dict[str, Any]:
        # Keys alias the live maps so merging into the view updates the buckets.
        return {
            "importItemMap": self.buckets.import_items,
            "apiMap": self.buckets.api,
            "methodMap": self.buckets.method,
            "typeMap": self.buckets.type,
            "globalMap": self.buckets.global_,
            "ghostDependenciesWarn": self.buckets.ghosts,
        }


__all__ = ["CallRecordAggregator", "UsageBuckets", "deep_link"]
