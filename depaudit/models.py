"""Core data models shared across depaudit components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

Span = Tuple[int, int]

GLOBAL_MODULE = "global"


class ModuleType(Enum):
    """How a module specifier resolved for its owning project."""

    LOCAL_FILE = "local_file"
    NODE_PACKAGE = "node_package"
    NODE_MODULE = "node_module"
    UNKNOWN = "unknown"


class Bucket(Enum):
    """Usage buckets; the value is the key used in the result document."""

    METHOD = "methodMap"
    TYPE = "typeMap"
    API = "apiMap"
    GLOBAL = "globalMap"


class FileKind(Enum):
    SCRIPT = "script"
    TEMPLATE = "template"


@dataclass(frozen=True)
class ScanSource:
    """One project (or sub-tree) to analyse."""

    name: str
    include: Tuple[str, ...]
    exclude: Tuple[str, ...] = ()
    package_json: Optional[str] = None
    tsconfig: Optional[str] = None
    http_repo: str = ""
    format: Optional[Callable[[str], str]] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "include": list(self.include),
            "exclude": list(self.exclude),
            "httpRepo": self.http_repo,
            "packageJsonPath": self.package_json,
            "tsConfigPath": self.tsconfig,
        }


@dataclass(frozen=True)
class SourceFile:
    """A located file plus its external identity."""

    path: str
    show_path: str
    relative_path: str
    kind: FileKind
    project: str


@dataclass(frozen=True)
class ResolvedModule:
    """Outcome of resolving one module specifier."""

    specifier: str
    resolved: str
    module_type: ModuleType
    package_name: Optional[str] = None
    path: Optional[str] = None


@dataclass(frozen=True)
class ImportBinding:
    """A local name introduced by an import declaration."""

    module: str
    local_name: str
    origin: Optional[str]
    declaration_span: Span
    identifier_span: Span
    line: int
    resolution: ResolvedModule


@dataclass
class UsageEvent:
    """A single observed use of a tracked name."""

    module: str
    api_name: str
    node: Any
    depth: int
    file: str
    project: str
    repo_hint: str
    line: int
    binding: Optional[ImportBinding] = None

    @property
    def origin(self) -> Optional[str]:
        return self.binding.origin if self.binding is not None else None


@dataclass(frozen=True)
class FileVisit:
    """One walked file, handed to classifiers once traversal is done."""

    file: str
    project: str
    repo_hint: str
    root: Any
    source: bytes
    line_offset: int
    bindings: Tuple[ImportBinding, ...] = ()


@dataclass
class DiagnosisInfo:
    """A per-file or per-event failure collected instead of aborting the run."""

    project_name: str
    file: str
    stack: str
    line: Optional[int] = None
    dep_name: Optional[str] = None
    api_name: Optional[str] = None
    http_repo: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "projectName": self.project_name,
            "file": self.file,
            "stack": self.stack,
        }
        if self.line is not None:
            data["line"] = self.line
        if self.dep_name is not None:
            data["depName"] = self.dep_name
        if self.api_name is not None:
            data["apiName"] = self.api_name
        if self.http_repo is not None:
            data["httpRepo"] = self.http_repo
        return data


@dataclass(frozen=True)
class FileFingerprint:
    """Content identity of a scanned file."""

    path: str
    hash: str
    size: int
    mtime_ns: int


@dataclass
class ProjectManifest:
    """Declared dependencies of one project."""

    name: str
    dependencies: Dict[str, str] = field(default_factory=dict)
    dev_dependencies: Dict[str, str] = field(default_factory=dict)

    @property
    def declared(self) -> Dict[str, str]:
        merged = dict(self.dev_dependencies)
        merged.update(self.dependencies)
        return merged


@dataclass
class PathAliases:
    """tsconfig ``compilerOptions.paths`` resolved against ``baseUrl``."""

    base_url: Optional[str] = None
    paths: Dict[str, List[str]] = field(default_factory=dict)
