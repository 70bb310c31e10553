"""Configuration loading for depaudit (.depaudit.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import yaml

from .models import ScanSource

CONFIG_FILENAME = ".depaudit.yml"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class ClassifierConfig:
    """Plugin classifier selection."""

    enabled: List[str] = field(default_factory=list)


@dataclass
class DepAuditConfig:
    """Represents the settings defined in .depaudit.yml."""

    root: Path
    scan_sources: List[ScanSource] = field(default_factory=list)
    analysis_target: List[str] = field(default_factory=list)
    black_list: List[str] = field(default_factory=list)
    global_analysis: bool = False
    global_apis: List[str] = field(default_factory=list)
    scan_vue: bool = False
    incremental: bool = False
    cache_dir: Path = Path(".depaudit")
    file_timeout: float = 30.0
    output: Path = Path("deps-analysis-result.json")
    summary: Optional[Path] = None
    classifiers: ClassifierConfig = field(default_factory=ClassifierConfig)

    def resolve(self, relative: str | Path) -> Path:
        """Resolve ``relative`` against the configuration root."""
        path = Path(relative).expanduser()
        return path if path.is_absolute() else self.root / path

    @property
    def cache_path(self) -> Path:
        return self.resolve(self.cache_dir)


def load_config(config_path: Path) -> DepAuditConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return DepAuditConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    return config_from_mapping(data, root=root)


def config_from_mapping(data: Dict[str, Any], *, root: Path) -> DepAuditConfig:
    """Build a configuration from an already-parsed mapping."""
    sources = _parse_scan_sources(data.get("scan_source"))

    config = DepAuditConfig(root=root, scan_sources=sources)
    config.analysis_target = _as_str_list(data.get("analysis_target"))
    config.black_list = _as_str_list(data.get("black_list"))
    config.global_analysis = _as_bool(data.get("global_analysis")) or False
    config.global_apis = _as_str_list(data.get("global_apis"))
    config.scan_vue = _as_bool(data.get("scan_vue")) or False
    config.incremental = _as_bool(data.get("incremental")) or False

    cache_dir = _as_str(data.get("cache_dir"))
    if cache_dir:
        config.cache_dir = Path(cache_dir)

    timeout = _as_float(data.get("file_timeout"))
    if timeout is not None:
        if timeout <= 0:
            raise ConfigError("file_timeout must be a positive number of seconds")
        config.file_timeout = timeout

    output = _as_str(data.get("output"))
    if output:
        config.output = Path(output)
    summary = _as_str(data.get("summary"))
    if summary:
        config.summary = Path(summary)

    classifier_data = _as_dict(data.get("classifiers"))
    if classifier_data:
        config.classifiers.enabled = _as_str_list(classifier_data.get("enabled"))

    return config


def _parse_scan_sources(value: Any) -> List[ScanSource]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError("scan_source must be a list of projects")

    sources: List[ScanSource] = []
    seen: set[str] = set()
    for index, raw in enumerate(value):
        if not isinstance(raw, dict):
            raise ConfigError(f"scan_source[{index}] must be a mapping")
        name = _as_str(raw.get("name"))
        if not name:
            raise ConfigError(f"scan_source[{index}] is missing a name")
        if "&" in name:
            raise ConfigError(f"scan_source name {name!r} may not contain '&'")
        if name in seen:
            raise ConfigError(f"Duplicate scan_source name: {name}")
        include = _as_str_list(raw.get("include"))
        if not include:
            raise ConfigError(f"scan_source {name!r} needs at least one include path")
        seen.add(name)
        sources.append(
            ScanSource(
                name=name,
                include=tuple(include),
                exclude=tuple(_as_str_list(raw.get("exclude"))),
                package_json=_as_str(raw.get("package_json")),
                tsconfig=_as_str(raw.get("tsconfig")),
                http_repo=_as_str(raw.get("http_repo")) or "",
                format=_build_formatter(
                    _as_str(raw.get("strip_prefix")), _as_str(raw.get("add_prefix"))
                ),
            )
        )
    return sources


def _build_formatter(
    strip_prefix: Optional[str], add_prefix: Optional[str]
) -> Optional[Callable[[str], str]]:
    if not strip_prefix and not add_prefix:
        return None

    def _format(relative_path: str) -> str:
        result = relative_path
        if strip_prefix and result.startswith(strip_prefix):
            result = result[len(strip_prefix) :]
        if add_prefix:
            result = f"{add_prefix}{result}"
        return result

    return _format


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ClassifierConfig",
    "ConfigError",
    "DepAuditConfig",
    "config_from_mapping",
    "load_config",
]
