"""Usage classifiers and plugin discovery."""

from __future__ import annotations

from dataclasses import dataclass
from importlib import metadata
from typing import Iterable, List, Sequence, Set

from ..models import Bucket
from .base import Classifier
from .builtin import CatchAllClassifier, GlobalClassifier, MethodClassifier, TypeClassifier
from .pipeline import ClassifierPipeline

_ENTRY_POINT_GROUP = "depaudit.classifiers"


@dataclass
class Pipelines:
    """The two pipelines a run dispatches into."""

    target: ClassifierPipeline
    global_: ClassifierPipeline


def builtin_pipelines() -> Pipelines:
    return Pipelines(
        target=ClassifierPipeline([MethodClassifier(), TypeClassifier(), CatchAllClassifier()]),
        global_=ClassifierPipeline([GlobalClassifier()]),
    )


def discover_pipelines(enabled: Sequence[str] | None = None) -> Pipelines:
    """Return the pipelines with plugin classifiers ahead of the built-ins.

    ``enabled`` restricts which plugins load; the built-ins always run.
    """
    enabled_set: Set[str] | None = None
    if enabled:
        enabled_set = {name.lower() for name in enabled}

    plugins: List[Classifier] = []
    seen: Set[str] = set()
    for entry in _iter_entry_points():
        key = entry.name.lower()
        if key in seen:
            continue
        if enabled_set is not None and key not in enabled_set:
            continue
        try:
            loaded = entry.load()
        except Exception as exc:
            raise RuntimeError(f"Failed to load classifier entry point '{entry.name}': {exc}") from exc
        instance = _coerce_classifier(loaded)
        if not instance.name:
            instance.name = key
        plugins.append(instance)
        seen.add(key)
        if enabled_set is not None:
            enabled_set.discard(key)

    if enabled_set:
        missing = ", ".join(sorted(enabled_set))
        raise ValueError(f"Unknown classifiers requested: {missing}")

    pipelines = builtin_pipelines()
    target_plugins = [plugin for plugin in plugins if plugin.bucket is not Bucket.GLOBAL]
    global_plugins = [plugin for plugin in plugins if plugin.bucket is Bucket.GLOBAL]
    pipelines.target.classifiers[:0] = target_plugins
    pipelines.global_.classifiers[:0] = global_plugins
    return pipelines


def _coerce_classifier(obj: object) -> Classifier:
    if isinstance(obj, Classifier):
        return obj
    if isinstance(obj, type) and issubclass(obj, Classifier):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, Classifier):
            return instance
    raise TypeError("Classifier entry point must be a Classifier subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "CatchAllClassifier",
    "Classifier",
    "ClassifierPipeline",
    "GlobalClassifier",
    "MethodClassifier",
    "Pipelines",
    "TypeClassifier",
    "builtin_pipelines",
    "discover_pipelines",
]
