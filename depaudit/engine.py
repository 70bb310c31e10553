"""Run orchestration: scan sources, analyse files, merge, tag and cache."""

from __future__ import annotations

import time
import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .aggregator import CallRecordAggregator, UsageBuckets, deep_link
from .bindings import BindingExtractor
from .blacklist import tag_blacklist
from .classifiers import Pipelines, discover_pipelines
from .config import DepAuditConfig
from .ghost import GhostDependencyDetector
from .locator import LocatorError, SourceLocator
from .logging import get_logger
from .manifest import ManifestError, find_package_json, load_package_json, load_path_aliases
from .models import (
    DiagnosisInfo,
    FileKind,
    PathAliases,
    ProjectManifest,
    ScanSource,
    SourceFile,
)
from .parsing.modules import ModuleResolver, NodeModuleResolver
from .parsing.provider import SyntaxProvider
from .stores.analysis_cache import AnalysisCache, compute_signature
from .stores.merge import MergeError
from .walker import UsageWalker

ResolverFactory = Callable[[Path, Optional[PathAliases], ProjectManifest], ModuleResolver]


def default_resolver_factory(
    project_root: Path, aliases: Optional[PathAliases], manifest: ProjectManifest
) -> ModuleResolver:
    return NodeModuleResolver(project_root, aliases=aliases, declared=manifest.declared)


@dataclass
class AnalysisResult:
    """Everything one run produced."""

    buckets: UsageBuckets
    version_map: Dict[str, Dict[str, str]]
    scan_sources: List[ScanSource]
    files_analyzed: int = 0
    files_from_cache: int = 0
    skipped_sources: List[str] = field(default_factory=list)
    blacklist_hits: int = 0

    @property
    def ghost_count(self) -> int:
        return sum(len(names) for names in self.buckets.ghosts.values())

    def to_document(self) -> Dict[str, Any]:
        return {
            "importItemMap": self.buckets.import_items,
            "apiMap": self.buckets.api,
            "methodMap": self.buckets.method,
            "typeMap": self.buckets.type,
            "globalMap": self.buckets.global_,
            "versionMap": self.version_map,
            "ghostDependenciesWarn": {
                project: sorted(names) for project, names in sorted(self.buckets.ghosts.items())
            },
            "diagnosisInfo": [info.to_dict() for info in self.buckets.diagnostics],
            "scanSource": [source.to_dict() for source in self.scan_sources],
        }


@dataclass
class _ProjectContext:
    source: ScanSource
    manifest: ProjectManifest
    extractor: BindingExtractor


class DepsAnalysis:
    """Analyses every configured scan source into one :class:`AnalysisResult`."""

    def __init__(
        self,
        config: DepAuditConfig,
        *,
        pipelines: Pipelines | None = None,
        syntax: SyntaxProvider | None = None,
        resolver_factory: ResolverFactory | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.pipelines = pipelines or discover_pipelines(config.classifiers.enabled)
        self.syntax = syntax or SyntaxProvider()
        self.resolver_factory = resolver_factory or default_resolver_factory
        self.locator = SourceLocator(config.root)
        self.walker = UsageWalker(
            self.pipelines,
            global_analysis=config.global_analysis,
            global_apis=config.global_apis,
            timeout=config.file_timeout,
            clock=clock,
        )
        self.logger = get_logger("engine")

    def run(self) -> AnalysisResult:
        aggregator = CallRecordAggregator()
        result = AnalysisResult(
            buckets=aggregator.buckets,
            version_map={},
            scan_sources=list(self.config.scan_sources),
        )
        self.logger.info("Analysing %d scan sources under %s", len(result.scan_sources), self.config.root)

        cache = self._open_cache() if self.config.incremental else None
        scanned: List[str] = []
        completed = False
        try:
            for source in self.config.scan_sources:
                self._run_source(source, aggregator, result, cache, scanned)
            completed = True
        finally:
            if cache is not None:
                if completed:
                    cache.prune(scanned)
                cache.persist()

        result.blacklist_hits = tag_blacklist(aggregator.buckets, self.config.black_list)
        self.logger.info(
            "Analysed %d files (%d from cache), %d ghost dependencies, %d diagnostics",
            result.files_analyzed + result.files_from_cache,
            result.files_from_cache,
            result.ghost_count,
            len(aggregator.buckets.diagnostics),
        )
        return result

    # ------------------------------------------------------------------
    # Per scan source

    def _run_source(
        self,
        source: ScanSource,
        aggregator: CallRecordAggregator,
        result: AnalysisResult,
        cache: AnalysisCache | None,
        scanned: List[str],
    ) -> None:
        try:
            files = self.locator.locate(source, FileKind.SCRIPT)
            if self.config.scan_vue:
                files.extend(self.locator.locate(source, FileKind.TEMPLATE))
        except LocatorError as exc:
            self.logger.error("Skipping scan source %s: %s", source.name, exc)
            result.skipped_sources.append(source.name)
            return

        context = self._project_context(source)
        result.version_map[source.name] = dict(sorted(context.manifest.declared.items()))
        self.logger.info("Project %s: %d files", source.name, len(files))

        for entry in files:
            scanned.append(entry.show_path)
            self._run_file(entry, context, aggregator, result, cache)

    def _project_context(self, source: ScanSource) -> _ProjectContext:
        manifest_path = self._manifest_path(source)
        manifest = ProjectManifest(name=source.name)
        if manifest_path is not None:
            try:
                manifest = load_package_json(manifest_path, project=source.name)
            except ManifestError as exc:
                self.logger.warning("Manifest for %s unusable, treating all imports as undeclared: %s", source.name, exc)
        else:
            self.logger.warning("No package.json found for %s", source.name)

        aliases: Optional[PathAliases] = None
        if source.tsconfig:
            try:
                aliases = load_path_aliases(self.config.resolve(source.tsconfig))
            except ManifestError as exc:
                self.logger.warning("Ignoring tsconfig for %s: %s", source.name, exc)

        project_root = manifest_path.parent if manifest_path is not None else self.config.root
        resolver = self.resolver_factory(project_root, aliases, manifest)
        ghost = GhostDependencyDetector(source.name, frozenset(manifest.declared))
        extractor = BindingExtractor(
            resolver, analysis_target=self.config.analysis_target, ghost=ghost
        )
        return _ProjectContext(source=source, manifest=manifest, extractor=extractor)

    def _manifest_path(self, source: ScanSource) -> Optional[Path]:
        if source.package_json:
            return self.config.resolve(source.package_json)
        first = self.config.resolve(source.include[0].split("*", 1)[0] or ".")
        return find_package_json(first, stop=self.config.root)

    # ------------------------------------------------------------------
    # Per file

    def _run_file(
        self,
        entry: SourceFile,
        context: _ProjectContext,
        aggregator: CallRecordAggregator,
        result: AnalysisResult,
        cache: AnalysisCache | None,
    ) -> None:
        source = context.source
        path = Path(entry.path)
        fingerprint = None
        if cache is not None:
            try:
                fingerprint = cache.fingerprint(path, entry.show_path)
            except OSError as exc:
                self._diagnose(aggregator, source, entry, exc)
                return
            cached = cache.lookup(entry.show_path, fingerprint)
            restored = self._restore(entry, cached, cache) if cached is not None else None
            if restored is not None:
                self.logger.debug("Reusing cached analysis for %s", entry.show_path)
                aggregator.absorb(restored.snapshot())
                result.files_from_cache += 1
                return

        file_aggregator = CallRecordAggregator()
        try:
            self.analyze_file(entry, context.extractor, file_aggregator, repo_hint=source.http_repo)
        except Exception as exc:
            self._diagnose(aggregator, source, entry, exc)
            return

        contribution = file_aggregator.snapshot()
        aggregator.absorb(contribution)
        for info in file_aggregator.buckets.diagnostics:
            aggregator.diagnose(info)
        result.files_analyzed += 1

        # Files with classifier failures are re-analysed next run so the diagnostics resurface.
        if cache is not None and fingerprint is not None and not file_aggregator.buckets.diagnostics:
            cache.store(entry.show_path, fingerprint, contribution)

    def _restore(
        self, entry: SourceFile, cached: Dict[str, Any], cache: AnalysisCache
    ) -> Optional[CallRecordAggregator]:
        """Rebuild a cached contribution apart from the run totals.

        A malformed entry is dropped from the cache and the file is analysed again.
        """
        restored = CallRecordAggregator()
        try:
            restored.absorb(cached)
        except MergeError as exc:
            self.logger.warning("Discarding corrupt cache entry for %s: %s", entry.show_path, exc)
            cache.discard(entry.show_path)
            return None
        return restored

    def analyze_file(
        self,
        entry: SourceFile,
        extractor: BindingExtractor,
        aggregator: CallRecordAggregator,
        *,
        repo_hint: str = "",
    ) -> None:
        """Parse one file, extract its bindings and walk it into ``aggregator``."""
        self.logger.debug("Analysing %s", entry.show_path)
        parsed = self.syntax.parse_file(entry.path)
        if parsed is None:
            return
        bindings = extractor.extract(
            parsed, aggregator, file=entry.show_path, project=entry.project, repo_hint=repo_hint
        )
        self.walker.walk(
            parsed,
            bindings,
            aggregator,
            file=entry.show_path,
            project=entry.project,
            repo_hint=repo_hint,
        )

    def _diagnose(
        self,
        aggregator: CallRecordAggregator,
        source: ScanSource,
        entry: SourceFile,
        exc: BaseException,
    ) -> None:
        self.logger.warning("Failed to analyse %s: %s", entry.show_path, exc)
        aggregator.diagnose(
            DiagnosisInfo(
                project_name=source.name,
                file=entry.show_path,
                stack="".join(traceback.format_exception(exc)),
                http_repo=deep_link(source.http_repo, entry.show_path) if source.http_repo else None,
            )
        )

    # ------------------------------------------------------------------
    # Cache

    def _open_cache(self) -> AnalysisCache:
        companions: List[Path] = []
        for source in self.config.scan_sources:
            manifest_path = self._manifest_path(source)
            if manifest_path is not None:
                companions.append(manifest_path)
            if source.tsconfig:
                companions.append(self.config.resolve(source.tsconfig))
        settings = {
            "analysisTarget": sorted(self.config.analysis_target),
            "globalAnalysis": self.config.global_analysis,
            "globalApis": sorted(self.config.global_apis),
            "scanVue": self.config.scan_vue,
            "classifiers": [
                type(classifier).__name__
                for classifier in self.pipelines.target.classifiers + self.pipelines.global_.classifiers
            ],
            "scanSource": [source.to_dict() for source in self.config.scan_sources],
        }
        signature = compute_signature(settings, companions)
        cache = AnalysisCache.in_directory(self.config.cache_path, signature=signature)
        self.logger.debug(
            "Analysis cache %s is %s with %d entries",
            cache.path,
            "warm" if cache.warm else "cold",
            len(cache),
        )
        return cache


__all__ = ["AnalysisResult", "DepsAnalysis", "default_resolver_factory"]
