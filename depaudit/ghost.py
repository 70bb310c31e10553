"""Detection of imports that the owning project never declares."""

from __future__ import annotations

from typing import AbstractSet, Optional

from .aggregator import CallRecordAggregator
from .logging import get_logger
from .models import ModuleType, ResolvedModule
from .parsing.modules import package_name_of, runtime_package_for

logger = get_logger("ghost")


class GhostDependencyDetector:
    """Cross-checks resolved imports against one project's declared dependencies."""

    def __init__(self, project: str, declared: AbstractSet[str]) -> None:
        self.project = project
        self.declared = declared

    def check(self, resolution: ResolvedModule) -> Optional[str]:
        """Return the package name to flag, or None when the import is declared."""
        if resolution.module_type in (ModuleType.LOCAL_FILE, ModuleType.NODE_MODULE):
            return None

        package = resolution.package_name or package_name_of(resolution.resolved)
        if not package:
            # Nothing publishable to name; report the specifier itself.
            return resolution.specifier if resolution.module_type is ModuleType.UNKNOWN else None

        if package in self.declared:
            return None

        if package.startswith("@types/"):
            runtime = runtime_package_for(package)
            if runtime in self.declared:
                return None
            return runtime

        return package

    def flag(self, resolution: ResolvedModule, aggregator: CallRecordAggregator) -> None:
        package = self.check(resolution)
        if package is not None and aggregator.flag_ghost(self.project, package):
            logger.debug("Ghost dependency %s in %s", package, self.project)


__all__ = ["GhostDependencyDetector"]
