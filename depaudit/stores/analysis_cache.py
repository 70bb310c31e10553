"""Persistent per-file cache of analysis contributions."""

from __future__ import annotations

from datetime import UTC, datetime
import copy
import hashlib
import json
import os
from pathlib import Path
import tempfile
from typing import Any, Dict, Iterable, Mapping, Optional

from ..logging import get_logger
from ..models import FileFingerprint

CACHE_FILENAME = "deps-analysis-cache.json"
CACHE_VERSION = 2

_CONTRIBUTION_KEYS = (
    "importItemMap",
    "apiMap",
    "methodMap",
    "typeMap",
    "globalMap",
    "ghostDependenciesWarn",
)

logger = get_logger("cache")


def hash_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def compute_signature(settings: Mapping[str, Any], files: Iterable[Path]) -> str:
    """Hash the settings and companion files that shape every file's result.

    A change to any of them (a new dependency in package.json, a new path alias,
    a different global API list) invalidates all cached contributions.
    """
    digest = hashlib.sha256()
    digest.update(str(CACHE_VERSION).encode("utf-8"))
    digest.update(json.dumps(settings, sort_keys=True, default=str).encode("utf-8"))
    for path in sorted({Path(item) for item in files}, key=str):
        digest.update(str(path).encode("utf-8"))
        try:
            digest.update(hash_file(path).encode("utf-8"))
        except OSError:
            digest.update(b"<missing>")
    return digest.hexdigest()


class AnalysisCache:
    """Stores each file's contribution keyed by show path and content hash."""

    def __init__(self, path: Path | None, *, signature: str) -> None:
        self._path = path
        self._signature = signature
        self._hashes: Dict[str, Dict[str, Any]] = {}
        self._contributions: Dict[str, Dict[str, Any]] = {}
        self._dirty = False
        self.warm = False
        if self._path is not None:
            self._load(self._path)

    @classmethod
    def in_directory(cls, directory: Path, *, signature: str) -> "AnalysisCache":
        return cls(directory / CACHE_FILENAME, signature=signature)

    @property
    def path(self) -> Path | None:
        return self._path

    def __len__(self) -> int:
        return len(self._contributions)

    def fingerprint(self, file_path: Path, show_path: str) -> FileFingerprint:
        """Fingerprint ``file_path``, reusing the cached hash when size and mtime match."""
        stat_result = file_path.stat()
        size = stat_result.st_size
        mtime_ns = stat_result.st_mtime_ns

        cached = self._hashes.get(show_path)
        if (
            cached
            and cached.get("size") == size
            and cached.get("mtimeNs") == mtime_ns
            and isinstance(cached.get("hash"), str)
        ):
            file_hash = cached["hash"]
        else:
            file_hash = hash_file(file_path)
        return FileFingerprint(path=show_path, hash=file_hash, size=size, mtime_ns=mtime_ns)

    def lookup(self, show_path: str, fingerprint: FileFingerprint) -> Optional[Dict[str, Any]]:
        entry = self._hashes.get(show_path)
        if not entry or entry.get("hash") != fingerprint.hash:
            return None
        contribution = self._contributions.get(show_path)
        if contribution is None:
            return None
        return copy.deepcopy(contribution)

    def store(
        self, show_path: str, fingerprint: FileFingerprint, contribution: Mapping[str, Any]
    ) -> None:
        self._hashes[show_path] = {
            "path": show_path,
            "hash": fingerprint.hash,
            "size": fingerprint.size,
            "mtimeNs": fingerprint.mtime_ns,
            "lastModified": fingerprint.mtime_ns // 1_000_000,
        }
        self._contributions[show_path] = {
            key: copy.deepcopy(contribution.get(key, {})) for key in _CONTRIBUTION_KEYS
        }
        self._dirty = True

    def prune(self, keys_to_keep: Iterable[str]) -> None:
        keep = set(keys_to_keep)
        removed = [key for key in self._contributions if key not in keep]
        removed.extend(key for key in self._hashes if key not in keep and key not in removed)
        if removed:
            for key in removed:
                self._contributions.pop(key, None)
                self._hashes.pop(key, None)
            self._dirty = True
            logger.debug("Pruned %d stale cache entries", len(removed))

    def persist(self) -> bool:
        """Write the cache atomically; return False when the write failed."""
        if not self._dirty or self._path is None:
            return True
        payload = {
            "version": CACHE_VERSION,
            "signature": self._signature,
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "fileHashes": [self._hashes[key] for key in sorted(self._hashes)],
            "fileCache": self._contributions,
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=".deps-analysis-", suffix=".tmp", dir=self._path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(payload, handle, indent=2, sort_keys=True)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            logger.warning("Failed to write analysis cache %s: %s", self._path, exc)
            return False
        self._dirty = False
        return True

    def discard(self, show_path: str) -> None:
        """Forget one file so the next persist no longer carries it."""
        had_contribution = self._contributions.pop(show_path, None) is not None
        had_hash = self._hashes.pop(show_path, None) is not None
        if had_contribution or had_hash:
            self._dirty = True

    # ------------------------------------------------------------------
    # Internal helpers

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable analysis cache %s: %s", path, exc)
            return
        if not isinstance(data, dict) or data.get("version") != CACHE_VERSION:
            logger.info("Analysis cache version changed; starting cold")
            return
        if data.get("signature") != self._signature:
            logger.info("Analysis settings or manifests changed; starting cold")
            return

        hashes = data.get("fileHashes")
        contributions = data.get("fileCache")
        if not isinstance(hashes, list) or not isinstance(contributions, dict):
            return

        valid_hashes: Dict[str, Dict[str, Any]] = {}
        for entry in hashes:
            if not isinstance(entry, dict):
                continue
            key = entry.get("path")
            if (
                isinstance(key, str)
                and isinstance(entry.get("hash"), str)
                and isinstance(entry.get("size"), int)
                and isinstance(entry.get("mtimeNs"), int)
            ):
                valid_hashes[key] = entry

        valid_contributions: Dict[str, Dict[str, Any]] = {}
        for key, raw in contributions.items():
            if key not in valid_hashes or not isinstance(raw, dict):
                continue
            if not all(isinstance(raw.get(name), dict) for name in _CONTRIBUTION_KEYS):
                continue
            valid_contributions[key] = raw

        self._hashes = {key: valid_hashes[key] for key in valid_contributions}
        self._contributions = valid_contributions
        self._dirty = False
        self.warm = True


__all__ = ["AnalysisCache", "CACHE_FILENAME", "CACHE_VERSION", "compute_signature", "hash_file"]
