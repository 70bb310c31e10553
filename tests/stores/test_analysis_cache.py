"""Tests for the incremental analysis cache."""

from __future__ import annotations

import json
from pathlib import Path

from depaudit.stores import analysis_cache
from depaudit.stores.analysis_cache import (
    CACHE_FILENAME,
    CACHE_VERSION,
    AnalysisCache,
    compute_signature,
)

CONTRIBUTION = {
    "importItemMap": {"lodash": {"_": {"callOrigin": None, "callFiles": {}}}},
    "apiMap": {},
    "methodMap": {},
    "typeMap": {},
    "globalMap": {},
    "ghostDependenciesWarn": {"app": ["left-pad"]},
}


def _source(tmp_path: Path, text: str = "import _ from 'lodash'\n") -> Path:
    path = tmp_path / "a.ts"
    path.write_text(text, encoding="utf-8")
    return path


def test_cache_round_trip(tmp_path: Path) -> None:
    source = _source(tmp_path)
    cache = AnalysisCache.in_directory(tmp_path / ".depaudit", signature="sig")
    fingerprint = cache.fingerprint(source, "app&a.ts")
    cache.store("app&a.ts", fingerprint, CONTRIBUTION)
    assert cache.persist() is True

    reloaded = AnalysisCache.in_directory(tmp_path / ".depaudit", signature="sig")

    assert reloaded.warm is True
    assert reloaded.lookup("app&a.ts", reloaded.fingerprint(source, "app&a.ts")) == CONTRIBUTION
    payload = json.loads((tmp_path / ".depaudit" / CACHE_FILENAME).read_text(encoding="utf-8"))
    assert payload["version"] == CACHE_VERSION
    assert payload["fileHashes"][0]["path"] == "app&a.ts"
    assert set(payload["fileCache"]) == {"app&a.ts"}


def test_cache_misses_after_content_change(tmp_path: Path) -> None:
    source = _source(tmp_path)
    cache = AnalysisCache(tmp_path / "cache.json", signature="sig")
    cache.store("app&a.ts", cache.fingerprint(source, "app&a.ts"), CONTRIBUTION)

    _source(tmp_path, "import _ from 'lodash'\n_.map([])\n")

    assert cache.lookup("app&a.ts", cache.fingerprint(source, "app&a.ts")) is None


def test_cache_reuses_hash_when_stat_matches(tmp_path: Path, monkeypatch) -> None:
    source = _source(tmp_path)
    cache = AnalysisCache(tmp_path / "cache.json", signature="sig")
    cache.store("app&a.ts", cache.fingerprint(source, "app&a.ts"), CONTRIBUTION)
    cache.persist()

    def _fail(path: Path) -> str:  # pragma: no cover - should not run
        raise AssertionError("file should not be rehashed")

    monkeypatch.setattr(analysis_cache, "hash_file", _fail)
    reloaded = AnalysisCache(tmp_path / "cache.json", signature="sig")

    assert reloaded.lookup("app&a.ts", reloaded.fingerprint(source, "app&a.ts")) is not None


def test_cache_starts_cold_on_signature_or_version_change(tmp_path: Path) -> None:
    source = _source(tmp_path)
    cache = AnalysisCache(tmp_path / "cache.json", signature="sig-1")
    cache.store("app&a.ts", cache.fingerprint(source, "app&a.ts"), CONTRIBUTION)
    cache.persist()

    assert AnalysisCache(tmp_path / "cache.json", signature="sig-2").warm is False

    payload = json.loads((tmp_path / "cache.json").read_text(encoding="utf-8"))
    payload["version"] = CACHE_VERSION + 1
    (tmp_path / "cache.json").write_text(json.dumps(payload), encoding="utf-8")
    assert AnalysisCache(tmp_path / "cache.json", signature="sig-1").warm is False


def test_cache_treats_corruption_as_cold_start(tmp_path: Path) -> None:
    (tmp_path / "cache.json").write_text("{ truncated", encoding="utf-8")

    cache = AnalysisCache(tmp_path / "cache.json", signature="sig")

    assert cache.warm is False
    assert len(cache) == 0


def test_cache_prune_drops_unscanned_files(tmp_path: Path) -> None:
    source = _source(tmp_path)
    cache = AnalysisCache(tmp_path / "cache.json", signature="sig")
    fingerprint = cache.fingerprint(source, "app&a.ts")
    cache.store("app&a.ts", fingerprint, CONTRIBUTION)
    cache.store("app&gone.ts", fingerprint, CONTRIBUTION)

    cache.prune(["app&a.ts"])
    cache.persist()

    reloaded = AnalysisCache(tmp_path / "cache.json", signature="sig")
    assert len(reloaded) == 1
    assert reloaded.lookup("app&gone.ts", fingerprint) is None


def test_persist_failure_is_reported_not_raised(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    source = _source(tmp_path)
    cache = AnalysisCache(blocker / "cache.json", signature="sig")
    cache.store("app&a.ts", cache.fingerprint(source, "app&a.ts"), CONTRIBUTION)

    assert cache.persist() is False


def test_compute_signature_tracks_companion_files(tmp_path: Path) -> None:
    manifest = tmp_path / "package.json"
    manifest.write_text('{"dependencies": {}}', encoding="utf-8")
    before = compute_signature({"globalApis": []}, [manifest])

    manifest.write_text('{"dependencies": {"lodash": "4"}}', encoding="utf-8")

    assert compute_signature({"globalApis": []}, [manifest]) != before
    assert compute_signature({"globalApis": ["fetch"]}, [manifest]) != compute_signature(
        {"globalApis": []}, [manifest]
    )


def test_discard_forgets_one_entry(tmp_path: Path) -> None:
    source = _source(tmp_path)
    cache = AnalysisCache(tmp_path / "cache.json", signature="sig")
    fingerprint = cache.fingerprint(source, "app&a.ts")
    cache.store("app&a.ts", fingerprint, CONTRIBUTION)
    cache.store("app&b.ts", fingerprint, CONTRIBUTION)
    cache.persist()

    cache.discard("app&a.ts")
    cache.persist()

    reloaded = AnalysisCache(tmp_path / "cache.json", signature="sig")
    assert reloaded.lookup("app&a.ts", fingerprint) is None
    assert reloaded.lookup("app&b.ts", fingerprint) == CONTRIBUTION
