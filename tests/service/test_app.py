"""Tests for the FastAPI service mode."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

try:
    from fastapi.testclient import TestClient
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    pytest.skip("fastapi not installed", allow_module_level=True)

from depaudit.aggregator import UsageBuckets
from depaudit.config import DepAuditConfig
from depaudit.engine import AnalysisResult
from depaudit.service import create_app


class _StubEngine:
    def __init__(self, config: DepAuditConfig, calls: list[DepAuditConfig]) -> None:
        self.config = config
        calls.append(config)

    def run(self) -> AnalysisResult:
        buckets = UsageBuckets(ghosts={"app": ["left-pad"]})
        return AnalysisResult(buckets=buckets, version_map={"app": {}}, scan_sources=[])


@pytest.fixture
def calls() -> list[DepAuditConfig]:
    return []


@pytest.fixture
def client(calls: list[DepAuditConfig]) -> TestClient:
    return TestClient(create_app(lambda config: _StubEngine(config, calls)))


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_analyze_endpoint_runs_engine(
    client: TestClient, calls: list[DepAuditConfig], tmp_path: Path
) -> None:
    (tmp_path / ".depaudit.yml").write_text(
        "scan_source:\n  - name: app\n    include: [src]\n", encoding="utf-8"
    )

    response = client.post(
        "/analyze",
        json={"config_path": str(tmp_path), "incremental": True, "output": "result.json"},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["ghost_count"] == 1
    assert payload["diagnostic_count"] == 0
    assert payload["document"]["ghostDependenciesWarn"] == {"app": ["left-pad"]}
    assert payload["output_path"] == str(tmp_path.resolve() / "result.json")
    assert calls[0].incremental is True
    assert json.loads((tmp_path / "result.json").read_text(encoding="utf-8"))["versionMap"] == {"app": {}}


def test_analyze_endpoint_reports_missing_config(client: TestClient, tmp_path: Path) -> None:
    response = client.post("/analyze", json={"config_path": str(tmp_path / "nope.yml")})
    assert response.status_code == 404


def test_analyze_endpoint_reports_invalid_config(client: TestClient, tmp_path: Path) -> None:
    (tmp_path / ".depaudit.yml").write_text("scan_source: 3\n", encoding="utf-8")

    response = client.post("/analyze", json={"config_path": str(tmp_path)})

    assert response.status_code == 400
    assert "scan_source" in response.json()["detail"]


def test_report_endpoint_serves_written_document(client: TestClient, tmp_path: Path) -> None:
    path = tmp_path / "result.json"
    path.write_text(json.dumps({"methodMap": {}}), encoding="utf-8")

    assert client.get("/report", params={"path": str(path)}).json() == {"methodMap": {}}
    assert client.get("/report", params={"path": str(tmp_path / "missing.json")}).status_code == 404
