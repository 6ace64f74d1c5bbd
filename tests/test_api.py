"""
Tests for the HTTP API: health, capabilities, orchestration and single-collector analysis.
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from rule_of_thirds.api.dependencies import get_orchestrator, get_settings
from rule_of_thirds.core.exceptions import StorageError
from rule_of_thirds.core.resilience import no_backoff
from rule_of_thirds.domain.models import CollectorKind
from rule_of_thirds.main import app, create_app
from rule_of_thirds.services.orchestrator import Orchestrator
from rule_of_thirds.storage.report_storage import ReportStorage

EXTERNAL, INTERNAL, PRODUCT = CollectorKind.EXTERNAL, CollectorKind.INTERNAL, CollectorKind.PRODUCT


class StaticCollector:
    """Returns the same result on every call and records the arguments."""

    def __init__(self, result):
        self.result = result
        self.max_results = 20
        self.calls: list[tuple] = []

    async def collect(self, topic, focus=None, *, max_results=None):
        self.calls.append((topic, focus, max_results))
        return self.result


@pytest.fixture
def orchestrator(make_result):
    return Orchestrator(
        StaticCollector(make_result(EXTERNAL, 6)),
        StaticCollector(make_result(INTERNAL, failed=True, error="no research directories")),
        StaticCollector(make_result(PRODUCT, 9)),
        backoff=no_backoff,
        max_attempts=1,
    )


@pytest.fixture
def client(orchestrator, settings):
    application = create_app()
    application.dependency_overrides[get_orchestrator] = lambda: orchestrator
    application.dependency_overrides[get_settings] = lambda: settings
    with TestClient(application) as test_client:
        yield test_client


def test_health_endpoint_returns_awake():
    """/api/health answers without building any collector."""
    client = TestClient(app)
    response = client.get("/api/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "awake"
    assert "message" in data
    assert "timestamp" in data


def test_root(client):
    assert client.get("/").json()["status"] == "System Operational"


def test_capabilities(client):
    data = client.get("/api/capabilities").json()

    assert [collector["name"] for collector in data["collectors"]] == ["external", "internal", "product"]
    assert data["retry"]["max_attempts"] == 1


class TestOrchestrateRoute:
    def test_partial_success(self, client):
        response = client.post("/api/orchestrate", json={"topic": "checkout flow", "focus_area": "mobile"})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        summary = data["summary"]
        assert summary["totalSignals"] == 15
        assert summary["successfulAgents"] == 2
        assert summary["totalAgents"] == 3
        assert summary["external"]["signalCount"] == 6
        assert summary["internal"] == {
            "status": "failed",
            "findingCount": 0,
            "executionTime": summary["internal"]["executionTime"],
            "error": "no research directories",
        }
        assert summary["product"]["dataPointCount"] == 9
        assert data["report"]["focus"] == "mobile"
        assert data["outputs"] is None

    def test_empty_topic_is_rejected(self, client, orchestrator):
        response = client.post("/api/orchestrate", json={"topic": "  "})

        assert response.status_code == 400
        assert response.json()["detail"] == "Topic is required"
        assert orchestrator.collectors[EXTERNAL].calls == []

    def test_missing_topic_is_unprocessable(self, client):
        assert client.post("/api/orchestrate", json={}).status_code == 422

    def test_fatal_failure_is_500(self, client, orchestrator, monkeypatch):
        monkeypatch.setattr(orchestrator, "_run_collector", AsyncMock(side_effect=RuntimeError("loop broke")))

        response = client.post("/api/orchestrate", json={"topic": "checkout flow"})

        assert response.status_code == 500
        assert "loop broke" in response.json()["detail"]

    def test_persist_returns_outputs(self, client, orchestrator, tmp_path):
        orchestrator.storage = ReportStorage(tmp_path)

        data = client.post("/api/orchestrate", json={"topic": "checkout flow", "persist": True}).json()

        assert len(data["outputs"]["files"]) == 6
        assert data["outputs"]["combined_report"].endswith("_combined_insight_report.json")

    def test_storage_failure_still_returns_report(self, client, orchestrator):
        storage = MagicMock()
        storage.save = AsyncMock(side_effect=StorageError("disk full"))
        orchestrator.storage = storage

        response = client.post("/api/orchestrate", json={"topic": "checkout flow", "persist": True})

        assert response.status_code == 200
        assert response.json()["outputs"] is None


class TestAnalyzeRoute:
    def test_runs_one_collector(self, client, orchestrator):
        response = client.post("/api/analyze/product", json={"topic": " checkout flow ", "max_results": 5})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["summary"]["dataPointCount"] == 9
        assert orchestrator.collectors[PRODUCT].calls == [("checkout flow", None, 5)]
        assert orchestrator.collectors[EXTERNAL].calls == []

    def test_failed_collector_reports_error_status(self, client):
        data = client.post("/api/analyze/internal", json={"topic": "checkout flow"}).json()

        assert data["status"] == "error"
        assert data["result"]["error_message"] == "no research directories"

    def test_unknown_collector_is_unprocessable(self, client):
        assert client.post("/api/analyze/social", json={"topic": "checkout flow"}).status_code == 422

    def test_empty_topic_is_rejected(self, client):
        assert client.post("/api/analyze/external", json={"topic": ""}).status_code == 400
