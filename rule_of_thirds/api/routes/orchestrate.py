from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from rule_of_thirds.api.dependencies import get_orchestrator
from rule_of_thirds.domain.models import (
    AnalyzeRequest,
    CollectorKind,
    CollectorResult,
    OrchestrateRequest,
    OrchestrationReport,
)
from rule_of_thirds.services.orchestrator import Orchestrator

router = APIRouter(prefix="/api", tags=["orchestration"])
logger = logging.getLogger(__name__)

# Count field names the dashboard expects for each collector.
COUNT_FIELDS: dict[CollectorKind, str] = {
    CollectorKind.EXTERNAL: "signalCount",
    CollectorKind.INTERNAL: "findingCount",
    CollectorKind.PRODUCT: "dataPointCount",
}


def collector_summary(result: CollectorResult) -> dict[str, Any]:
    return {
        "status": result.status.value,
        COUNT_FIELDS[result.collector]: result.item_count,
        "executionTime": result.execution_time_ms,
        "error": result.error_message,
    }


def transport_summary(report: OrchestrationReport) -> dict[str, Any]:
    return {
        "totalSignals": report.total_signal_count,
        "successfulAgents": report.successful_collector_count,
        "totalAgents": report.TOTAL_COLLECTORS,
        "executionTime": report.execution_time_ms,
        **{kind.value: collector_summary(result) for kind, result in report.results.items()},
    }


@router.post("/orchestrate")
async def orchestrate(
    request: OrchestrateRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """
    Run all three collectors for a topic and return the combined report.

    Returns 400 for an empty topic and 500 when orchestration fails outright.
    A run where some collectors failed is still a success.
    """
    outcome = await orchestrator.orchestrate(request.topic, request.focus_area, persist=request.persist)
    if not outcome.success or outcome.report is None:
        status_code = 400 if outcome.error_type == "validation" else 500
        raise HTTPException(status_code=status_code, detail=outcome.error or "Orchestration failed")

    return {
        "status": "success",
        "summary": transport_summary(outcome.report),
        "report": outcome.report.model_dump(mode="json"),
        "outputs": outcome.outputs.model_dump(mode="json") if outcome.outputs else None,
    }


@router.post("/analyze/{collector}")
async def analyze(
    collector: CollectorKind,
    request: AnalyzeRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Run a single collector without retries or synthesis."""
    topic = (request.topic or "").strip()
    if not topic:
        raise HTTPException(status_code=400, detail="Topic is required")

    result = await orchestrator.collectors[collector].collect(topic, request.focus, max_results=request.max_results)
    return {
        "status": "success" if result.succeeded else "error",
        "summary": collector_summary(result),
        "result": result.model_dump(mode="json"),
    }
