from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

from rule_of_thirds.core.config import Settings
from rule_of_thirds.core.exceptions import (
    CollectorError,
    OrchestrationError,
    StorageError,
    ValidationError,
)
from rule_of_thirds.core.resilience import exponential_backoff, with_retry_and_timeout
from rule_of_thirds.domain.models import (
    CollectorKind,
    CollectorResult,
    OrchestrationOutcome,
    OrchestrationReport,
    ReportOutputs,
    SynthesisResult,
)
from rule_of_thirds.services.base import BaseCollector, elapsed_ms
from rule_of_thirds.services.external_svc import ExternalSignalsCollector
from rule_of_thirds.services.internal_svc import InternalCollectorConfig, InternalResearchCollector
from rule_of_thirds.services.product_svc import ProductCollectorConfig, ProductMetricsCollector
from rule_of_thirds.services.synthesis_svc import Synthesizer
from rule_of_thirds.storage.report_storage import ReportStorage


def _first_line(text: str | None) -> str:
    lines = (text or "").strip().splitlines()
    return lines[0] if lines else ""


class Orchestrator:
    """
    Run the three collectors for one topic and assemble the report.

    Every collector runs under its own retry and timeout budget, and all
    three run concurrently until each has settled. A collector that never
    succeeds fills its slot with a failed result; the run itself only fails
    on invalid input or an unexpected error.
    """

    FEATURES = (
        "Concurrent collection from external, internal and product sources",
        "Per-collector retry with timeout and exponential backoff",
        "Relevance and recency ranking",
        "Cross-reference opportunity detection",
        "Optional LLM synthesis",
        "JSON and markdown report artifacts",
    )

    def __init__(
        self,
        external: BaseCollector,
        internal: BaseCollector,
        product: BaseCollector,
        synthesizer: Synthesizer | None = None,
        *,
        max_attempts: int = 2,
        timeout_seconds: float = 30.0,
        backoff: Callable[[int], float] = exponential_backoff,
        storage: ReportStorage | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.collectors: dict[CollectorKind, BaseCollector] = {
            CollectorKind.EXTERNAL: external,
            CollectorKind.INTERNAL: internal,
            CollectorKind.PRODUCT: product,
        }
        self.synthesizer = synthesizer
        self.max_attempts = max_attempts
        self.timeout_seconds = timeout_seconds
        self.backoff = backoff
        self.storage = storage
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, settings: Settings, logger: logging.Logger | None = None) -> Orchestrator:
        """Wire every collaborator from application settings."""
        return cls(
            ExternalSignalsCollector(settings, logger=logger),
            InternalResearchCollector(InternalCollectorConfig.from_settings(settings), logger=logger),
            ProductMetricsCollector(ProductCollectorConfig.from_settings(settings), logger=logger),
            Synthesizer(settings, logger=logger),
            max_attempts=settings.ORCHESTRATOR_RETRIES,
            timeout_seconds=settings.ORCHESTRATOR_TIMEOUT_SECONDS,
            storage=ReportStorage.from_settings(settings),
            logger=logger,
        )

    async def _run_collector(self, kind: CollectorKind, topic: str, focus: str | None) -> CollectorResult:
        collector = self.collectors[kind]
        started = time.perf_counter()

        async def attempt() -> CollectorResult:
            result = await collector.collect(topic, focus)
            if not result.succeeded:
                raise CollectorError(result.error_message or f"{kind.value} collector failed", collector=kind.value)
            return result

        try:
            return await with_retry_and_timeout(
                attempt,
                max_attempts=self.max_attempts,
                timeout=self.timeout_seconds,
                backoff=self.backoff,
                label=f"{kind.value} collector",
                log=self.logger,
            )
        except CollectorError as exc:
            self.logger.error("%s collector gave up after %d attempts: %s", kind.value, exc.attempts, exc)
            return CollectorResult.failed(kind, str(exc), elapsed_ms(started))

    async def _synthesize(
        self,
        topic: str,
        focus: str | None,
        results: dict[CollectorKind, CollectorResult],
        execution_time_ms: int,
    ) -> tuple[SynthesisResult | None, str | None]:
        if self.synthesizer is None:
            return None, None
        try:
            return await self.synthesizer.synthesize(topic, focus, results, execution_time_ms), None
        except Exception as exc:
            self.logger.error("Synthesis failed: %s", exc, exc_info=True)
            return None, str(exc) or type(exc).__name__

    async def run(self, topic: str, focus: str | None = None) -> OrchestrationReport:
        """
        Collect from all three sources and build the report.

        Args:
            topic: Required topic; surrounding whitespace is ignored.
            focus: Optional focus area.

        Returns:
            The report. Collector and synthesis failures are recorded in it.

        Raises:
            ValidationError: If the topic is empty. No collector is started.
            OrchestrationError: If anything unexpected escapes the collectors.
        """
        topic = (topic or "").strip()
        if not topic:
            raise ValidationError("Topic is required")
        focus = (focus or "").strip() or None

        started = time.perf_counter()
        self.logger.info("Starting Rule of Thirds orchestration for topic=%r focus=%r", topic, focus)
        try:
            kinds = list(self.collectors)
            settled = await asyncio.gather(*(self._run_collector(kind, topic, focus) for kind in kinds))
            results = dict(zip(kinds, settled))

            synthesis, synthesis_error = await self._synthesize(topic, focus, results, elapsed_ms(started))
            report = OrchestrationReport(
                topic=topic,
                focus=focus,
                external=results[CollectorKind.EXTERNAL],
                internal=results[CollectorKind.INTERNAL],
                product=results[CollectorKind.PRODUCT],
                execution_time_ms=elapsed_ms(started),
                synthesis=synthesis,
                synthesis_error=synthesis_error,
            )
        except Exception as exc:
            self.logger.error("Orchestration failed: %s", exc, exc_info=True)
            raise OrchestrationError(f"Orchestration failed: {exc}") from exc

        self.logger.info(
            "Orchestration completed in %dms: %d signals, %d/%d collectors successful",
            report.execution_time_ms,
            report.total_signal_count,
            report.successful_collector_count,
            report.TOTAL_COLLECTORS,
        )
        return report

    async def orchestrate(self, topic: str, focus: str | None = None, *, persist: bool = False) -> OrchestrationOutcome:
        """Non-raising entry point: validation and fatal errors become failed outcomes."""
        try:
            report = await self.run(topic, focus)
        except ValidationError as exc:
            return OrchestrationOutcome(success=False, error_type="validation", error=str(exc))
        except OrchestrationError as exc:
            return OrchestrationOutcome(success=False, error_type="fatal", error=str(exc))

        outputs: ReportOutputs | None = None
        if persist:
            if self.storage is None:
                self.logger.warning("Persist requested but no report storage is configured")
            else:
                try:
                    outputs = await self.storage.save(report)
                except StorageError as exc:
                    self.logger.error("Failed to persist report: %s", exc)
        return OrchestrationOutcome(success=True, report=report, outputs=outputs)

    def capabilities(self) -> dict[str, Any]:
        """Static description of the configured pipeline."""
        llm_service = getattr(self.synthesizer, "llm_service", None)
        return {
            "name": "Rule of Thirds Orchestrator",
            "collectors": [
                {
                    "name": kind.value,
                    "description": _first_line(type(collector).__doc__),
                    "max_results": collector.max_results,
                }
                for kind, collector in self.collectors.items()
            ],
            "features": list(self.FEATURES),
            "retry": {
                "max_attempts": self.max_attempts,
                "timeout_seconds": self.timeout_seconds,
            },
            "synthesis": {
                "enabled": bool(self.synthesizer and self.synthesizer.enable_llm),
                "llm_configured": bool(llm_service and llm_service.is_configured),
                "llm_provider": getattr(llm_service, "provider", None),
            },
            "persistence": self.storage is not None,
        }
