from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from rule_of_thirds.core.config import Settings, get_settings
from rule_of_thirds.core.exceptions import LLMServiceError
from rule_of_thirds.core.prompts import TemplateName, fill_template, load_templates
from rule_of_thirds.domain.models import (
    CollectorKind,
    CollectorResult,
    Coverage,
    CrossReferenceOpportunity,
    ExecutiveSummary,
    LLMSynthesis,
    OrchestrationReport,
    QualityAssessment,
    Signal,
    SignalStrength,
    SynthesisPrompts,
    SynthesisResult,
)
from rule_of_thirds.services.llm_svc import LLMService
from rule_of_thirds.utils import excerpt

TOP_SIGNALS_PER_SOURCE = 5

# (strong above, medium above) signal counts per collector
STRENGTH_THRESHOLDS: dict[CollectorKind, tuple[int, int]] = {
    CollectorKind.EXTERNAL: (15, 5),
    CollectorKind.INTERNAL: (10, 3),
    CollectorKind.PRODUCT: (20, 8),
}

SECTION_HEADINGS: dict[CollectorKind, str] = {
    CollectorKind.EXTERNAL: "Top External Market Signals",
    CollectorKind.INTERNAL: "Top Internal Research Findings",
    CollectorKind.PRODUCT: "Top Product Metric Signals",
}


def signal_strength(kind: CollectorKind, count: int) -> str:
    strong, medium = STRENGTH_THRESHOLDS[kind]
    if count > strong:
        return "strong"
    if count > medium:
        return "medium"
    return "weak"


def signal_reliability(total_signals: int) -> str:
    if total_signals > 30:
        return "High"
    if total_signals > 15:
        return "Medium"
    return "Low"


def analysis_confidence(successful: int, total: int = OrchestrationReport.TOTAL_COLLECTORS) -> str:
    if successful == total:
        return "High"
    if successful >= 2:
        return "Medium"
    return "Low"


def identify_cross_references(
    has_external: bool,
    has_internal: bool,
    has_product: bool,
) -> list[CrossReferenceOpportunity]:
    """Cross-validation opportunities for the sources that returned data."""
    opportunities: list[CrossReferenceOpportunity] = []
    if has_external and has_internal and has_product:
        opportunities.append(
            CrossReferenceOpportunity(
                type="multi_source_validation",
                description="3 signal sources available for cross-validation",
                sources=[CollectorKind.EXTERNAL, CollectorKind.INTERNAL, CollectorKind.PRODUCT],
                priority="high",
            )
        )
    if has_external and has_internal:
        opportunities.append(
            CrossReferenceOpportunity(
                type="market_research_alignment",
                description="Compare external market signals with internal research findings",
                sources=[CollectorKind.EXTERNAL, CollectorKind.INTERNAL],
                priority="high",
            )
        )
    if has_internal and has_product:
        opportunities.append(
            CrossReferenceOpportunity(
                type="metrics_research_validation",
                description="Validate qualitative research with quantitative product metrics",
                sources=[CollectorKind.INTERNAL, CollectorKind.PRODUCT],
                priority="medium",
            )
        )
    return opportunities


def _bullet(signal: Signal) -> str:
    return f"- {signal.title or signal.source_label} ({signal.source_label}): {excerpt(signal.content)}"


def enrich_prompt(prompt: str, results: dict[CollectorKind, CollectorResult]) -> str:
    """Append the top signals of every successful collector, plus product trends."""
    sections = [prompt]
    for kind, result in results.items():
        if not result.has_data:
            continue
        bullets = "\n".join(_bullet(signal) for signal in result.signals[:TOP_SIGNALS_PER_SOURCE])
        sections.append(f"## {SECTION_HEADINGS[kind]}:\n{bullets}")

    product = results.get(CollectorKind.PRODUCT)
    if product is not None and product.succeeded and product.metric_insights and product.metric_insights.trends:
        trends = "\n".join(
            f"- {trend.metric}: {trend.direction} ({trend.percent_change}% change)"
            for trend in product.metric_insights.trends[:TOP_SIGNALS_PER_SOURCE]
        )
        sections.append(f"## Key Product Metrics Trends:\n{trends}")
    return "\n\n".join(sections)


class Synthesizer:
    """
    Turn three collector results into report prompts, summary labels and,
    when a model is configured, an LLM-written analysis.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        llm_service: LLMService | None = None,
        *,
        template_dir: str | Path | None = None,
        enable_llm: bool | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.llm_service = llm_service if llm_service is not None else LLMService(self.settings)
        self.template_dir = template_dir if template_dir is not None else self.settings.TEMPLATE_DIR
        self.enable_llm = self.settings.ENABLE_LLM_SYNTHESIS if enable_llm is None else enable_llm
        self.logger = logger or logging.getLogger(__name__)

    def executive_summary(self, results: dict[CollectorKind, CollectorResult]) -> ExecutiveSummary:
        total = OrchestrationReport.TOTAL_COLLECTORS
        successful = sum(1 for result in results.values() if result.succeeded)
        counts = {kind: (result.item_count if result.succeeded else 0) for kind, result in results.items()}
        return ExecutiveSummary(
            total_signals=sum(counts.values()),
            coverage=Coverage(
                percentage=round(successful / total * 100),
                successful=successful,
                total=total,
                status="complete" if successful == total else "partial",
            ),
            signal_strength=[
                SignalStrength(source=kind, strength=signal_strength(kind, count), count=count)
                for kind, count in counts.items()
            ],
        )

    async def _call_llm(self, prompt: str) -> LLMSynthesis:
        try:
            return await self.llm_service.synthesize(prompt)
        except LLMServiceError as exc:
            self.logger.warning("LLM synthesis failed: %s", exc)
            return LLMSynthesis(status="failed", model=exc.model, error=str(exc), fallback=prompt)

    async def synthesize(
        self,
        topic: str,
        focus: str | None,
        results: dict[CollectorKind, CollectorResult],
        execution_time_ms: int,
    ) -> SynthesisResult:
        """
        Build the synthesis block of a report.

        Args:
            topic: Requested topic.
            focus: Optional focus area.
            results: Collector results keyed by collector kind.
            execution_time_ms: Elapsed time of the collection phase.

        Returns:
            The synthesis result. LLM failures are recorded in it, never raised.
        """
        templates, from_disk = await asyncio.to_thread(load_templates, self.template_dir)
        summary = self.executive_summary(results)

        def count(kind: CollectorKind) -> int:
            result = results.get(kind)
            return result.item_count if result is not None and result.succeeded else 0

        primary = fill_template(
            templates[TemplateName.PRIMARY_SYNTHESIS],
            {
                "topic": topic,
                "focusArea": focus or "General",
                "totalSignals": summary.total_signals,
                "executionTime": execution_time_ms,
                "externalSignalCount": count(CollectorKind.EXTERNAL),
                "internalSignalCount": count(CollectorKind.INTERNAL),
                "productSignalCount": count(CollectorKind.PRODUCT),
            },
        )
        enriched = enrich_prompt(primary, results)

        def has_data(kind: CollectorKind) -> bool:
            result = results.get(kind)
            return result is not None and result.has_data

        llm_synthesis: LLMSynthesis | None = None
        if not self.enable_llm:
            llm_status = "disabled"
        elif not self.llm_service.is_configured:
            llm_status = "not_configured"
        else:
            self.logger.info("Calling %s for strategic synthesis", self.llm_service.provider)
            llm_synthesis = await self._call_llm(enriched)
            llm_status = llm_synthesis.status

        return SynthesisResult(
            executive_summary=summary,
            quality_assessment=QualityAssessment(
                coverage=summary.coverage.percentage,
                signal_reliability=signal_reliability(summary.total_signals),
                analysis_confidence=analysis_confidence(summary.coverage.successful),
            ),
            cross_references=identify_cross_references(
                has_data(CollectorKind.EXTERNAL),
                has_data(CollectorKind.INTERNAL),
                has_data(CollectorKind.PRODUCT),
            ),
            llm_status=llm_status,
            llm_synthesis=llm_synthesis,
            prompts=SynthesisPrompts(
                primary_synthesis=enriched,
                cross_reference=templates[TemplateName.CROSS_REFERENCE],
                actionable_insights=templates[TemplateName.ACTIONABLE_INSIGHTS],
                risk_assessment=templates[TemplateName.RISK_ASSESSMENT],
                templates_source="file" if from_disk else "built_in",
            ),
        )
