from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SignalKind(str, Enum):
    """Source type of a signal; decides which metadata keys are present."""

    NEWS_ARTICLE = "news_article"
    VIDEO_ITEM = "video_item"
    FEED_ARTICLE = "feed_article"
    DOCUMENT_FINDING = "document_finding"
    SIMULATED_METRIC = "simulated_metric"
    CUSTOM_METRIC = "custom_metric"


TIMESTAMPED_KINDS = frozenset({SignalKind.NEWS_ARTICLE, SignalKind.VIDEO_ITEM, SignalKind.FEED_ARTICLE})


class CollectorKind(str, Enum):
    EXTERNAL = "external"
    INTERNAL = "internal"
    PRODUCT = "product"


class CollectorStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class RawItem(BaseModel):
    """Unscored candidate produced by a sub-source."""

    model_config = ConfigDict(frozen=True)

    kind: SignalKind
    title: str | None = None
    content: str
    source_label: str
    url: str | None = None
    published_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def searchable_text(self) -> str:
        """Title and body joined, the text every relevance check runs against."""
        return f"{self.title} {self.content}" if self.title else self.content

    @property
    def is_simulated(self) -> bool:
        return bool(self.metadata.get("simulated", False))


class Signal(RawItem):
    """A scored item. ``combined_score`` is only meaningful for ranking."""

    relevance_score: float = Field(ge=0.0, le=1.0)
    combined_score: float = Field(default=0.0, ge=0.0, le=1.0)

    @classmethod
    def from_item(cls, item: RawItem, relevance_score: float) -> Signal:
        return cls(**item.model_dump(include=set(RawItem.model_fields)), relevance_score=relevance_score)


class SourceBatch(BaseModel):
    """What one sub-source contributed to a collector run."""

    name: str
    status: CollectorStatus = CollectorStatus.SUCCESS
    items: list[RawItem] = Field(default_factory=list)
    label: str | None = None
    simulated: bool = False
    error: str | None = None
    # Per-run context for the owning collector (parsed documents, raw data points).
    details: dict[str, Any] = Field(default_factory=dict, exclude=True)

    @property
    def count(self) -> int:
        return len(self.items)

    @classmethod
    def failed(cls, name: str, error: str) -> SourceBatch:
        return cls(name=name, status=CollectorStatus.FAILED, error=error)

    def summary(self) -> SourceSummary:
        return SourceSummary(
            name=self.name,
            status=self.status,
            count=self.count,
            label=self.label,
            simulated=self.simulated,
            error=self.error,
        )


class SourceSummary(BaseModel):
    name: str
    status: CollectorStatus
    count: int = 0
    label: str | None = None
    simulated: bool = False
    error: str | None = None


class Theme(BaseModel):
    term: str
    count: int
    type: Literal["keyword", "phrase"]


class ContentPattern(BaseModel):
    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    insight: str


class ResearchSummary(BaseModel):
    """Document-level context gathered by the internal collector."""

    files_discovered: int = 0
    files_processed: int = 0
    relevant_documents: int = 0
    total_words: int = 0
    content_types: list[str] = Field(default_factory=list)
    themes: list[Theme] = Field(default_factory=list)
    patterns: list[ContentPattern] = Field(default_factory=list)


class MetricDataPoint(BaseModel):
    """One observation of a product metric."""

    day: date
    metric: str
    value: float
    category: str
    description: str | None = None
    simulated: bool = False


class MetricTrend(BaseModel):
    metric: str
    source_type: str
    direction: Literal["increasing", "decreasing", "stable"]
    percent_change: float
    data_points: int


class Recommendation(BaseModel):
    type: str
    priority: Literal["high", "medium", "low"]
    description: str
    metrics: list[str] = Field(default_factory=list)


class MetricPattern(BaseModel):
    type: str
    description: str
    confidence: float


class KeyFinding(BaseModel):
    type: str
    description: str
    value: float


class SummaryStats(BaseModel):
    total_sources: int = 0
    successful_sources: int = 0
    failed_sources: int = 0
    success_rate: float = 0.0
    total_data_points: int = 0
    mean_value: float | None = None
    median_value: float | None = None


class MetricInsights(BaseModel):
    """Trend analysis over every data point the product collector gathered."""

    trends: list[MetricTrend] = Field(default_factory=list)
    patterns: list[MetricPattern] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    key_findings: list[KeyFinding] = Field(default_factory=list)
    summary_stats: SummaryStats = Field(default_factory=SummaryStats)


class CollectorResult(BaseModel):
    """Outcome of one collector invocation. Signals are in rank order."""

    model_config = ConfigDict(frozen=True)

    collector: CollectorKind
    status: CollectorStatus
    signals: list[Signal] = Field(default_factory=list)
    error_message: str | None = None
    execution_time_ms: int = 0
    timestamp: datetime = Field(default_factory=utc_now)
    message: str | None = None
    sources: list[SourceSummary] = Field(default_factory=list)
    total_candidates: int = 0
    research_summary: ResearchSummary | None = None
    metric_insights: MetricInsights | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def item_count(self) -> int:
        return len(self.signals)

    @property
    def succeeded(self) -> bool:
        return self.status == CollectorStatus.SUCCESS

    @property
    def has_data(self) -> bool:
        return self.succeeded and self.item_count > 0

    @model_validator(mode="after")
    def failed_result_has_no_signals(self) -> CollectorResult:
        if self.status == CollectorStatus.FAILED and self.signals:
            raise ValueError("a failed collector result cannot carry signals")
        return self

    @classmethod
    def failed(cls, collector: CollectorKind, error: str, execution_time_ms: int = 0) -> CollectorResult:
        return cls(
            collector=collector,
            status=CollectorStatus.FAILED,
            error_message=error,
            execution_time_ms=execution_time_ms,
        )


class SignalStrength(BaseModel):
    source: CollectorKind
    strength: Literal["strong", "medium", "weak"]
    count: int


class Coverage(BaseModel):
    percentage: int
    successful: int
    total: int
    status: Literal["complete", "partial"]


class ExecutiveSummary(BaseModel):
    total_signals: int
    coverage: Coverage
    signal_strength: list[SignalStrength]


class QualityAssessment(BaseModel):
    coverage: int
    signal_reliability: Literal["High", "Medium", "Low"]
    analysis_confidence: Literal["High", "Medium", "Low"]


class CrossReferenceOpportunity(BaseModel):
    type: str
    description: str
    sources: list[CollectorKind]
    priority: Literal["high", "medium", "low"]


class LLMSynthesis(BaseModel):
    """Result of the text-generation call, successful or not."""

    status: Literal["completed", "failed"]
    content: str | None = None
    model: str | None = None
    usage: dict[str, int] | None = None
    execution_time_ms: int | None = None
    timestamp: datetime = Field(default_factory=utc_now)
    error: str | None = None
    fallback: str | None = None


class SynthesisPrompts(BaseModel):
    primary_synthesis: str
    cross_reference: str
    actionable_insights: str
    risk_assessment: str
    templates_source: Literal["file", "built_in"] = "built_in"


class SynthesisResult(BaseModel):
    executive_summary: ExecutiveSummary
    quality_assessment: QualityAssessment
    cross_references: list[CrossReferenceOpportunity] = Field(default_factory=list)
    llm_status: Literal["completed", "failed", "not_configured", "disabled"]
    llm_synthesis: LLMSynthesis | None = None
    prompts: SynthesisPrompts


class OrchestrationReport(BaseModel):
    """Final aggregate of one run. Built once, never mutated."""

    model_config = ConfigDict(frozen=True)

    TOTAL_COLLECTORS: ClassVar[int] = 3

    topic: str
    focus: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)
    external: CollectorResult
    internal: CollectorResult
    product: CollectorResult
    execution_time_ms: int = 0
    synthesis: SynthesisResult | None = None
    synthesis_error: str | None = None

    @property
    def results(self) -> dict[CollectorKind, CollectorResult]:
        return {
            CollectorKind.EXTERNAL: self.external,
            CollectorKind.INTERNAL: self.internal,
            CollectorKind.PRODUCT: self.product,
        }

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_signal_count(self) -> int:
        return sum(result.item_count for result in self.results.values() if result.succeeded)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def successful_collector_count(self) -> int:
        return sum(1 for result in self.results.values() if result.succeeded)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def collector_status(self) -> dict[str, bool]:
        return {kind.value: result.succeeded for kind, result in self.results.items()}


class ReportOutputs(BaseModel):
    directory: str
    files: list[str]
    combined_report: str
    human_summary: str
    indexed_in_sheets: bool = False


class OrchestrationOutcome(BaseModel):
    """Top-level result shape: a report, or a validation/fatal failure."""

    success: bool
    report: OrchestrationReport | None = None
    error_type: Literal["validation", "fatal"] | None = None
    error: str | None = None
    outputs: ReportOutputs | None = None


class OrchestrateRequest(BaseModel):
    topic: str
    focus_area: str | None = None
    persist: bool = False


class AnalyzeRequest(BaseModel):
    topic: str
    focus: str | None = None
    max_results: int | None = Field(default=None, ge=1, le=200)
