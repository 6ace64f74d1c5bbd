from __future__ import annotations

import numpy as np
import pandas as pd

from rule_of_thirds.domain.models import (
    CollectorStatus,
    KeyFinding,
    MetricDataPoint,
    MetricInsights,
    MetricPattern,
    MetricTrend,
    Recommendation,
    SourceSummary,
    SummaryStats,
)


def classify_direction(percent_change: float) -> str:
    if percent_change > MetricsAnalyticsService.TREND_THRESHOLD:
        return "increasing"
    if percent_change < -MetricsAnalyticsService.TREND_THRESHOLD:
        return "decreasing"
    return "stable"


def percent_change(first: float, last: float) -> float:
    """First-to-last change in percent, rounded to 2dp; 0 when the series starts at 0."""
    if first == 0:
        return 0.0
    return round((last - first) / first * 100, 2)


class MetricsAnalyticsService:
    """Trend extraction and insight generation over product metric series."""

    TREND_THRESHOLD = 5.0
    SIGNIFICANT_CHANGE = 1.0
    MAX_TRENDS = 10

    # Category pairs whose metrics usually move together, with a fixed confidence.
    CORRELATED_CATEGORIES: tuple[tuple[str, str, str, float], ...] = (
        ("usage", "performance", "usage_performance_correlation", 0.7),
        ("engagement", "conversion", "engagement_conversion_correlation", 0.8),
    )

    def to_frame(self, points: list[MetricDataPoint]) -> pd.DataFrame:
        return pd.DataFrame([point.model_dump() for point in points], columns=list(MetricDataPoint.model_fields))

    def extract_trends(self, points: list[MetricDataPoint]) -> list[MetricTrend]:
        """
        One trend per metric name, in first-seen order.

        Points are grouped by metric and ordered by day before the
        first-to-last percent change is computed.
        """
        if not points:
            return []
        frame = self.to_frame(points)
        trends: list[MetricTrend] = []
        for metric, group in frame.groupby("metric", sort=False):
            ordered = group.sort_values("day", kind="stable")
            change = percent_change(float(ordered["value"].iloc[0]), float(ordered["value"].iloc[-1]))
            trends.append(
                MetricTrend(
                    metric=str(metric),
                    source_type=str(ordered["category"].iloc[0]),
                    direction=classify_direction(change),
                    percent_change=change,
                    data_points=len(ordered),
                )
            )
        return trends

    def significant_trends(self, points: list[MetricDataPoint]) -> list[MetricTrend]:
        trends = [trend for trend in self.extract_trends(points) if abs(trend.percent_change) > self.SIGNIFICANT_CHANGE]
        trends.sort(key=lambda trend: abs(trend.percent_change), reverse=True)
        return trends[: self.MAX_TRENDS]

    def recommendations(self, trends: list[MetricTrend]) -> list[Recommendation]:
        growing = [trend.metric for trend in trends if trend.direction == "increasing"]
        declining = [trend.metric for trend in trends if trend.direction == "decreasing"]
        recommendations: list[Recommendation] = []
        if growing:
            recommendations.append(
                Recommendation(
                    type="capitalize_on_growth",
                    priority="high",
                    description=f"Capitalize on growth in {len(growing)} metrics showing upward trends",
                    metrics=growing[:3],
                )
            )
        if declining:
            recommendations.append(
                Recommendation(
                    type="address_declining_metrics",
                    priority="medium",
                    description=f"Investigate decline in {len(declining)} metrics showing downward trends",
                    metrics=declining[:3],
                )
            )
        return recommendations

    def patterns(self, points: list[MetricDataPoint]) -> list[MetricPattern]:
        categories = {point.category for point in points}
        return [
            MetricPattern(
                type=pattern_type,
                description=f"{left.title()} and {right} metrics show correlated movement",
                confidence=confidence,
            )
            for left, right, pattern_type, confidence in self.CORRELATED_CATEGORIES
            if left in categories and right in categories
        ]

    def summary_stats(self, points: list[MetricDataPoint], sources: list[SourceSummary]) -> SummaryStats:
        successful = sum(1 for source in sources if source.status == CollectorStatus.SUCCESS)
        values = np.array([point.value for point in points], dtype=float)
        return SummaryStats(
            total_sources=len(sources),
            successful_sources=successful,
            failed_sources=len(sources) - successful,
            success_rate=round(successful / len(sources) * 100, 1) if sources else 0.0,
            total_data_points=len(points),
            mean_value=round(float(np.mean(values)), 2) if values.size else None,
            median_value=round(float(np.median(values)), 2) if values.size else None,
        )

    def analyze(self, points: list[MetricDataPoint], sources: list[SourceSummary]) -> MetricInsights:
        """
        Build the full insight block for one product collector run.

        Args:
            points: Every data point gathered, before relevance ranking.
            sources: Per sub-source summaries of the same run.

        Returns:
            Significant trends, recommendations, category patterns, key
            findings and summary statistics.
        """
        trends = self.significant_trends(points)
        stats = self.summary_stats(points, sources)
        metric_count = len({point.metric for point in points})
        key_findings = [
            KeyFinding(
                type="data_availability",
                description=f"{len(points)} data points collected across {metric_count} metrics",
                value=float(len(points)),
            ),
            KeyFinding(
                type="source_diversity",
                description=f"{stats.successful_sources} of {stats.total_sources} metric sources returned data",
                value=float(stats.successful_sources),
            ),
        ]
        return MetricInsights(
            trends=trends,
            patterns=self.patterns(points),
            recommendations=self.recommendations(trends),
            key_findings=key_findings,
            summary_stats=stats,
        )
