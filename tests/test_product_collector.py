"""
Tests for simulated metrics, trend analytics and the product metrics collector.
"""
from __future__ import annotations

from datetime import date, timedelta

import httpx
import pytest
import respx

from rule_of_thirds.core.exceptions import AnalyticsAPIError
from rule_of_thirds.domain.models import CollectorStatus, MetricDataPoint, SignalKind, SourceSummary
from rule_of_thirds.services.analytics_svc import MetricsAnalyticsService, classify_direction, percent_change
from rule_of_thirds.services.metrics_provider import (
    MetricsProvider,
    SimulatedMetricsProvider,
    simulated_analytics_events,
)
from rule_of_thirds.services.product_svc import (
    AmplitudeService,
    ProductCollectorConfig,
    ProductMetricsCollector,
    metric_item,
    numeric_leaves,
)

END = date(2025, 3, 14)
ENDPOINT = "https://metrics.example.com/checkout"
BROKEN_ENDPOINT = "https://metrics.example.com/broken"


def _series(metric: str, values: list[float], category: str = "usage") -> list[MetricDataPoint]:
    start = END - timedelta(days=len(values) - 1)
    return [
        MetricDataPoint(day=start + timedelta(days=offset), metric=metric, value=value, category=category)
        for offset, value in enumerate(values)
    ]


class StubProvider:
    name = "stub"

    def __init__(self, points: list[MetricDataPoint]):
        self.points = points

    async def fetch_category(self, topic, category, *, end):
        return [point for point in self.points if point.category == category]


class TestAnalytics:
    def test_increasing_series(self):
        points = _series("signups", [100, 105, 108, 110, 112, 118, 120])

        trends = MetricsAnalyticsService().extract_trends(points)

        assert len(trends) == 1
        assert trends[0].direction == "increasing"
        assert trends[0].percent_change == 20.0
        assert trends[0].data_points == 7

    def test_unordered_points_are_sorted_by_day(self):
        points = list(reversed(_series("errors", [50, 40, 30])))

        trend = MetricsAnalyticsService().extract_trends(points)[0]

        assert trend.direction == "decreasing"
        assert trend.percent_change == -40.0

    @pytest.mark.parametrize(
        ("change", "direction"),
        [(5.01, "increasing"), (5.0, "stable"), (-5.0, "stable"), (-5.01, "decreasing"), (0.0, "stable")],
    )
    def test_direction_thresholds(self, change, direction):
        assert classify_direction(change) == direction

    def test_zero_start_gives_zero_change(self):
        assert percent_change(0, 50) == 0.0

    def test_significant_trends_drop_flat_metrics(self):
        points = _series("flat", [100, 100.5]) + _series("jump", [10, 20]) + _series("dip", [10, 9])

        trends = MetricsAnalyticsService().significant_trends(points)

        assert [trend.metric for trend in trends] == ["jump", "dip"]

    def test_recommendations(self):
        points = _series("signups", [100, 130]) + _series("churn", [10, 5], category="engagement")
        service = MetricsAnalyticsService()

        recommendations = service.recommendations(service.significant_trends(points))

        assert [(r.type, r.priority, r.metrics) for r in recommendations] == [
            ("capitalize_on_growth", "high", ["signups"]),
            ("address_declining_metrics", "medium", ["churn"]),
        ]

    def test_analyze_builds_findings_and_patterns(self):
        points = _series("users", [10, 20], "usage") + _series("latency", [300, 300], "performance")
        sources = [
            SourceSummary(name="usage", status=CollectorStatus.SUCCESS, count=2),
            SourceSummary(name="performance", status=CollectorStatus.SUCCESS, count=2),
            SourceSummary(name="custom", status=CollectorStatus.FAILED, error="down"),
        ]

        insights = MetricsAnalyticsService().analyze(points, sources)

        assert [pattern.type for pattern in insights.patterns] == ["usage_performance_correlation"]
        assert [finding.type for finding in insights.key_findings] == ["data_availability", "source_diversity"]
        assert insights.summary_stats.failed_sources == 1
        assert insights.summary_stats.success_rate == 66.7
        assert insights.summary_stats.total_data_points == 4

    def test_analyze_with_no_points(self):
        insights = MetricsAnalyticsService().analyze([], [])
        assert insights.trends == []
        assert insights.summary_stats.mean_value is None


class TestSimulatedMetrics:
    def test_series_is_deterministic(self):
        provider = SimulatedMetricsProvider()
        assert provider.series("checkout flow", "usage", END) == provider.series("checkout flow", "usage", END)

    def test_topics_get_different_series(self):
        provider = SimulatedMetricsProvider()
        first = [point.value for point in provider.series("checkout flow", "usage", END)]
        second = [point.value for point in provider.series("search ranking", "usage", END)]
        assert first != second

    def test_infrastructure_topics_get_deployment_metrics(self):
        provider = SimulatedMetricsProvider()
        infra = {definition.name for definition in provider.vocabulary("Bicep templates", "usage")}
        generic = {definition.name for definition in provider.vocabulary("checkout flow", "usage")}
        assert "bicep_deployments_daily" in infra
        assert generic == {"daily_active_users", "feature_usage"}

    def test_series_covers_seven_days_ending_today(self):
        points = SimulatedMetricsProvider().series("checkout flow", "conversion", END)
        days = sorted({point.day for point in points})
        assert len(days) == 7
        assert days[-1] == END
        assert all(point.simulated for point in points)

    def test_analytics_events_are_named_after_topic(self):
        points = simulated_analytics_events("Checkout Flow", END)
        assert {point.metric for point in points} == {
            "checkout_flow_view",
            "checkout_flow_click",
            "checkout_flow_complete",
            "checkout_flow_share",
        }
        assert all(50 <= point.value < 1050 for point in points)

    def test_provider_protocol(self):
        assert isinstance(SimulatedMetricsProvider(), MetricsProvider)
        assert isinstance(StubProvider([]), MetricsProvider)


class TestHelpers:
    def test_metric_item_text_names_metric_value_date_and_topic(self):
        point = MetricDataPoint(day=END, metric="revenue_usd", value=1234.0, category="conversion", simulated=True)
        item = metric_item(point, "checkout flow", "Conversion Analytics")
        assert item.content == "revenue_usd: revenue_usd = 1234 on 2025-03-14 for checkout flow"
        assert item.kind == SignalKind.SIMULATED_METRIC
        assert item.metadata["category"] == "conversion"

    def test_numeric_leaves_skip_booleans_and_strings(self):
        payload = {"conversion": {"rate": 0.42}, "steps": [3, 5], "label": "x", "live": True}
        assert numeric_leaves(payload) == [("conversion.rate", 0.42), ("steps[0]", 3.0), ("steps[1]", 5.0)]


class TestProductMetricsCollector:
    @pytest.mark.asyncio
    async def test_simulated_run(self):
        collector = ProductMetricsCollector(ProductCollectorConfig(max_results=20))

        result = await collector.collect("checkout flow")

        assert result.status == CollectorStatus.SUCCESS
        assert result.item_count == 20
        assert result.total_candidates == 56
        assert all(signal.kind == SignalKind.SIMULATED_METRIC for signal in result.signals)
        assert [source.name for source in result.sources] == ["usage", "performance", "engagement", "conversion"]
        assert result.metric_insights.summary_stats.total_data_points == 56
        assert result.message == "56 data points from 4/4 metric sources"

    @pytest.mark.asyncio
    async def test_stub_provider_feeds_insights(self):
        provider = StubProvider(_series("signups", [100, 105, 108, 110, 112, 118, 120]))
        collector = ProductMetricsCollector(ProductCollectorConfig(categories=["usage"]), provider=provider)

        result = await collector.collect("checkout flow")

        trend = result.metric_insights.trends[0]
        assert (trend.metric, trend.direction, trend.percent_change) == ("signups", "increasing", 20.0)
        assert all(signal.kind == SignalKind.CUSTOM_METRIC for signal in result.signals)

    @pytest.mark.asyncio
    @respx.mock
    async def test_failing_endpoint_is_isolated(self):
        respx.get(ENDPOINT).mock(return_value=httpx.Response(200, json={"checkout": {"completion_rate": 61.5}}))
        respx.get(BROKEN_ENDPOINT).mock(return_value=httpx.Response(500))
        config = ProductCollectorConfig(categories=["usage"], custom_endpoints=[ENDPOINT, BROKEN_ENDPOINT])

        result = await ProductMetricsCollector(config).collect("checkout flow")

        assert result.status == CollectorStatus.SUCCESS
        statuses = {source.name: source.status for source in result.sources}
        assert statuses == {
            "usage": CollectorStatus.SUCCESS,
            ENDPOINT: CollectorStatus.SUCCESS,
            BROKEN_ENDPOINT: CollectorStatus.FAILED,
        }
        custom = [signal for signal in result.signals if signal.kind == SignalKind.CUSTOM_METRIC]
        assert [signal.metadata["metric"] for signal in custom] == ["checkout.completion_rate"]
        assert result.metric_insights.summary_stats.failed_sources == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_amplitude_failure_falls_back_to_simulated_events(self):
        respx.get(AmplitudeService.BASE_URL).mock(return_value=httpx.Response(401))
        config = ProductCollectorConfig(categories=[], amplitude_api_key="key", amplitude_secret_key="secret")

        result = await ProductMetricsCollector(config).collect("checkout flow")

        assert result.status == CollectorStatus.SUCCESS
        amplitude = result.sources[0]
        assert amplitude.name == "amplitude"
        assert amplitude.simulated is True
        assert amplitude.label == "Simulated Analytics Data"
        assert amplitude.count == 28

    @pytest.mark.asyncio
    @respx.mock
    async def test_null_amplitude_payload_falls_back_to_simulated_events(self):
        respx.get(AmplitudeService.BASE_URL).mock(return_value=httpx.Response(200, json={"data": None}))
        config = ProductCollectorConfig(categories=[], amplitude_api_key="key", amplitude_secret_key="secret")

        result = await ProductMetricsCollector(config).collect("checkout flow")

        amplitude = result.sources[0]
        assert amplitude.status == CollectorStatus.SUCCESS
        assert amplitude.simulated is True
        assert amplitude.count == 28

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_amplitude_dates_raise_analytics_error(self):
        respx.get(AmplitudeService.BASE_URL).mock(
            return_value=httpx.Response(200, json={"data": {"xValues": ["yesterday"], "series": [[4]]}})
        )

        with pytest.raises(AnalyticsAPIError, match="Unexpected Amplitude response"):
            await AmplitudeService("key", "secret", days=2).event_series("checkout flow", END)

    @pytest.mark.asyncio
    @respx.mock
    async def test_amplitude_series_are_mapped(self):
        days = [(END - timedelta(days=offset)).isoformat() for offset in (1, 0)]
        respx.get(AmplitudeService.BASE_URL).mock(
            return_value=httpx.Response(200, json={"data": {"xValues": days, "series": [[10, 12]]}})
        )

        points = await AmplitudeService("key", "secret", days=2).event_series("checkout flow", END)

        assert len(points) == 8
        assert points[0].metric == "checkout_flow_view"
        assert points[0].value == 10.0
        assert points[1].day == END
        assert not points[0].simulated
