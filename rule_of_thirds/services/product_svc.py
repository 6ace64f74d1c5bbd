from __future__ import annotations

import json
import logging
from datetime import date, datetime, timedelta
from typing import Any
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, Field

from rule_of_thirds.core.config import HTTP_TIMEOUT_SECONDS, USER_AGENT, Settings
from rule_of_thirds.core.exceptions import AnalyticsAPIError, MetricsEndpointError
from rule_of_thirds.core.resilience import retry_with_backoff
from rule_of_thirds.domain.models import (
    CollectorKind,
    CollectorStatus,
    MetricDataPoint,
    RawItem,
    Signal,
    SignalKind,
    SourceBatch,
)
from rule_of_thirds.domain.scoring import METRIC_WEIGHTS, ScoringWeights
from rule_of_thirds.domain.taxonomy import ANALYTICS_EVENT_SUFFIXES, CATEGORY_LABELS, METRIC_CATEGORIES
from rule_of_thirds.services.analytics_svc import MetricsAnalyticsService
from rule_of_thirds.services.base import BaseCollector, SubSource
from rule_of_thirds.services.metrics_provider import (
    SERIES_DAYS,
    MetricsProvider,
    SimulatedMetricsProvider,
    simulated_analytics_events,
)
from rule_of_thirds.utils import slugify


def _format_value(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"


def metric_item(point: MetricDataPoint, topic: str, source_label: str) -> RawItem:
    """Render one data point as a rankable item whose text names metric, value, date and topic."""
    value = _format_value(point.value)
    return RawItem(
        kind=SignalKind.SIMULATED_METRIC if point.simulated else SignalKind.CUSTOM_METRIC,
        title=f"{point.metric} ({point.category})",
        content=f"{point.description or point.metric}: {point.metric} = {value} on {point.day.isoformat()} for {topic}",
        source_label=source_label,
        metadata={
            "simulated": point.simulated,
            "metric": point.metric,
            "value": point.value,
            "date": point.day.isoformat(),
            "category": point.category,
        },
    )


def numeric_leaves(payload: Any, prefix: str = "", depth: int = 0, max_depth: int = 5) -> list[tuple[str, float]]:
    """Dotted paths and values of every numeric leaf in a JSON document."""
    if depth > max_depth:
        return []
    if isinstance(payload, bool):
        return []
    if isinstance(payload, (int, float)):
        return [(prefix or "value", float(payload))]
    leaves: list[tuple[str, float]] = []
    if isinstance(payload, dict):
        for key, value in payload.items():
            leaves.extend(numeric_leaves(value, f"{prefix}.{key}" if prefix else str(key), depth + 1, max_depth))
    elif isinstance(payload, list):
        for index, value in enumerate(payload):
            leaves.extend(numeric_leaves(value, f"{prefix}[{index}]" if prefix else f"[{index}]", depth + 1, max_depth))
    return leaves


class ProductCollectorConfig(BaseModel):
    categories: list[str] = Field(default_factory=lambda: list(METRIC_CATEGORIES))
    custom_endpoints: list[str] = Field(default_factory=list)
    amplitude_api_key: str | None = None
    amplitude_secret_key: str | None = None
    max_results: int = Field(default=50, ge=1)

    @property
    def analytics_enabled(self) -> bool:
        return bool(self.amplitude_api_key and self.amplitude_secret_key)

    @classmethod
    def from_settings(cls, settings: Settings) -> ProductCollectorConfig:
        return cls(
            custom_endpoints=list(settings.CUSTOM_METRICS_ENDPOINTS),
            amplitude_api_key=settings.AMPLITUDE_API_KEY,
            amplitude_secret_key=settings.AMPLITUDE_SECRET_KEY,
            max_results=settings.PRODUCT_MAX_RESULTS,
        )


class CustomMetricsService:
    """Fetch JSON metrics from a configured HTTP endpoint."""

    async def fetch(self, endpoint: str, topic: str, today: date) -> list[MetricDataPoint]:
        """
        GET ``endpoint`` and turn every numeric value into a data point.

        Raises:
            MetricsEndpointError: If the request fails or the body is not JSON.
        """
        try:
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS, headers={"User-Agent": USER_AGENT}) as client:
                response = await client.get(endpoint, params={"topic": topic})
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, json.JSONDecodeError) as exc:
            raise MetricsEndpointError(f"Custom metrics endpoint failed: {endpoint} - {exc}", endpoint=endpoint) from exc

        host = urlparse(endpoint).netloc or endpoint
        return [
            MetricDataPoint(
                day=today,
                metric=path,
                value=value,
                category="custom",
                description=f"Custom metric from {host}",
            )
            for path, value in numeric_leaves(payload)
        ]


class AmplitudeService:
    """Event segmentation client for the Amplitude analytics platform."""

    BASE_URL = "https://amplitude.com/api/2/events/segmentation"

    def __init__(self, api_key: str, secret_key: str, days: int = SERIES_DAYS) -> None:
        self.auth = (api_key, secret_key)
        self.days = days

    @retry_with_backoff()
    async def _request(self, client: httpx.AsyncClient, params: dict[str, str]) -> dict[str, Any]:
        response = await client.get(self.BASE_URL, params=params, auth=self.auth)
        response.raise_for_status()
        return response.json()

    async def event_series(self, topic: str, end: date) -> list[MetricDataPoint]:
        """
        Daily counts for the topic's view/click/complete/share events.

        Raises:
            AnalyticsAPIError: If any segmentation request fails.
        """
        start = end - timedelta(days=self.days - 1)
        prefix = slugify(topic)
        points: list[MetricDataPoint] = []
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
            for suffix in ANALYTICS_EVENT_SUFFIXES:
                event = f"{prefix}_{suffix}"
                params = {
                    "e": json.dumps({"event_type": event}),
                    "start": start.strftime("%Y%m%d"),
                    "end": end.strftime("%Y%m%d"),
                }
                try:
                    payload = await self._request(client, params)
                except httpx.HTTPStatusError as exc:
                    raise AnalyticsAPIError(
                        f"Amplitude API request failed with status {exc.response.status_code}",
                        status_code=exc.response.status_code,
                    ) from exc
                except (httpx.HTTPError, ValueError) as exc:
                    raise AnalyticsAPIError(f"Amplitude API request failed: {exc}") from exc

                try:
                    points.extend(self._map_series(payload, event, suffix, topic))
                except (AttributeError, IndexError, KeyError, TypeError, ValueError) as exc:
                    raise AnalyticsAPIError(f"Unexpected Amplitude response for {event}: {exc}") from exc
        return points

    @staticmethod
    def _map_series(payload: Any, event: str, suffix: str, topic: str) -> list[MetricDataPoint]:
        data = (payload.get("data") if isinstance(payload, dict) else None) or {}
        series = (data.get("series") or [[]])[0]
        return [
            MetricDataPoint(
                day=date.fromisoformat(str(day)[:10]),
                metric=event,
                value=float(count),
                category="analytics",
                description=f"Daily '{suffix}' events for {topic}",
            )
            for day, count in zip(data.get("xValues") or [], series)
        ]


class ProductMetricsCollector(BaseCollector):
    """Product metrics: per-category series, custom endpoints and analytics events."""

    kind = CollectorKind.PRODUCT
    weights = METRIC_WEIGHTS
    default_max_results = 50

    def __init__(
        self,
        config: ProductCollectorConfig | None = None,
        *,
        provider: MetricsProvider | None = None,
        analytics: MetricsAnalyticsService | None = None,
        custom_metrics: CustomMetricsService | None = None,
        amplitude: AmplitudeService | None = None,
        weights: ScoringWeights | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config or ProductCollectorConfig()
        super().__init__(max_results=self.config.max_results, weights=weights, logger=logger)
        self.provider = provider or SimulatedMetricsProvider()
        self.analytics = analytics or MetricsAnalyticsService()
        self.custom_metrics = custom_metrics or CustomMetricsService()
        self.amplitude = amplitude
        if self.amplitude is None and self.config.analytics_enabled:
            self.amplitude = AmplitudeService(self.config.amplitude_api_key or "", self.config.amplitude_secret_key or "")

    def _sub_sources(self, topic: str, focus: str | None, now: datetime) -> list[SubSource]:
        today = now.date()
        sources = [
            SubSource(category, lambda c=category: self._category_batch(c, topic, today))
            for category in self.config.categories
        ]
        sources.extend(
            SubSource(endpoint, lambda e=endpoint: self._endpoint_batch(e, topic, today))
            for endpoint in self.config.custom_endpoints
        )
        if self.amplitude is not None:
            amplitude = self.amplitude
            sources.append(SubSource("amplitude", lambda: self._analytics_batch(amplitude, topic, today)))
        return sources

    def _batch(self, name: str, points: list[MetricDataPoint], topic: str, label: str, simulated: bool) -> SourceBatch:
        return SourceBatch(
            name=name,
            items=[metric_item(point, topic, label) for point in points],
            label=label,
            simulated=simulated,
            details={"data_points": points},
        )

    async def _category_batch(self, category: str, topic: str, today: date) -> SourceBatch:
        points = await self.provider.fetch_category(topic, category, end=today)
        label = CATEGORY_LABELS.get(category, category.title())
        return self._batch(category, points, topic, label, any(point.simulated for point in points))

    async def _endpoint_batch(self, endpoint: str, topic: str, today: date) -> SourceBatch:
        points = await self.custom_metrics.fetch(endpoint, topic, today)
        return self._batch(endpoint, points, topic, "Custom Metrics Endpoint", False)

    async def _analytics_batch(self, amplitude: AmplitudeService, topic: str, today: date) -> SourceBatch:
        try:
            points = await amplitude.event_series(topic, today)
        except AnalyticsAPIError as exc:
            self.logger.warning("Amplitude API failed: %s, falling back to simulated events", exc)
            points = simulated_analytics_events(topic, today)
            return self._batch("amplitude", points, topic, "Simulated Analytics Data", True)
        return self._batch("amplitude", points, topic, "Amplitude Analytics", False)

    def _summarise(
        self,
        topic: str,
        focus: str | None,
        batches: list[SourceBatch],
        ranked: list[Signal],
    ) -> dict[str, Any]:
        points: list[MetricDataPoint] = [
            point
            for batch in batches
            if batch.status == CollectorStatus.SUCCESS
            for point in batch.details.get("data_points", [])
        ]
        insights = self.analytics.analyze(points, [batch.summary() for batch in batches])
        successful = insights.summary_stats.successful_sources
        return {
            "metric_insights": insights,
            "message": f"{len(points)} data points from {successful}/{len(batches)} metric sources",
        }
