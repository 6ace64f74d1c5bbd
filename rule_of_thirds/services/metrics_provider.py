from __future__ import annotations

import zlib
from datetime import date, timedelta
from typing import Protocol, runtime_checkable

import numpy as np

from rule_of_thirds.domain.models import MetricDataPoint
from rule_of_thirds.domain.taxonomy import (
    ANALYTICS_EVENT_SUFFIXES,
    GENERIC_METRICS,
    INFRASTRUCTURE_METRICS,
    MetricSpec,
    is_infrastructure_topic,
)
from rule_of_thirds.utils import slugify

SERIES_DAYS = 7


def _seed(*parts: str) -> int:
    return zlib.crc32("|".join(parts).encode("utf-8"))


def _series_days(end: date, days: int) -> list[date]:
    return [end - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


@runtime_checkable
class MetricsProvider(Protocol):
    """Source of product metric series for one category."""

    name: str

    async def fetch_category(self, topic: str, category: str, *, end: date) -> list[MetricDataPoint]:
        ...


class SimulatedMetricsProvider:
    """
    Deterministic synthetic metrics.

    Every series is seeded from the topic and category, so the same request
    always yields the same numbers. Infrastructure-flavoured topics get
    deployment and validation metrics; everything else gets generic product
    usage metrics.
    """

    name = "simulated"

    def __init__(self, days: int = SERIES_DAYS) -> None:
        self.days = days

    def vocabulary(self, topic: str, category: str) -> tuple[MetricSpec, ...]:
        table = INFRASTRUCTURE_METRICS if is_infrastructure_topic(topic) else GENERIC_METRICS
        return table.get(category, ())

    def series(self, topic: str, category: str, end: date) -> list[MetricDataPoint]:
        rng = np.random.default_rng(_seed(topic.lower(), category))
        days = _series_days(end, self.days)
        points: list[MetricDataPoint] = []
        for definition in self.vocabulary(topic, category):
            values = rng.uniform(definition.low, definition.high, size=len(days))
            values = np.rint(values) if definition.integer else np.round(values, 2)
            points.extend(
                MetricDataPoint(
                    day=day,
                    metric=definition.name,
                    value=float(value),
                    category=category,
                    description=definition.description,
                    simulated=True,
                )
                for day, value in zip(days, values)
            )
        return points

    async def fetch_category(self, topic: str, category: str, *, end: date) -> list[MetricDataPoint]:
        return self.series(topic, category, end)


def simulated_analytics_events(topic: str, end: date, days: int = SERIES_DAYS) -> list[MetricDataPoint]:
    """Stand-in event counts shaped like an analytics platform's segmentation output."""
    rng = np.random.default_rng(_seed(topic.lower(), "analytics"))
    prefix = slugify(topic)
    points: list[MetricDataPoint] = []
    for suffix in ANALYTICS_EVENT_SUFFIXES:
        counts = rng.integers(50, 1050, size=days)
        points.extend(
            MetricDataPoint(
                day=day,
                metric=f"{prefix}_{suffix}",
                value=float(count),
                category="analytics",
                description=f"Daily '{suffix}' events for {topic}",
                simulated=True,
            )
            for day, count in zip(_series_days(end, days), counts)
        )
    return points
