from __future__ import annotations

import os

# Keep the suite offline and deterministic regardless of the developer's shell.
for key in (
    "OPENAI_API_KEY",
    "AZURE_OPENAI_ENDPOINT",
    "AZURE_OPENAI_API_KEY",
    "AZURE_OPENAI_DEPLOYMENT_NAME",
    "NEWS_API_KEY",
    "YOUTUBE_API_KEY",
    "AMPLITUDE_API_KEY",
    "AMPLITUDE_SECRET_KEY",
    "GOOGLE_CREDENTIALS",
    "SHEET_ID",
):
    os.environ.pop(key, None)
os.environ.setdefault("RSS_FEEDS", "[]")
os.environ.setdefault("RESEARCH_DIRECTORIES", "[]")
os.environ.setdefault("CUSTOM_METRICS_ENDPOINTS", "[]")

from datetime import datetime, timezone

import pytest

from rule_of_thirds.core.config import Settings


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Zero-credential settings with no feeds and no research directories."""
    return Settings(
        _env_file=None,
        RSS_FEEDS=[],
        RESEARCH_DIRECTORIES=[],
        CUSTOM_METRICS_ENDPOINTS=[],
        OUTPUT_DIR=str(tmp_path / "outputs"),
    )


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_result():
    """Factory for collector results carrying ``count`` ranked signals."""
    from rule_of_thirds.domain.models import CollectorResult, CollectorStatus, Signal, SignalKind

    kinds = {"external": SignalKind.NEWS_ARTICLE, "internal": SignalKind.DOCUMENT_FINDING, "product": SignalKind.CUSTOM_METRIC}

    def factory(collector, count: int = 0, *, failed: bool = False, **extra):
        if failed:
            return CollectorResult.failed(collector, extra.pop("error", f"{collector.value} unavailable"))
        signals = [
            Signal(
                kind=kinds[collector.value],
                title=f"{collector.value} signal {index}",
                content=f"Evidence {index} about checkout flow from the {collector.value} collector.",
                source_label=f"{collector.value}-source",
                relevance_score=0.5,
                combined_score=round(1 - index / 100, 2),
            )
            for index in range(count)
        ]
        return CollectorResult(collector=collector, status=CollectorStatus.SUCCESS, signals=signals, **extra)

    return factory
