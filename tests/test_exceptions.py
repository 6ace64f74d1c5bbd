"""
Tests for custom exception hierarchy in rule_of_thirds.core.exceptions.
"""
from __future__ import annotations

import pytest

from rule_of_thirds.core.exceptions import (
    AnalyticsAPIError,
    CollectorError,
    CollectorTimeoutError,
    FeedError,
    LLMServiceError,
    MetricsEndpointError,
    NewsAPIError,
    OrchestrationError,
    RuleOfThirdsError,
    StorageError,
    SubSourceError,
    SynthesisError,
    ValidationError,
    VideoAPIError,
)


class TestExceptionHierarchy:
    """Verify inheritance relationships in the exception hierarchy."""

    def test_all_exceptions_inherit_from_rule_of_thirds_error(self):
        for exc_cls in (
            ValidationError, SubSourceError, NewsAPIError, VideoAPIError, FeedError,
            MetricsEndpointError, AnalyticsAPIError, CollectorError, CollectorTimeoutError,
            SynthesisError, LLMServiceError, StorageError, OrchestrationError,
        ):
            assert issubclass(exc_cls, RuleOfThirdsError)

    def test_provider_errors_inherit_from_sub_source_error(self):
        for exc_cls in (NewsAPIError, VideoAPIError, FeedError, MetricsEndpointError, AnalyticsAPIError):
            assert issubclass(exc_cls, SubSourceError)

    def test_timeout_is_a_collector_error(self):
        assert issubclass(CollectorTimeoutError, CollectorError)

    def test_llm_error_is_a_synthesis_error(self):
        assert issubclass(LLMServiceError, SynthesisError)


class TestSubSourceErrors:
    @pytest.mark.parametrize(
        ("exc", "source"),
        [
            (NewsAPIError("down", status_code=503), "news"),
            (VideoAPIError("quota", status_code=403), "video"),
            (FeedError("bad xml", feed_url="https://example.com/rss"), "feeds"),
            (MetricsEndpointError("timeout", endpoint="https://metrics.example.com"), "custom"),
            (AnalyticsAPIError("unauthorised", status_code=401), "amplitude"),
        ],
    )
    def test_source_is_recorded(self, exc, source):
        assert exc.source == source

    def test_status_code_defaults_to_none(self):
        err = NewsAPIError("Network error")
        assert err.status_code is None
        assert str(err) == "Network error"


class TestCollectorError:
    def test_attributes(self):
        err = CollectorError("external collector failed", collector="external", attempts=2)
        assert err.collector == "external"
        assert err.attempts == 2
        assert str(err) == "external collector failed"

    def test_catchable_as_collector_error(self):
        with pytest.raises(CollectorError):
            raise CollectorTimeoutError("timed out", collector="product", attempts=1)


def test_llm_service_error_keeps_model():
    err = LLMServiceError("rate limited", model="gpt-4o-mini")
    assert err.model == "gpt-4o-mini"
