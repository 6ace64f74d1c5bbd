"""Custom exceptions for Rule of Thirds."""

from __future__ import annotations


class RuleOfThirdsError(Exception):
    """Base exception for all Rule of Thirds errors."""
    pass


class ValidationError(RuleOfThirdsError):
    """Raised when input validation fails."""
    pass


class SubSourceError(RuleOfThirdsError):
    """Raised when a single provider inside a collector fails."""

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        super().__init__(message)


class NewsAPIError(SubSourceError):
    """Raised when the news search API fails."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message, source="news")


class VideoAPIError(SubSourceError):
    """Raised when the video search API fails."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message, source="video")


class FeedError(SubSourceError):
    """Raised when syndication feeds cannot be fetched or parsed."""

    def __init__(self, message: str, feed_url: str | None = None):
        self.feed_url = feed_url
        super().__init__(message, source="feeds")


class MetricsEndpointError(SubSourceError):
    """Raised when a custom metrics endpoint fails."""

    def __init__(self, message: str, endpoint: str | None = None):
        self.endpoint = endpoint
        super().__init__(message, source="custom")


class AnalyticsAPIError(SubSourceError):
    """Raised when the analytics platform API fails."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message, source="amplitude")


class CollectorError(RuleOfThirdsError):
    """Raised when a collector exhausts its retry budget."""

    def __init__(self, message: str, collector: str | None = None, attempts: int = 0):
        self.collector = collector
        self.attempts = attempts
        super().__init__(message)


class CollectorTimeoutError(CollectorError):
    """Raised when a single collector attempt exceeds its timeout."""
    pass


class SynthesisError(RuleOfThirdsError):
    """Raised when the synthesis step fails."""
    pass


class LLMServiceError(SynthesisError):
    """Raised when OpenAI/LLM service fails."""

    def __init__(self, message: str, model: str | None = None):
        self.model = model
        super().__init__(message)


class StorageError(RuleOfThirdsError):
    """Raised when report artifacts cannot be written."""
    pass


class OrchestrationError(RuleOfThirdsError):
    """Raised when orchestration fails for a reason no other layer recovered."""
    pass
