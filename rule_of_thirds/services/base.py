from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, NamedTuple

from rule_of_thirds.core.exceptions import ValidationError
from rule_of_thirds.domain.models import (
    CollectorKind,
    CollectorResult,
    CollectorStatus,
    RawItem,
    Signal,
    SourceBatch,
)
from rule_of_thirds.domain.scoring import RelevanceScorer, ScoringWeights, default_combined_score, rank_signals


class SubSource(NamedTuple):
    """A named provider; ``fetch`` returns a fresh coroutine on every call."""

    name: str
    fetch: Callable[[], Awaitable[SourceBatch]]


def elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class BaseCollector(ABC):
    """
    Generic collector: gather sub-sources concurrently, score, rank, truncate.

    Subclasses declare their sub-sources and may override the scoring and
    summary hooks. :meth:`collect` never raises; every failure ends up in
    the returned :class:`CollectorResult`.
    """

    kind: CollectorKind
    weights: ScoringWeights
    default_max_results: int = 20

    def __init__(
        self,
        *,
        max_results: int | None = None,
        weights: ScoringWeights | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.max_results = max_results or self.default_max_results
        self.scorer = RelevanceScorer(weights or self.weights)
        self.logger = logger or logging.getLogger(type(self).__module__)

    @abstractmethod
    def _sub_sources(self, topic: str, focus: str | None, now: datetime) -> list[SubSource]:
        """Return the enabled sub-sources in configuration order."""

    def _score_items(self, items: list[RawItem], topic: str, focus: str | None) -> list[Signal]:
        """Apply the relevance prefilter, then score the survivors."""
        signals: list[Signal] = []
        for item in items:
            text = item.searchable_text
            if not self.scorer.is_relevant(text, topic, focus):
                continue
            signals.append(Signal.from_item(item, self.scorer.score(text, topic, focus)))
        return signals

    def _combined_score(self, signal: Signal, now: datetime) -> float:
        return default_combined_score(signal, now)

    def _summarise(
        self,
        topic: str,
        focus: str | None,
        batches: list[SourceBatch],
        ranked: list[Signal],
    ) -> dict[str, Any]:
        """Extra :class:`CollectorResult` fields for this collector type."""
        return {}

    async def _gather(self, sources: list[SubSource]) -> list[SourceBatch]:
        outcomes = await asyncio.gather(*(source.fetch() for source in sources), return_exceptions=True)
        batches: list[SourceBatch] = []
        for source, outcome in zip(sources, outcomes):
            if isinstance(outcome, BaseException):
                self.logger.warning("%s sub-source %s failed: %s", self.kind.value, source.name, outcome)
                batches.append(SourceBatch.failed(source.name, str(outcome) or type(outcome).__name__))
            else:
                batches.append(outcome)
        return batches

    async def collect(self, topic: str, focus: str | None = None, *, max_results: int | None = None) -> CollectorResult:
        """
        Gather, score and rank signals for ``topic``.

        Args:
            topic: Required topic phrase.
            focus: Optional secondary term.
            max_results: Overrides the configured truncation limit for this call.

        Returns:
            A Success result (possibly with zero signals) or a Failed result
            carrying the error message. Never raises.
        """
        started = time.perf_counter()
        limit = max_results or self.max_results
        try:
            topic = (topic or "").strip()
            if not topic:
                raise ValidationError("Topic is required")
            focus = (focus or "").strip() or None
            now = datetime.now(timezone.utc)

            sources = self._sub_sources(topic, focus, now)
            batches = await self._gather(sources)
            items = [item for batch in batches if batch.status == CollectorStatus.SUCCESS for item in batch.items]

            signals = self._score_items(items, topic, focus)
            ranked = rank_signals(signals, lambda signal: self._combined_score(signal, now), limit)
            extras = self._summarise(topic, focus, batches, ranked)

            self.logger.info(
                "%s collector: %d signals from %d candidates across %d sources",
                self.kind.value,
                len(ranked),
                len(signals),
                len(batches),
            )
            return CollectorResult(
                collector=self.kind,
                status=CollectorStatus.SUCCESS,
                signals=ranked,
                execution_time_ms=elapsed_ms(started),
                sources=[batch.summary() for batch in batches],
                total_candidates=len(signals),
                **extras,
            )
        except Exception as exc:
            self.logger.error("%s collector failed: %s", self.kind.value, exc, exc_info=True)
            return CollectorResult.failed(self.kind, str(exc) or type(exc).__name__, elapsed_ms(started))
