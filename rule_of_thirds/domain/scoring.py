"""
Relevance scoring shared by every collector.

One configurable weight table drives all three collector families; the
presets below carry the weights each family has historically used. Treat
them as tunable defaults.
"""
from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from rule_of_thirds.domain.models import TIMESTAMPED_KINDS, RawItem, Signal

# Recency blending for time-stamped kinds
RELEVANCE_WEIGHT = 0.7
RECENCY_WEIGHT = 0.3


class ScoringWeights(BaseModel):
    """Weight table for :class:`RelevanceScorer`."""

    model_config = ConfigDict(frozen=True)

    topic_phrase: float
    focus_phrase: float
    word_match: float = 0.1
    count_occurrences: bool = False
    length_bonus_threshold: int | None = None
    length_bonus: float = 0.0
    quality_keywords: tuple[str, ...] = ()
    quality_bonus: float = 0.0
    min_length: int = 100


# Market-style text rewards repeated mentions.
MARKET_WEIGHTS = ScoringWeights(topic_phrase=0.5, focus_phrase=0.3, count_occurrences=True, min_length=50)

DOCUMENT_WEIGHTS = ScoringWeights(
    topic_phrase=0.3,
    focus_phrase=0.2,
    length_bonus_threshold=1000,
    length_bonus=0.1,
    quality_keywords=("interview", "research"),
    quality_bonus=0.1,
    min_length=100,
)

METRIC_WEIGHTS = ScoringWeights(topic_phrase=0.4, focus_phrase=0.2, min_length=40)


@lru_cache(maxsize=512)
def _word_pattern(word: str) -> re.Pattern[str]:
    # \b fails next to punctuation such as "c++", so use look-arounds instead.
    return re.compile(rf"(?<!\w){re.escape(word)}(?!\w)", re.IGNORECASE)


def _words(phrase: str | None) -> list[str]:
    return phrase.split() if phrase else []


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    return max(lower, min(upper, value))


class RelevanceScorer:
    """Deterministic relevance scoring of text against a topic and optional focus."""

    def __init__(self, weights: ScoringWeights = DOCUMENT_WEIGHTS) -> None:
        self.weights = weights

    def score(self, text: str, topic: str, focus: str | None = None) -> float:
        """
        Score ``text`` against ``topic`` and ``focus``.

        Args:
            text: Body to score. Empty text scores 0.
            topic: Topic phrase; its words are also matched individually.
            focus: Optional secondary phrase, treated like the topic.

        Returns:
            A value in [0, 1]. Pure: identical inputs give identical output.
        """
        if not text:
            return 0.0

        weights = self.weights
        lowered = text.lower()
        topic_phrase = (topic or "").strip().lower()
        focus_phrase = (focus or "").strip().lower()

        score = 0.0
        if topic_phrase and topic_phrase in lowered:
            score += weights.topic_phrase
        if focus_phrase and focus_phrase in lowered:
            score += weights.focus_phrase

        for word in _words(topic_phrase) + _words(focus_phrase):
            pattern = _word_pattern(word)
            if weights.count_occurrences:
                score += weights.word_match * len(pattern.findall(text))
            elif pattern.search(text):
                score += weights.word_match

        if weights.length_bonus_threshold is not None and len(text) > weights.length_bonus_threshold:
            score += weights.length_bonus
        if any(keyword in lowered for keyword in weights.quality_keywords):
            score += weights.quality_bonus

        return clamp(score)

    def is_relevant(self, text: str, topic: str, focus: str | None = None) -> bool:
        """Cheap prefilter: long enough, and mentions the topic, the focus or a topic word."""
        if not text or len(text) <= self.weights.min_length:
            return False
        lowered = text.lower()
        topic_phrase = (topic or "").strip().lower()
        focus_phrase = (focus or "").strip().lower()
        if topic_phrase and topic_phrase in lowered:
            return True
        if focus_phrase and focus_phrase in lowered:
            return True
        return any(word in lowered for word in _words(topic_phrase))


def recency_score(published_at: datetime | None, now: datetime | None = None) -> float:
    """Step function of age in days; undated items score 0."""
    if published_at is None:
        return 0.0
    now = now or datetime.now(timezone.utc)
    candidate = published_at if published_at.tzinfo else published_at.replace(tzinfo=timezone.utc)
    age_days = (now - candidate).total_seconds() / 86400
    if age_days <= 1:
        return 1.0
    if age_days <= 7:
        return 0.8
    if age_days <= 30:
        return 0.6
    return 0.3


def blended_score(relevance: float, recency: float) -> float:
    return clamp(relevance * RELEVANCE_WEIGHT + recency * RECENCY_WEIGHT)


def default_combined_score(signal: RawItem | Signal, now: datetime | None = None) -> float:
    """Recency blend for time-stamped kinds, relevance alone for the rest."""
    relevance = getattr(signal, "relevance_score", 0.0)
    if signal.kind in TIMESTAMPED_KINDS:
        return blended_score(relevance, recency_score(signal.published_at, now))
    return relevance


def rank_signals(
    signals: Iterable[Signal],
    score_fn: Callable[[Signal], float],
    max_results: int,
) -> list[Signal]:
    """
    Attach combined scores, sort descending and truncate.

    ``sorted`` is stable, so ties keep the order the signals were given in.
    """
    scored = [signal.model_copy(update={"combined_score": clamp(score_fn(signal))}) for signal in signals]
    ranked = sorted(scored, key=lambda signal: signal.combined_score, reverse=True)
    return ranked[: max(0, max_results)]
