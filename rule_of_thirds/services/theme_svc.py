from __future__ import annotations

from typing import Literal

import numpy as np
from sklearn.feature_extraction.text import CountVectorizer

from rule_of_thirds.domain.models import Theme

# Words of four or more characters
LONG_WORD_PATTERN = r"(?u)\b\w{4,}\b"


class ThemeService:
    """Keyword and phrase frequency themes across research documents."""

    def __init__(self, top_keywords: int = 20, top_phrases: int = 10) -> None:
        self.top_keywords = top_keywords
        self.top_phrases = top_phrases

    def extract_themes(self, documents: list[str]) -> list[Theme]:
        """Return the most frequent keywords followed by the most frequent 2-3 word phrases."""
        texts = [text for text in documents if text and text.strip()]
        if not texts:
            return []
        keywords = self._top_terms(
            texts,
            CountVectorizer(token_pattern=LONG_WORD_PATTERN, stop_words="english"),
            self.top_keywords,
            "keyword",
        )
        phrases = self._top_terms(
            texts,
            CountVectorizer(token_pattern=LONG_WORD_PATTERN, stop_words="english", ngram_range=(2, 3)),
            self.top_phrases,
            "phrase",
        )
        return keywords + phrases

    def _top_terms(
        self,
        texts: list[str],
        vectorizer: CountVectorizer,
        limit: int,
        kind: Literal["keyword", "phrase"],
    ) -> list[Theme]:
        try:
            matrix = vectorizer.fit_transform(texts)
        except ValueError:
            # Empty vocabulary: nothing but stop words or short tokens.
            return []
        counts = np.asarray(matrix.sum(axis=0)).ravel()
        terms = vectorizer.get_feature_names_out()
        ranked = sorted(zip(terms, counts), key=lambda term_count: (-term_count[1], term_count[0]))
        return [Theme(term=str(term), count=int(count), type=kind) for term, count in ranked[:limit]]
