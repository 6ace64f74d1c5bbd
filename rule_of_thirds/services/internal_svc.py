from __future__ import annotations

import asyncio
import csv
import logging
import re
from collections import Counter
from datetime import datetime
from fnmatch import fnmatch
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from rule_of_thirds.core.config import (
    DEFAULT_EXCLUDE_PATTERNS,
    DEFAULT_RESEARCH_DIRECTORIES,
    DEFAULT_RESEARCH_FILE_TYPES,
    Settings,
)
from rule_of_thirds.domain.models import (
    CollectorKind,
    ContentPattern,
    RawItem,
    ResearchSummary,
    Signal,
    SignalKind,
    SourceBatch,
)
from rule_of_thirds.domain.scoring import DOCUMENT_WEIGHTS, ScoringWeights, clamp
from rule_of_thirds.services.base import BaseCollector, SubSource
from rule_of_thirds.services.document_parsers import ParsedDocument, parse_document
from rule_of_thirds.services.theme_svc import ThemeService

NO_FILES_MESSAGE = "No research files found in configured directories"
SENTENCE_BOUNDARY = re.compile(r"[.!?]+|\n+")

# Finding quality boosts
LONG_FINDING_CHARS = 200
VERY_LONG_FINDING_CHARS = 500
LENGTH_BOOST = 0.2
FILE_TYPE_BOOSTS = {".md": 0.1, ".vtt": 0.15}


class InternalCollectorConfig(BaseModel):
    directories: list[str] = Field(default_factory=lambda: list(DEFAULT_RESEARCH_DIRECTORIES))
    file_types: list[str] = Field(default_factory=lambda: list(DEFAULT_RESEARCH_FILE_TYPES))
    exclude_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    max_file_size: int = 10 * 1024 * 1024
    max_results: int = Field(default=50, ge=1)
    min_finding_length: int = 50

    @classmethod
    def from_settings(cls, settings: Settings) -> InternalCollectorConfig:
        return cls(
            directories=list(settings.RESEARCH_DIRECTORIES),
            file_types=list(settings.RESEARCH_FILE_TYPES),
            exclude_patterns=list(settings.RESEARCH_EXCLUDE_PATTERNS),
            max_file_size=settings.RESEARCH_MAX_FILE_SIZE,
            max_results=settings.INTERNAL_MAX_RESULTS,
        )


class ContentCache:
    """
    Parsed documents keyed by ``(path, mtime_ns)``.

    Entries are inserted once and never replaced, so concurrent readers can
    share it without a lock; two tasks parsing the same file both get the
    first stored document.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[str, int], ParsedDocument] = {}

    def get(self, path: Path, mtime_ns: int) -> ParsedDocument | None:
        return self._entries.get((str(path), mtime_ns))

    def put(self, path: Path, mtime_ns: int, document: ParsedDocument) -> ParsedDocument:
        return self._entries.setdefault((str(path), mtime_ns), document)

    def __len__(self) -> int:
        return len(self._entries)


def discover_files(
    directory: Path,
    file_types: list[str],
    exclude_patterns: list[str],
    max_file_size: int,
) -> list[tuple[Path, int]]:
    """Recursively list matching files as ``(path, mtime_ns)``, sorted by path."""
    if not directory.is_dir():
        return []
    extensions = {ext.lower() for ext in file_types}
    found: list[tuple[Path, int]] = []
    for path in sorted(directory.rglob("*")):
        relative_parts = path.relative_to(directory).parts
        if any(fnmatch(part, pattern) for part in relative_parts for pattern in exclude_patterns):
            continue
        if path.suffix.lower() not in extensions or not path.is_file():
            continue
        try:
            stat = path.stat()
        except OSError:
            continue
        if stat.st_size > max_file_size:
            continue
        found.append((path, stat.st_mtime_ns))
    return found


def finding_score(signal: Signal) -> float:
    """Document relevance plus boosts for long findings and structured sources."""
    score = signal.relevance_score
    if len(signal.content) > LONG_FINDING_CHARS:
        score += LENGTH_BOOST
    if len(signal.content) > VERY_LONG_FINDING_CHARS:
        score += LENGTH_BOOST
    score += FILE_TYPE_BOOSTS.get(signal.metadata.get("file_type", ""), 0.0)
    return clamp(score)


class InternalResearchCollector(BaseCollector):
    """Findings from local research documents: notes, transcripts, exports."""

    kind = CollectorKind.INTERNAL
    weights = DOCUMENT_WEIGHTS
    default_max_results = 50

    def __init__(
        self,
        config: InternalCollectorConfig | None = None,
        *,
        weights: ScoringWeights | None = None,
        cache: ContentCache | None = None,
        theme_service: ThemeService | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config or InternalCollectorConfig()
        super().__init__(max_results=self.config.max_results, weights=weights, logger=logger)
        self.cache = cache if cache is not None else ContentCache()
        self.theme_service = theme_service or ThemeService()

    def _sub_sources(self, topic: str, focus: str | None, now: datetime) -> list[SubSource]:
        sources: list[SubSource] = []
        for entry in self.config.directories:
            directory = Path(entry)
            if not directory.is_dir():
                self.logger.info("Research directory %s not found, skipping", directory)
                continue
            sources.append(SubSource(str(directory), lambda d=directory: self._scan_directory(d, topic, focus)))
        return sources

    async def _load(self, path: Path, mtime_ns: int) -> ParsedDocument | None:
        cached = self.cache.get(path, mtime_ns)
        if cached is not None:
            return cached
        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")
            document = parse_document(path, raw)
        except (OSError, ValueError, csv.Error, RecursionError) as exc:
            self.logger.warning("Skipping unreadable research file %s: %s", path, exc)
            return None
        return self.cache.put(path, mtime_ns, document)

    def _findings(self, document: ParsedDocument, relevance: float, topic: str, focus: str | None) -> list[RawItem]:
        topic_lower = topic.lower()
        focus_lower = focus.lower() if focus else None
        findings: list[RawItem] = []
        for fragment in SENTENCE_BOUNDARY.split(document.text):
            sentence = " ".join(fragment.split())
            if len(sentence) < self.config.min_finding_length:
                continue
            lowered = sentence.lower()
            if topic_lower not in lowered and not (focus_lower and focus_lower in lowered):
                continue
            findings.append(
                RawItem(
                    kind=SignalKind.DOCUMENT_FINDING,
                    title=document.title,
                    content=sentence,
                    source_label=document.path.name,
                    metadata={
                        "file_path": str(document.path),
                        "file_type": document.file_type,
                        "document_relevance": relevance,
                    },
                )
            )
        return findings

    async def _scan_directory(self, directory: Path, topic: str, focus: str | None) -> SourceBatch:
        files = await asyncio.to_thread(
            discover_files,
            directory,
            self.config.file_types,
            self.config.exclude_patterns,
            self.config.max_file_size,
        )
        loaded = await asyncio.gather(*(self._load(path, mtime_ns) for path, mtime_ns in files))
        documents = [document for document in loaded if document is not None]

        items: list[RawItem] = []
        relevant: list[ParsedDocument] = []
        for document in documents:
            if not self.scorer.is_relevant(document.text, topic, focus):
                continue
            relevant.append(document)
            items.extend(self._findings(document, self.scorer.score(document.text, topic, focus), topic, focus))

        return SourceBatch(
            name=str(directory),
            items=items,
            label=f"{len(documents)} documents",
            details={"files": len(files), "documents": documents, "relevant": relevant},
        )

    def _score_items(self, items: list[RawItem], topic: str, focus: str | None) -> list[Signal]:
        # Findings inherit the score of the document that passed the prefilter.
        return [Signal.from_item(item, item.metadata["document_relevance"]) for item in items]

    def _combined_score(self, signal: Signal, now: datetime) -> float:
        return finding_score(signal)

    def _summarise(
        self,
        topic: str,
        focus: str | None,
        batches: list[SourceBatch],
        ranked: list[Signal],
    ) -> dict[str, Any]:
        files_discovered = sum(batch.details.get("files", 0) for batch in batches)
        documents: list[ParsedDocument] = [doc for batch in batches for doc in batch.details.get("documents", [])]
        relevant: list[ParsedDocument] = [doc for batch in batches for doc in batch.details.get("relevant", [])]

        summary = ResearchSummary(
            files_discovered=files_discovered,
            files_processed=len(documents),
            relevant_documents=len(relevant),
            total_words=sum(doc.word_count for doc in documents),
            content_types=sorted({doc.file_type for doc in documents}),
            themes=self.theme_service.extract_themes([doc.text for doc in relevant]),
            patterns=self._patterns(documents),
        )
        extras: dict[str, Any] = {"research_summary": summary}
        if files_discovered == 0:
            extras["message"] = NO_FILES_MESSAGE
        else:
            extras["message"] = f"{len(relevant)} of {len(documents)} documents relevant"
        return extras

    def _patterns(self, documents: list[ParsedDocument]) -> list[ContentPattern]:
        if not documents:
            return []
        distribution = Counter(doc.file_type for doc in documents)
        average_words = sum(doc.word_count for doc in documents) / len(documents)
        return [
            ContentPattern(
                type="file_type_distribution",
                data=dict(distribution),
                insight=f"Most common file type: {distribution.most_common(1)[0][0]}",
            ),
            ContentPattern(
                type="content_length",
                data={"average_word_count": round(average_words, 1)},
                insight=f"Average document length: {round(average_words)} words",
            ),
        ]
