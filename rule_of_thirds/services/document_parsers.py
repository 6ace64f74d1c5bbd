"""Format-specific text extraction for research documents."""
from __future__ import annotations

import csv
import io
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from rule_of_thirds.utils import flatten_json

HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.*)$")
VTT_TIMESTAMP_PATTERN = re.compile(r"(\d{2}:)?\d{2}:\d{2}\.\d{3}\s*-->\s*((?:\d{2}:)?\d{2}:\d{2}\.\d{3})")
VTT_VOICE_PATTERN = re.compile(r"<v(?:\.[^\s>]+)?\s+([^>]+)>")
VTT_TAG_PATTERN = re.compile(r"</?[^>]+>")
SPEAKER_PREFIX_PATTERN = re.compile(r"^([A-Z][\w .'-]{0,40}):\s+")


@dataclass(frozen=True)
class ParsedDocument:
    """Plain searchable text extracted from one file."""

    path: Path
    file_type: str
    title: str
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def word_count(self) -> int:
        return len(self.text.split())


def parse_markdown(path: Path, raw: str) -> ParsedDocument:
    """Collect headings into metadata and drop the ``#`` markers from the text."""
    headings: list[dict[str, Any]] = []
    lines: list[str] = []
    title = ""
    for line in raw.splitlines():
        match = HEADING_PATTERN.match(line.strip())
        if match:
            level, heading = len(match.group(1)), match.group(2).strip()
            headings.append({"level": level, "text": heading})
            if level == 1 and not title:
                title = heading
            lines.append(heading)
        else:
            lines.append(line)
    return ParsedDocument(
        path=path,
        file_type=".md",
        title=title or path.stem,
        text="\n".join(lines).strip(),
        metadata={"headings": headings},
    )


def parse_vtt(path: Path, raw: str) -> ParsedDocument:
    """Strip the WEBVTT header, cue timings, cue numbers and NOTE blocks; keep speakers."""
    speakers: list[str] = []
    spoken: list[str] = []
    duration: str | None = None
    in_note = False

    for line in raw.splitlines():
        stripped = line.strip()
        if not stripped:
            in_note = False
            continue
        if in_note or stripped.startswith("NOTE"):
            in_note = True
            continue
        if stripped.startswith("WEBVTT") or stripped.isdigit():
            continue
        timing = VTT_TIMESTAMP_PATTERN.search(stripped)
        if timing:
            duration = timing.group(2)
            continue

        voice = VTT_VOICE_PATTERN.search(stripped)
        speaker = voice.group(1).strip() if voice else None
        text = VTT_TAG_PATTERN.sub("", stripped).strip()
        if not speaker:
            prefix = SPEAKER_PREFIX_PATTERN.match(text)
            if prefix:
                speaker = prefix.group(1).strip()
                text = text[prefix.end():]
        if speaker and speaker not in speakers:
            speakers.append(speaker)
        if text:
            spoken.append(text)

    return ParsedDocument(
        path=path,
        file_type=".vtt",
        title=path.stem,
        text="\n".join(spoken),
        metadata={"speakers": speakers, "duration": duration},
    )


def parse_json(path: Path, raw: str) -> ParsedDocument:
    """Flatten a JSON document to ``key: value`` text.

    Raises:
        ValueError: If the file is not valid JSON.
    """
    payload = json.loads(raw)
    if isinstance(payload, dict):
        structure = {"type": "object", "keys": list(payload.keys())[:20]}
    elif isinstance(payload, list):
        structure = {"type": "array", "length": len(payload)}
    else:
        structure = {"type": type(payload).__name__}
    return ParsedDocument(
        path=path,
        file_type=".json",
        title=path.stem,
        text=flatten_json(payload),
        metadata={"structure": structure},
    )


def parse_csv(path: Path, raw: str) -> ParsedDocument:
    """Join every data row's cells into one line of text."""
    rows = [row for row in csv.reader(io.StringIO(raw)) if any(cell.strip() for cell in row)]
    if not rows:
        return ParsedDocument(path=path, file_type=".csv", title=path.stem, text="", metadata={"headers": [], "row_count": 0})
    headers = [cell.strip() for cell in rows[0]]
    body = [" ".join(cell.strip() for cell in row if cell.strip()) for row in rows[1:]]
    return ParsedDocument(
        path=path,
        file_type=".csv",
        title=path.stem,
        text="\n".join(body),
        metadata={"headers": headers, "row_count": len(body)},
    )


def parse_text(path: Path, raw: str) -> ParsedDocument:
    return ParsedDocument(path=path, file_type=path.suffix.lower() or ".txt", title=path.stem, text=raw.strip())


PARSERS: dict[str, Callable[[Path, str], ParsedDocument]] = {
    ".md": parse_markdown,
    ".markdown": parse_markdown,
    ".vtt": parse_vtt,
    ".json": parse_json,
    ".csv": parse_csv,
    ".txt": parse_text,
}


def parse_document(path: Path, raw: str) -> ParsedDocument:
    """Dispatch on file extension; unknown extensions are read as plain text."""
    parser = PARSERS.get(path.suffix.lower(), parse_text)
    return parser(path, raw)
