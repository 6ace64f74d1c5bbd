from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

from dateutil import parser

PLACEHOLDER_DATES = {"recent", "unknown", "n/a", "na", "none", "tbd"}


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a provider timestamp into an aware UTC datetime, or None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    cleaned = str(value).strip()
    if not cleaned or cleaned.lower() in PLACEHOLDER_DATES:
        return None
    try:
        parsed = parser.parse(cleaned)
    except (ValueError, TypeError, OverflowError):
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def slugify(text: str) -> str:
    """Lower-case ``text`` with every non-alphanumeric character replaced by ``_``."""
    return re.sub(r"[^a-zA-Z0-9]", "_", text).lower()


def excerpt(text: str | None, limit: int = 200) -> str:
    if not text:
        return ""
    return text[:limit] + "..." if len(text) > limit else text


def flatten_json(value: Any, depth: int = 0, max_depth: int = 5) -> str:
    """Render nested JSON as ``key: value`` text, giving up below ``max_depth``."""
    if depth > max_depth:
        return "[nested object]"
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        return " ".join(flatten_json(item, depth + 1, max_depth) for item in value)
    if isinstance(value, dict):
        return " ".join(f"{key}: {flatten_json(item, depth + 1, max_depth)}" for key, item in value.items())
    return str(value)
