"""Attribute and substring queries over the published index."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from .config import DEFAULT_QUERY_LIMIT, LEGACY_INDEX_FILENAME
from .errors import IndexNotFoundError, InvalidIndexError
from .models import IndexEntry

log = logging.getLogger(__name__)


class QueryFilters(BaseModel):
    """Conjunction of optional filters. Empty values are ignored."""

    type: str | None = None
    status: str | None = None
    owner: str | None = None
    tag: str | None = None
    text: str | None = None
    service: str | None = None
    severity: str | None = None


def _candidate_paths(index_path: Path) -> list[Path]:
    return [index_path, index_path.with_name(LEGACY_INDEX_FILENAME)]


def load_index(index_path: Path) -> list[IndexEntry]:
    """Load the index artifact.

    Falls back to the legacy file name in the same directory.

    Raises:
        IndexNotFoundError: If neither file exists.
        InvalidIndexError: If the file is not a JSON array of entries.
    """
    for candidate in _candidate_paths(index_path):
        try:
            raw = candidate.read_text(encoding="utf-8")
        except FileNotFoundError:
            continue
        log.debug("Loading index from %s", candidate)
        break
    else:
        raise IndexNotFoundError(str(index_path))

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidIndexError(f"Index JSON is malformed: {e}") from e

    if not isinstance(payload, list):
        raise InvalidIndexError("Index JSON is not an array")

    try:
        return [IndexEntry.model_validate(item) for item in payload]
    except ValidationError as e:
        raise InvalidIndexError(f"Index entry is invalid: {e}") from e


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _contains(haystack: Any, needle: str) -> bool:
    return haystack is not None and needle.lower() in str(haystack).lower()


def matches(entry: IndexEntry, filters: QueryFilters) -> bool:
    """Check whether an entry satisfies every supplied filter."""
    if filters.type and entry.type != filters.type:
        return False
    if filters.status and entry.status != filters.status:
        return False
    if filters.service and entry.service != filters.service:
        return False
    if filters.severity and entry.severity != filters.severity:
        return False
    if filters.tag:
        tags = entry.tags if isinstance(entry.tags, list) else []
        if filters.tag not in tags:
            return False
    if filters.owner and not _contains(entry.owner, filters.owner):
        return False
    if filters.text:
        haystack = f"{_text(entry.title)} {_text(entry.summary)}"
        if not _contains(haystack, filters.text):
            return False
    return True


def query_index(
    entries: Iterable[IndexEntry],
    filters: QueryFilters | None = None,
    *,
    limit: int = DEFAULT_QUERY_LIMIT,
) -> list[IndexEntry]:
    """Filter entries, order them by (type, id) and truncate to limit.

    Raises:
        ValueError: If limit is not a positive integer.
    """
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValueError("Limit must be a positive integer")

    filters = filters or QueryFilters()
    results = [entry for entry in entries if matches(entry, filters)]
    results.sort(key=lambda entry: (_text(entry.type), entry.id))
    return results[:limit]
