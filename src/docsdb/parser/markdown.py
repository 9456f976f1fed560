"""Markdown parsing with YAML frontmatter support."""

from datetime import UTC, date, datetime
from typing import Any

import frontmatter
import yaml

from ..errors import MissingFrontmatterError, ParseError

_handler = frontmatter.YAMLHandler()


def has_frontmatter(raw: str) -> bool:
    """Check whether the text opens with a `---` delimiter line."""
    return raw.startswith("---\n") or raw.startswith("---\r\n")


def _to_calendar_date(value: date) -> str:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.date().isoformat()
    return value.isoformat()


def normalize_dates(data: dict[str, Any]) -> None:
    """Rewrite native date values to YYYY-MM-DD strings, in place.

    Only top-level values that YAML parsed as dates or timestamps are touched.
    Strings are left as written, even when they look like dates.
    """
    for key, value in data.items():
        if isinstance(value, date):
            data[key] = _to_calendar_date(value)


def split_document(raw: str) -> tuple[dict[str, Any], str]:
    """Split a document into its frontmatter mapping and body.

    Args:
        raw: Full text of the document.

    Returns:
        Tuple of (metadata, body). Date values in the metadata are already
        normalized.

    Raises:
        MissingFrontmatterError: If the text does not start with `---`.
        ParseError: If the block is unterminated, is not valid YAML, or is
            not a mapping.
    """
    if not has_frontmatter(raw):
        raise MissingFrontmatterError()

    try:
        fm, body = _handler.split(raw)
    except ValueError as e:
        raise ParseError("failed to parse frontmatter: missing closing ---") from e

    try:
        data = _handler.load(fm)
    except yaml.YAMLError as e:
        raise ParseError(f"failed to parse frontmatter: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParseError(
            f"failed to parse frontmatter: expected a mapping, got {type(data).__name__}"
        )

    normalize_dates(data)
    return data, body
