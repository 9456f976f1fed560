"""Frontmatter building utilities for new documents."""

from collections.abc import Mapping
from datetime import date
from typing import Any

import yaml


def _yaml_quote_if_needed(value: str) -> str:
    """Quote a string value if it contains YAML special characters.

    Uses PyYAML to determine if quoting is needed by testing if the value
    roundtrips correctly through YAML parsing. Characters like `: `, `#`,
    and leading `*`, `&`, `%`, `@`, etc. require quoting.
    """
    test_yaml = f"key: {value}"
    try:
        parsed = yaml.safe_load(test_yaml)
        if isinstance(parsed, dict) and parsed.get("key") == value:
            return value
    except yaml.YAMLError:
        pass
    # Let PyYAML pick the escaping; the dump reads 'key: VALUE'
    dumped = yaml.safe_dump({"key": value}, default_flow_style=False, width=10_000).strip()
    return dumped[5:]


def _format_yaml_list(items: list[str]) -> str:
    """Format a list as YAML list items with indentation."""
    return "\n".join(f"  - {_yaml_quote_if_needed(item)}" for item in items)


def build_frontmatter(fields: Mapping[str, Any]) -> str:
    """Build a YAML frontmatter block from ordered fields.

    None values and empty lists are skipped. Dates are written unquoted so
    YAML reads them back as dates.

    Returns:
        Frontmatter including both --- delimiters and a trailing newline.
    """
    parts = ["---"]

    for key, value in fields.items():
        if value is None:
            continue
        if isinstance(value, list):
            if not value:
                continue
            parts.append(f"{key}:")
            parts.append(_format_yaml_list([str(item) for item in value]))
        elif isinstance(value, date):
            parts.append(f"{key}: {value.isoformat()}")
        else:
            parts.append(f"{key}: {_yaml_quote_if_needed(str(value))}")

    parts.append("---\n")
    return "\n".join(parts)
