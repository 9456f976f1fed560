"""Frontmatter validation against the external JSON Schema.

The schema is loaded and compiled once per process; every document in a
build is checked by the same validator instance.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError
from pydantic import ValidationError

from .errors import ErrorCode, SchemaLoadError
from .models import Accepted, DocumentRecord, Rejected, ValidationOutcome, Violation

log = logging.getLogger(__name__)

ROOT_LABEL = "(root)"


def _pointer(parts) -> str:
    if not parts:
        return ROOT_LABEL
    return "/" + "/".join(str(part) for part in parts)


class SchemaValidator:
    """Validates frontmatter mappings, yielding a typed record or violations."""

    def __init__(self, schema: dict[str, Any]) -> None:
        try:
            Draft202012Validator.check_schema(schema)
        except SchemaError as e:
            raise SchemaLoadError(f"Invalid metadata schema: {e.message}") from e
        self.schema = schema
        self._validator = Draft202012Validator(
            schema, format_checker=Draft202012Validator.FORMAT_CHECKER
        )

    @classmethod
    def from_path(cls, path: Path) -> SchemaValidator:
        """Load and compile a schema file.

        Raises:
            SchemaLoadError: If the file is missing, not JSON, or not a valid schema.
        """
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise SchemaLoadError(
                f"Schema file not found: {path}", code=ErrorCode.SCHEMA_NOT_FOUND
            ) from e
        except OSError as e:
            raise SchemaLoadError(f"Failed to read schema {path}: {e}") from e

        try:
            schema = json.loads(raw)
        except json.JSONDecodeError as e:
            raise SchemaLoadError(f"Schema {path} is not valid JSON: {e}") from e

        if not isinstance(schema, dict):
            raise SchemaLoadError(f"Schema {path} must be a JSON object")

        log.debug("Loaded metadata schema from %s", path)
        return cls(schema)

    def validate(self, data: Mapping[str, Any]) -> ValidationOutcome:
        """Validate one frontmatter mapping.

        All violations are reported together, ordered by field path.
        """
        errors = sorted(
            self._validator.iter_errors(dict(data)),
            key=lambda error: ([str(part) for part in error.absolute_path], error.message),
        )
        if errors:
            return Rejected(
                violations=[
                    Violation(field_path=_pointer(error.absolute_path), message=error.message)
                    for error in errors
                ]
            )

        try:
            record = DocumentRecord.model_validate(dict(data))
        except ValidationError as e:
            return Rejected(
                violations=[
                    Violation(field_path=_pointer(error["loc"]), message=error["msg"])
                    for error in e.errors()
                ]
            )

        return Accepted(record=record)
