"""Error types and codes for docsdb.

Every failure the CLI reports maps to an ErrorCode so that callers using
--json-errors can branch on a stable string instead of parsing messages.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    # Per-document failures (collected during a build)
    MISSING_FRONTMATTER = "MISSING_FRONTMATTER"
    PARSE_ERROR = "PARSE_ERROR"
    SCHEMA_VIOLATION = "SCHEMA_VIOLATION"
    DUPLICATE_ID = "DUPLICATE_ID"

    # Run-level failures
    BUILD_FAILED = "BUILD_FAILED"
    NO_SOURCE_FILES = "NO_SOURCE_FILES"
    SCHEMA_NOT_FOUND = "SCHEMA_NOT_FOUND"
    INVALID_SCHEMA = "INVALID_SCHEMA"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # Query failures
    INDEX_NOT_FOUND = "INDEX_NOT_FOUND"
    INVALID_INDEX = "INVALID_INDEX"

    # Scaffolding
    DOCUMENT_EXISTS = "DOCUMENT_EXISTS"

    # Command-line usage (exit code 2)
    UNKNOWN_COMMAND = "UNKNOWN_COMMAND"
    UNKNOWN_OPTION = "UNKNOWN_OPTION"
    MISSING_ARGUMENT = "MISSING_ARGUMENT"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    USAGE_ERROR = "USAGE_ERROR"


class DocsdbError(Exception):
    """Base error carrying a stable code and optional structured details."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"error": error}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def format_error_json(code: str, message: str, details: dict | None = None) -> str:
    """Format an error as JSON for --json-errors output."""
    error: dict[str, dict[str, object]] = {"error": {"code": code, "message": message}}
    if details:
        error["error"]["details"] = details
    return json.dumps(error)


class ConfigurationError(DocsdbError):
    """Raised when project configuration is missing or malformed."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.CONFIGURATION_ERROR, message)


class ParseError(DocsdbError):
    """Raised when a document's metadata block cannot be parsed."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.PARSE_ERROR) -> None:
        super().__init__(code, message)


class MissingFrontmatterError(ParseError):
    """Raised when a document does not start with a metadata block."""

    def __init__(self, message: str = "missing YAML frontmatter (--- at top)") -> None:
        super().__init__(message, code=ErrorCode.MISSING_FRONTMATTER)


class SchemaLoadError(DocsdbError):
    def __init__(self, message: str, code: ErrorCode = ErrorCode.INVALID_SCHEMA) -> None:
        super().__init__(code, message)


class NoSourceFilesError(DocsdbError):
    def __init__(self, pattern: str) -> None:
        super().__init__(
            ErrorCode.NO_SOURCE_FILES,
            f"No Markdown files found under {pattern}",
            {"suggestion": "Add documents or point --root at the repository that contains docs/"},
        )


class BuildFailedError(DocsdbError):
    """Raised when publishing is attempted for a build that recorded issues."""

    def __init__(self, issue_count: int) -> None:
        super().__init__(
            ErrorCode.BUILD_FAILED,
            f"Build failed with {issue_count} problem(s); index not written",
            {"issues": issue_count},
        )


class IndexNotFoundError(DocsdbError):
    def __init__(self, index_path: str) -> None:
        super().__init__(
            ErrorCode.INDEX_NOT_FOUND,
            f"Index file not found. Run `docsdb build` to generate {index_path}.",
            {"suggestion": "docsdb build"},
        )


class InvalidIndexError(DocsdbError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.INVALID_INDEX, message)


class DocumentExistsError(DocsdbError):
    def __init__(self, path: str) -> None:
        super().__init__(ErrorCode.DOCUMENT_EXISTS, f"File already exists: {path}")
