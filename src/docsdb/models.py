"""Pydantic models for the docs index."""

from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ErrorCode

# Metadata fields copied onto index entries when present, in output order
METADATA_FIELDS = (
    "id",
    "type",
    "title",
    "owner",
    "status",
    "created",
    "updated",
    "tags",
    "service",
    "severity",
    "audience",
    "summary",
)


class DocumentRecord(BaseModel):
    """Frontmatter of a document that passed schema validation.

    Only `id` is typed here. The external schema owns the types of every other
    field, so known fields hold whatever JSON value the schema allowed.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    type: Any = None
    title: Any = None
    owner: Any = None
    status: Any = None
    created: Any = None  # YYYY-MM-DD when written as a YAML date
    updated: Any = None
    tags: Any = None
    service: Any = None
    severity: Any = None
    audience: Any = None
    summary: Any = None


class Violation(BaseModel):
    """A single field-level schema violation."""

    field_path: str  # JSON pointer ("/owner") or "(root)"
    message: str

    def __str__(self) -> str:
        return f"{self.field_path} {self.message}"


class Accepted(BaseModel):
    record: DocumentRecord


class Rejected(BaseModel):
    violations: list[Violation]


ValidationOutcome = Accepted | Rejected


class WikiRef(NamedTuple):
    """A [[name]] reference; the name is a candidate identifier."""

    name: str


class PathRef(NamedTuple):
    """A Markdown link path with fragment and query already stripped."""

    raw_path: str


LinkTarget = WikiRef | PathRef


class IndexEntry(BaseModel):
    """One document in the published index artifact."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: Any = None
    title: Any = None
    owner: Any = None
    path: str  # Repo-relative, forward slashes
    last_modified: str = Field(alias="lastModified")
    links_to: list[str] = Field(default_factory=list, alias="linksTo")
    status: Any = None
    created: Any = None
    updated: Any = None
    tags: Any = None
    service: Any = None
    severity: Any = None
    audience: Any = None
    summary: Any = None

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with artifact key names, omitting absent fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


# Error codes a single document can fail with during the accept pass
ISSUE_CODES = frozenset(
    {
        ErrorCode.MISSING_FRONTMATTER,
        ErrorCode.PARSE_ERROR,
        ErrorCode.SCHEMA_VIOLATION,
        ErrorCode.DUPLICATE_ID,
    }
)


class DocumentIssue(BaseModel):
    """A per-document problem that blocks publishing the index."""

    path: str
    kind: ErrorCode
    message: str
    violations: list[Violation] = Field(default_factory=list)

    @field_validator("kind")
    @classmethod
    def _per_document_code(cls, kind: ErrorCode) -> ErrorCode:
        if kind not in ISSUE_CODES:
            raise ValueError(f"{kind.value} is not a per-document error code")
        return kind


class BuildResult(BaseModel):
    """Outcome of one indexing pass."""

    files_scanned: int = 0
    entries: list[IndexEntry] = Field(default_factory=list)
    issues: list[DocumentIssue] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues
