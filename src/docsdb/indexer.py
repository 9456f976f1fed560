"""Corpus indexing: validation, identity checks, link resolution, publishing.

Indexing runs in two passes. The accept pass splits and validates every
document and records which identifier lives at which path. Links are only
resolved in the second pass, once that table is complete and frozen. Any
problem in the accept pass fails the whole build and nothing is written.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Sequence

from .config import DEFAULT_DOCS_GLOB
from .errors import (
    BuildFailedError,
    ErrorCode,
    NoSourceFilesError,
    ParseError,
)
from .models import (
    METADATA_FIELDS,
    BuildResult,
    DocumentIssue,
    DocumentRecord,
    IndexEntry,
    Rejected,
)
from .parser import PathIdentityTable, canonical_path, extract_links, resolve_link_target, split_document
from .schema import SchemaValidator

log = logging.getLogger(__name__)


@dataclass(slots=True)
class AcceptedDocument:
    """A validated document waiting for the link pass."""

    path: Path  # Absolute
    rel_path: str
    record: DocumentRecord
    body: str
    last_modified: str


def _is_hidden(path: Path, repo_root: Path) -> bool:
    return any(part.startswith(".") for part in path.relative_to(repo_root).parts)


def discover_documents(repo_root: Path, pattern: str = DEFAULT_DOCS_GLOB) -> list[Path]:
    """Find source documents under the repository root, sorted by path.

    Dotfiles and anything under a dot-directory are skipped.
    """
    return sorted(
        path
        for path in repo_root.glob(pattern)
        if path.is_file() and not _is_hidden(path, repo_root)
    )


async def _read_all(paths: Sequence[Path]) -> list[str | OSError | UnicodeDecodeError]:
    async def read(path: Path) -> str | OSError | UnicodeDecodeError:
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return e

    return await asyncio.gather(*(read(path) for path in paths))


def read_documents(paths: Sequence[Path]) -> list[str | OSError | UnicodeDecodeError]:
    """Read documents concurrently, returning text or the read error per path."""
    return asyncio.run(_read_all(paths))


def format_timestamp(mtime: float) -> str:
    """Format a file mtime as an ISO instant with millisecond precision."""
    stamp = datetime.fromtimestamp(mtime, tz=UTC).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def _relative_path(path: Path, repo_root: Path) -> str:
    try:
        return path.relative_to(repo_root).as_posix()
    except ValueError:
        return path.as_posix()


def _accept_pass(
    repo_root: Path,
    paths: Sequence[Path],
    validator: SchemaValidator,
) -> tuple[list[AcceptedDocument], list[DocumentIssue]]:
    accepted: list[AcceptedDocument] = []
    issues: list[DocumentIssue] = []
    file_by_id: dict[str, str] = {}

    for path, content in zip(paths, read_documents(paths)):
        rel_path = _relative_path(path, repo_root)

        if isinstance(content, (OSError, UnicodeDecodeError)):
            issues.append(
                DocumentIssue(
                    path=rel_path,
                    kind=ErrorCode.PARSE_ERROR,
                    message=f"failed to read file: {content}",
                )
            )
            continue

        try:
            data, body = split_document(content)
        except ParseError as e:
            # MissingFrontmatterError carries its own code
            issues.append(DocumentIssue(path=rel_path, kind=e.code, message=e.message))
            continue

        outcome = validator.validate(data)
        if isinstance(outcome, Rejected):
            issues.append(
                DocumentIssue(
                    path=rel_path,
                    kind=ErrorCode.SCHEMA_VIOLATION,
                    message="frontmatter validation failed",
                    violations=outcome.violations,
                )
            )
            continue

        record = outcome.record
        if record.id in file_by_id:
            issues.append(
                DocumentIssue(
                    path=rel_path,
                    kind=ErrorCode.DUPLICATE_ID,
                    message=f'duplicate id "{record.id}" also declared in {file_by_id[record.id]}',
                )
            )
            continue

        file_by_id[record.id] = rel_path
        accepted.append(
            AcceptedDocument(
                path=Path(canonical_path(path)),
                rel_path=rel_path,
                record=record,
                body=body,
                last_modified=format_timestamp(path.stat().st_mtime),
            )
        )
        log.debug("Accepted %s as %s", rel_path, record.id)

    return accepted, issues


def _build_entry(document: AcceptedDocument, table: PathIdentityTable) -> IndexEntry:
    linked: set[str] = set()
    for target in extract_links(document.body):
        identifier = resolve_link_target(target, document.path, table)
        if identifier is not None:
            linked.add(identifier)

    fields = {
        field: getattr(document.record, field)
        for field in METADATA_FIELDS
        if getattr(document.record, field) is not None
    }
    return IndexEntry(
        **fields,
        path=document.rel_path,
        last_modified=document.last_modified,
        links_to=sorted(linked),
    )


def build_index(
    repo_root: Path,
    validator: SchemaValidator,
    *,
    docs_glob: str = DEFAULT_DOCS_GLOB,
) -> BuildResult:
    """Validate the corpus and compute index entries.

    Args:
        repo_root: Repository root; document paths are reported relative to it
            and root-absolute links ("/docs/x.md") resolve against it.
        validator: Compiled metadata schema.
        docs_glob: Glob selecting source documents, relative to repo_root.

    Returns:
        BuildResult. When any document failed, `entries` is empty and
        `issues` lists every problem found.

    Raises:
        NoSourceFilesError: If the glob matches no files.
    """
    repo_root = Path(canonical_path(repo_root))
    paths = discover_documents(repo_root, docs_glob)
    if not paths:
        raise NoSourceFilesError(docs_glob)

    log.info("Indexing %d document(s) under %s", len(paths), repo_root)
    accepted, issues = _accept_pass(repo_root, paths, validator)

    if issues:
        log.debug("Accept pass recorded %d issue(s); skipping link pass", len(issues))
        return BuildResult(files_scanned=len(paths), issues=issues)

    table = PathIdentityTable.from_pairs(
        repo_root, ((document.path, document.record.id) for document in accepted)
    )
    entries = [_build_entry(document, table) for document in accepted]
    entries.sort(key=lambda entry: entry.id)

    return BuildResult(files_scanned=len(paths), entries=entries)


def serialize_index(entries: Sequence[IndexEntry]) -> str:
    """Render entries as the artifact text: indented JSON, trailing newline."""
    payload = [entry.to_json_dict() for entry in entries]
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def _default_file_mode() -> int:
    # os.umask can only be read by setting it
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_index(entries: Sequence[IndexEntry], output_path: Path) -> None:
    """Atomically replace the artifact at output_path.

    The file gets the usual permissions for new files under the current umask.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{output_path.name}.", suffix=".tmp", dir=output_path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(serialize_index(entries))
        os.chmod(tmp_name, _default_file_mode())
        os.replace(tmp_name, output_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def publish_index(result: BuildResult, output_path: Path) -> None:
    """Write a successful build to disk.

    Raises:
        BuildFailedError: If the build recorded any issues.
    """
    if not result.ok:
        raise BuildFailedError(len(result.issues))
    write_index(result.entries, output_path)
    log.info("Wrote %d entries to %s", len(result.entries), output_path)
