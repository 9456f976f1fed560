"""Tests for corpus indexing and index publication."""

import json
import os
import re
import stat
from pathlib import Path

import pytest
from pydantic import ValidationError

from conftest import SCHEMA, write_doc
from docsdb.errors import BuildFailedError, ErrorCode, NoSourceFilesError
from docsdb.indexer import (
    build_index,
    discover_documents,
    format_timestamp,
    publish_index,
    serialize_index,
    write_index,
)
from docsdb.models import DocumentIssue
from docsdb.schema import SchemaValidator

ISO_INSTANT = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


@pytest.fixture
def validator() -> SchemaValidator:
    return SchemaValidator(SCHEMA)


def _entry(result, identifier: str):
    return next(entry for entry in result.entries if entry.id == identifier)


# ─────────────────────────────────────────────────────────────────────────────
# Discovery
# ─────────────────────────────────────────────────────────────────────────────


class TestDiscoverDocuments:
    def test_finds_markdown_recursively_sorted(self, repo: Path):
        write_doc(repo, "docs/z.md", id="z")
        write_doc(repo, "docs/adr/a.md", id="a")
        (repo / "docs" / "notes.txt").write_text("skip")
        (repo / "README.md").write_text("outside docs/")

        found = discover_documents(repo)

        assert [p.relative_to(repo).as_posix() for p in found] == ["docs/adr/a.md", "docs/z.md"]

    def test_skips_dot_directories_and_dotfiles(self, repo: Path):
        write_doc(repo, "docs/.drafts/a.md", id="draft")
        write_doc(repo, "docs/.hidden.md", id="hidden")
        write_doc(repo, "docs/visible.md", id="visible")

        found = discover_documents(repo)

        assert [p.relative_to(repo).as_posix() for p in found] == ["docs/visible.md"]

    def test_empty_corpus_raises(self, repo: Path, validator):
        with pytest.raises(NoSourceFilesError, match="docs/"):
            build_index(repo, validator)


# ─────────────────────────────────────────────────────────────────────────────
# Link graph
# ─────────────────────────────────────────────────────────────────────────────


class TestLinks:
    def test_relative_markdown_link_scenario(self, repo: Path, validator):
        write_doc(repo, "docs/adr-0001.md", "See [next](adr-0002.md).", id="adr-0001")
        write_doc(repo, "docs/adr-0002.md", "Nothing here.", id="adr-0002")

        result = build_index(repo, validator)

        assert result.ok
        assert _entry(result, "adr-0001").links_to == ["adr-0002"]
        assert _entry(result, "adr-0002").links_to == []

    def test_unresolved_wiki_link_is_dropped(self, repo: Path, validator):
        write_doc(repo, "docs/a.md", "See [[no-such-doc]] and [[b]].", id="a")
        write_doc(repo, "docs/b.md", id="b")

        result = build_index(repo, validator)

        assert result.ok
        assert _entry(result, "a").links_to == ["b"]

    def test_both_notations_to_same_target_dedupe(self, repo: Path, validator):
        write_doc(repo, "docs/a.md", "[[b]] [b](b.md) [again](./b.md#x) [[b]]", id="a")
        write_doc(repo, "docs/b.md", id="b")

        result = build_index(repo, validator)

        assert _entry(result, "a").links_to == ["b"]

    def test_links_are_sorted(self, repo: Path, validator):
        write_doc(repo, "docs/a.md", "[[c]] [[b]] [[d]]", id="a")
        for name in ("b", "c", "d"):
            write_doc(repo, f"docs/{name}.md", id=name)

        result = build_index(repo, validator)

        assert _entry(result, "a").links_to == ["b", "c", "d"]

    def test_sample_corpus_graph(self, sample_repo: Path, validator):
        result = build_index(sample_repo, validator)

        assert result.ok
        assert _entry(result, "adr-0001").links_to == ["adr-0002", "runbook-db-failover"]
        assert _entry(result, "runbook-db-failover").links_to == ["adr-0001"]

    def test_link_outside_corpus_is_dropped(self, repo: Path, validator):
        write_doc(repo, "docs/a.md", "[readme](../README.md) [gone](missing.md)", id="a")
        (repo / "README.md").write_text("# Readme\n")

        result = build_index(repo, validator)

        assert _entry(result, "a").links_to == []

    def test_self_links_are_kept(self, repo: Path, validator):
        write_doc(repo, "docs/a.md", "[[a]]", id="a")

        result = build_index(repo, validator)

        assert _entry(result, "a").links_to == ["a"]


# ─────────────────────────────────────────────────────────────────────────────
# Failures
# ─────────────────────────────────────────────────────────────────────────────


class TestFailures:
    def test_duplicate_identifier_fails_build(self, repo: Path, validator):
        write_doc(repo, "docs/one.md", id="adr-0001")
        write_doc(repo, "docs/two.md", id="adr-0001")
        write_doc(repo, "docs/other.md", id="adr-0002")

        result = build_index(repo, validator)

        assert not result.ok
        assert result.entries == []
        [issue] = result.issues
        assert issue.kind == ErrorCode.DUPLICATE_ID
        assert issue.path == "docs/two.md"
        assert "docs/one.md" in issue.message
        assert "adr-0001" in issue.message

    def test_missing_required_field_reports_one_violation(self, repo: Path, validator):
        write_doc(repo, "docs/a.md", id="adr-0001", owner=None)

        result = build_index(repo, validator)

        [issue] = result.issues
        assert issue.kind == ErrorCode.SCHEMA_VIOLATION
        assert len(issue.violations) == 1
        assert "owner" in issue.violations[0].message

    def test_all_problems_collected_in_one_pass(self, repo: Path, validator):
        (repo / "docs" / "plain.md").write_text("# No frontmatter\n")
        (repo / "docs" / "broken.md").write_text("---\nid: [x\n---\n")
        write_doc(repo, "docs/invalid.md", id="bad", status="nope", owner=None)
        write_doc(repo, "docs/good.md", id="good")

        result = build_index(repo, validator)

        kinds = {issue.path: issue.kind for issue in result.issues}
        assert kinds == {
            "docs/broken.md": ErrorCode.PARSE_ERROR,
            "docs/invalid.md": ErrorCode.SCHEMA_VIOLATION,
            "docs/plain.md": ErrorCode.MISSING_FRONTMATTER,
        }
        assert len(result.issues[1].violations) == 2
        assert result.files_scanned == 4

    def test_issue_kind_is_a_per_document_code(self):
        with pytest.raises(ValidationError):
            DocumentIssue(path="docs/a.md", kind=ErrorCode.INDEX_NOT_FOUND, message="nope")

    def test_undecodable_file_is_reported(self, repo: Path, validator):
        (repo / "docs" / "binary.md").write_bytes(b"---\nid: \xff\xfe\n---\n")

        result = build_index(repo, validator)

        [issue] = result.issues
        assert issue.kind == ErrorCode.PARSE_ERROR
        assert "failed to read file" in issue.message


# ─────────────────────────────────────────────────────────────────────────────
# Entries and artifact
# ─────────────────────────────────────────────────────────────────────────────


class TestEntries:
    def test_entry_fields(self, sample_repo: Path, validator):
        result = build_index(sample_repo, validator)

        entry = _entry(result, "runbook-db-failover").to_json_dict()

        assert entry["path"] == "docs/runbooks/runbook-db-failover.md"
        assert ISO_INSTANT.match(entry["lastModified"])
        assert entry["service"] == "db"
        assert entry["severity"] == "sev1"
        assert entry["created"] == "2024-01-15"
        assert "summary" not in entry
        assert "audience" not in entry
        assert None not in entry.values()

    def test_key_order(self, sample_repo: Path, validator):
        result = build_index(sample_repo, validator)

        keys = list(_entry(result, "adr-0001").to_json_dict())

        assert keys == [
            "id",
            "type",
            "title",
            "owner",
            "path",
            "lastModified",
            "linksTo",
            "status",
            "created",
            "updated",
            "tags",
            "summary",
        ]

    def test_schema_typed_values_copied_verbatim(self, repo: Path):
        schema = {"required": ["id"], "properties": {"severity": {"type": "integer"}}}
        (repo / "docs" / "a.md").write_text("---\nid: a\nseverity: 2\naudience: ops\n---\n")

        result = build_index(repo, SchemaValidator(schema))

        entry = result.entries[0].to_json_dict()
        assert entry["severity"] == 2
        assert entry["audience"] == "ops"
        assert "type" not in entry

    def test_extra_metadata_not_copied(self, repo: Path, validator):
        write_doc(repo, "docs/a.md", id="a", reviewers=["alice"])

        result = build_index(repo, validator)

        assert "reviewers" not in result.entries[0].to_json_dict()

    def test_entries_sorted_by_identifier(self, repo: Path, validator):
        write_doc(repo, "docs/a/zzz.md", id="b-doc")
        write_doc(repo, "docs/z/aaa.md", id="a-doc")
        write_doc(repo, "docs/m.md", id="c-doc")

        result = build_index(repo, validator)

        assert [entry.id for entry in result.entries] == ["a-doc", "b-doc", "c-doc"]

    def test_last_modified_from_mtime(self, repo: Path, validator):
        path = write_doc(repo, "docs/a.md", id="a")
        os.utime(path, (1_700_000_000.25, 1_700_000_000.25))

        result = build_index(repo, validator)

        assert result.entries[0].last_modified == "2023-11-14T22:13:20.250Z"


def test_format_timestamp():
    assert format_timestamp(0) == "1970-01-01T00:00:00.000Z"


class TestPublish:
    def test_artifact_format(self, sample_repo: Path, validator, tmp_path: Path):
        result = build_index(sample_repo, validator)
        output = tmp_path / "out" / "docsdb.json"

        publish_index(result, output)

        text = output.read_text(encoding="utf-8")
        assert text.endswith("]\n")
        assert text.startswith("[\n  {\n")
        payload = json.loads(text)
        assert [doc["id"] for doc in payload] == sorted(doc["id"] for doc in payload)

    def test_non_ascii_is_preserved(self, repo: Path, validator, tmp_path: Path):
        write_doc(repo, "docs/a.md", id="a", title="Café décision")

        result = build_index(repo, validator)

        assert "Café décision" in serialize_index(result.entries)

    def test_rebuild_is_deterministic(self, sample_repo: Path, validator):
        first = serialize_index(build_index(sample_repo, validator).entries)
        second = serialize_index(build_index(sample_repo, validator).entries)

        assert first == second

    def test_failed_build_never_overwrites_artifact(self, repo: Path, validator):
        output = repo / "docsdb" / "docsdb.json"
        output.parent.mkdir()
        output.write_text("[]\n")
        write_doc(repo, "docs/a.md", id="dup")
        write_doc(repo, "docs/b.md", id="dup")

        result = build_index(repo, validator)

        with pytest.raises(BuildFailedError):
            publish_index(result, output)
        assert output.read_text() == "[]\n"

    def test_write_index_leaves_no_temp_files(self, sample_repo: Path, validator, tmp_path: Path):
        output = tmp_path / "out" / "docsdb.json"

        write_index(build_index(sample_repo, validator).entries, output)

        assert [p.name for p in output.parent.iterdir()] == ["docsdb.json"]

    def test_artifact_is_readable_under_umask(self, sample_repo: Path, validator, tmp_path: Path):
        output = tmp_path / "out" / "docsdb.json"
        previous = os.umask(0o022)
        try:
            publish_index(build_index(sample_repo, validator), output)
        finally:
            os.umask(previous)

        assert stat.S_IMODE(output.stat().st_mode) == 0o644
