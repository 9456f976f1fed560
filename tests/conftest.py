"""Shared test fixtures for the docsdb test suite.

Design:
- repo: isolated repository root with a metadata schema and an empty docs/
- write_doc: helper writing a document with frontmatter
- cli_invoke: CliRunner bound to the temporary repository
"""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from docsdb.cli import cli

# ─────────────────────────────────────────────────────────────────────────────
# Schema
# ─────────────────────────────────────────────────────────────────────────────

SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["id", "type", "title", "owner", "status", "created", "updated"],
    "properties": {
        "id": {"type": "string", "pattern": "^[a-z0-9][a-z0-9-]*$"},
        "type": {"enum": ["adr", "runbook", "guide"]},
        "title": {"type": "string", "minLength": 1},
        "owner": {"type": "string", "minLength": 1},
        "status": {
            "enum": ["proposed", "accepted", "deprecated", "superseded", "active", "retired"]
        },
        "created": {"type": "string", "format": "date"},
        "updated": {"type": "string", "format": "date"},
        "tags": {"type": "array", "items": {"type": "string"}},
        "service": {"type": "string"},
        "severity": {"enum": ["sev1", "sev2", "sev3"]},
        "audience": {"type": "array", "items": {"type": "string"}},
        "summary": {"type": "string"},
        "reviewers": {"type": "array", "items": {"type": "string"}},
    },
    "additionalProperties": False,
}

DEFAULT_FIELDS = {
    "type": "adr",
    "title": "A decision",
    "owner": "Platform",
    "status": "accepted",
    "created": "2024-01-15",
    "updated": "2024-01-20",
}


def render_doc(body: str = "", **fields) -> str:
    """Render a document with frontmatter. Fields set to None are omitted."""
    lines = ["---"]
    for key, value in {**DEFAULT_FIELDS, **fields}.items():
        if value is None:
            continue
        if isinstance(value, list):
            lines.append(f"{key}: [{', '.join(value)}]")
        else:
            lines.append(f"{key}: {value}")
    lines += ["---", "", body]
    return "\n".join(lines)


def write_doc(repo: Path, rel_path: str, body: str = "", **fields) -> Path:
    """Write a document under the repository root.

    Usage in tests:
        from conftest import write_doc
        write_doc(repo, "docs/adr/adr-0001.md", "See [[adr-0002]].", id="adr-0001")
    """
    path = repo / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_doc(body, **fields), encoding="utf-8")
    return path


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Repository root with schema.json and an empty docs/ directory."""
    root = tmp_path / "repo"
    (root / "docs").mkdir(parents=True)
    (root / "schema.json").write_text(json.dumps(SCHEMA, indent=2), encoding="utf-8")
    monkeypatch.delenv("DOCSDB_ROOT", raising=False)
    return root


@pytest.fixture
def schema_path(repo: Path) -> Path:
    return repo / "schema.json"


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()


@pytest.fixture
def cli_invoke(runner: CliRunner, repo: Path):
    """Helper for invoking the CLI against the temporary repository.

    Usage:
        def test_build(cli_invoke):
            result = cli_invoke(["build"])
            assert result.exit_code == 0
    """

    def _invoke(args: list[str], catch_exceptions: bool = False):
        return runner.invoke(
            cli,
            args,
            catch_exceptions=catch_exceptions,
            env={"DOCSDB_ROOT": str(repo)},
        )

    return _invoke


@pytest.fixture
def sample_repo(repo: Path) -> Path:
    """Repository with a small, valid, cross-linked corpus.

    Creates:
    - docs/adr/adr-0001-use-postgres.md (links to adr-0002 and a runbook)
    - docs/adr/adr-0002-managed-backups.md
    - docs/runbooks/runbook-db-failover.md (sev1, service db)
    - docs/runbooks/runbook-cache-flush.md (service cache)
    """
    write_doc(
        repo,
        "docs/adr/adr-0001-use-postgres.md",
        "We pick Postgres. See [[adr-0002]] and [failover](../runbooks/runbook-db-failover.md).",
        id="adr-0001",
        title="Use Postgres",
        tags=["database", "storage"],
        summary="Primary datastore choice",
    )
    write_doc(
        repo,
        "docs/adr/adr-0002-managed-backups.md",
        "Backups are managed.",
        id="adr-0002",
        title="Managed backups",
        owner="Data Platform",
        status="proposed",
    )
    write_doc(
        repo,
        "docs/runbooks/runbook-db-failover.md",
        "Follow [the decision](/docs/adr/adr-0001-use-postgres.md#context).",
        id="runbook-db-failover",
        type="runbook",
        title="Database failover",
        status="active",
        service="db",
        severity="sev1",
        tags=["database"],
    )
    write_doc(
        repo,
        "docs/runbooks/runbook-cache-flush.md",
        "Flush it.",
        id="runbook-cache-flush",
        type="runbook",
        title="Cache flush",
        status="active",
        service="cache",
        owner="SRE",
    )
    return repo
