#!/usr/bin/env python3
"""
docsdb: CLI for the Markdown docs index

Usage:
    docsdb build                       # Validate docs and write docsdb/docsdb.json
    docsdb validate                    # Validate docs only
    docsdb query --type runbook        # Filter the index
    docsdb new adr --title=.. --owner=..
    docsdb serve                       # Serve the index over HTTP
"""

from __future__ import annotations

import difflib
import json
import socket
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, NoReturn

import click
from click.exceptions import ClickException, UsageError

from . import __version__ as DOCSDB_VERSION
from .config import (
    DEFAULT_QUERY_LIMIT,
    LEGACY_INDEX_FILENAME,
    SERVE_PORTS,
    ProjectSettings,
    get_index_path,
    get_repo_root,
    get_schema_path,
    load_settings,
)
from .errors import DocsdbError, ErrorCode, format_error_json
from .models import BuildResult

# Exit codes
EXIT_FAILURE = 1
EXIT_USAGE = 2


# ─────────────────────────────────────────────────────────────────────────────
# Output Formatting
# ─────────────────────────────────────────────────────────────────────────────


def format_table(rows: list[dict], columns: list[str], max_widths: dict | None = None) -> str:
    """Format rows as a simple table."""
    if not rows:
        return ""

    max_widths = max_widths or {}
    widths = {col: len(col) for col in columns}

    def cell(row: dict, col: str) -> str:
        val = str(row.get(col, ""))
        limit = max_widths.get(col, 50)
        if len(val) > limit:
            val = val[: limit - 3] + "..."
        return val

    for row in rows:
        for col in columns:
            widths[col] = max(widths[col], len(cell(row, col)))

    header = "  ".join(col.upper().ljust(widths[col]) for col in columns)
    separator = "  ".join("-" * widths[col] for col in columns)

    lines = [header, separator]
    for row in rows:
        lines.append("  ".join(cell(row, col).ljust(widths[col]) for col in columns).rstrip())

    return "\n".join(lines)


def _display_path(path: Path, repo_root: Path) -> str:
    try:
        return path.resolve().relative_to(repo_root.resolve()).as_posix()
    except ValueError:
        return str(path)


def _handle_error(
    ctx: click.Context,
    error: DocsdbError,
    exit_code: int = EXIT_FAILURE,
) -> NoReturn:
    """Print an error (as JSON with --json-errors) and exit."""
    json_errors = ctx.obj.get("json_errors", False) if ctx.obj else False

    if json_errors:
        click.echo(error.to_json(), err=True)
    else:
        click.echo(f"Error: {error.message}", err=True)

    sys.exit(exit_code)


def _report_issues(ctx: click.Context, result: BuildResult) -> NoReturn:
    """Print every build issue grouped by file, then exit non-zero."""
    json_errors = ctx.obj.get("json_errors", False) if ctx.obj else False
    files = sorted({issue.path for issue in result.issues})

    if json_errors:
        details = {"issues": [issue.model_dump(mode="json") for issue in result.issues]}
        message = f"Build failed with {len(result.issues)} problem(s); index not written"
        click.echo(format_error_json(ErrorCode.BUILD_FAILED.value, message, details), err=True)
        sys.exit(EXIT_FAILURE)

    for issue in result.issues:
        click.echo(f"{issue.path}: {issue.message}", err=True)
        for violation in issue.violations:
            click.echo(f"  - {violation}", err=True)

    click.echo(
        f"Build failed: {len(result.issues)} problem(s) in {len(files)} file(s); "
        "index not written.",
        err=True,
    )
    sys.exit(EXIT_FAILURE)


# ─────────────────────────────────────────────────────────────────────────────
# JSON Error Handling
# ─────────────────────────────────────────────────────────────────────────────


class UnknownCommandError(UsageError):
    """Raised for a subcommand name that docsdb does not define."""

    def __init__(self, name: str, suggestion: str | None, ctx: click.Context | None = None) -> None:
        message = f"No such command '{name}'."
        if suggestion:
            message += f" Did you mean '{suggestion}'?"
        super().__init__(message, ctx)
        self.suggestion = suggestion


def get_error_code_for_exception(exc: ClickException) -> ErrorCode:
    """Map a click parsing error onto docsdb's usage error codes."""
    if isinstance(exc, UnknownCommandError):
        return ErrorCode.UNKNOWN_COMMAND
    if isinstance(exc, click.NoSuchOption):
        return ErrorCode.UNKNOWN_OPTION
    if isinstance(exc, click.MissingParameter):
        return ErrorCode.MISSING_ARGUMENT
    if isinstance(exc, click.BadParameter):
        return ErrorCode.INVALID_ARGUMENT
    return ErrorCode.USAGE_ERROR


class JsonErrorGroup(click.Group):
    """Click group that formats errors as JSON when --json-errors is set.

    Unknown subcommands get the closest known name as a suggestion.
    """

    def resolve_command(self, ctx, args):
        cmd_name = args[0] if args else ""
        if cmd_name and not cmd_name.startswith("-") and self.get_command(ctx, cmd_name) is None:
            matches = difflib.get_close_matches(cmd_name, self.list_commands(ctx), n=1, cutoff=0.6)
            raise UnknownCommandError(cmd_name, matches[0] if matches else None, ctx)
        return super().resolve_command(ctx, args)

    def main(
        self,
        args: Sequence[str] | None = None,
        prog_name: str | None = None,
        complete_var: str | None = None,
        standalone_mode: bool = True,
        **extra: Any,
    ) -> Any:
        """Report click parsing errors as JSON when --json-errors is present."""
        argv = list(args) if args is not None else list(sys.argv[1:])

        if "--json-errors" not in argv:
            return super().main(args, prog_name, complete_var, standalone_mode, **extra)

        # Accept --json-errors anywhere on the command line
        argv = ["--json-errors", *[a for a in argv if a != "--json-errors"]]

        try:
            return super().main(
                argv,
                prog_name,
                complete_var,
                standalone_mode=False,
                **extra,
            )
        except UsageError as e:
            code = get_error_code_for_exception(e)
            details = {"suggestion": e.suggestion} if getattr(e, "suggestion", None) else None
            click.echo(format_error_json(code.value, e.format_message(), details), err=True)
            raise SystemExit(e.exit_code)


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group(cls=JsonErrorGroup)
@click.version_option(version=DOCSDB_VERSION, prog_name="docsdb")
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="DOCSDB_ROOT",
    help="Repository root containing docs/ (default: nearest .docsdb.yaml or cwd)",
)
@click.option(
    "--json-errors",
    "json_errors",
    is_flag=True,
    help="Output errors as JSON (for programmatic use)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    envvar="DOCSDB_QUIET",
    help="Suppress informational log output",
)
@click.pass_context
def cli(ctx: click.Context, root: Path | None, json_errors: bool, quiet: bool):
    """docsdb: index Markdown ADRs and runbooks into a queryable JSON file.

    \b
    Quick start:
      docsdb new adr --title="Use Postgres" --owner="Platform"
      docsdb build                          # Validate + write docsdb/docsdb.json
      docsdb query --type adr --status accepted
      docsdb serve                          # Browse at http://localhost:4173
    """
    from ._logging import set_quiet_mode

    if quiet:
        set_quiet_mode(True)

    ctx.ensure_object(dict)
    ctx.obj["root"] = root
    ctx.obj["json_errors"] = json_errors


def _project(ctx: click.Context) -> tuple[Path, ProjectSettings]:
    repo_root = get_repo_root(ctx.obj.get("root"))
    try:
        return repo_root, load_settings(repo_root)
    except DocsdbError as e:
        _handle_error(ctx, e, exit_code=EXIT_USAGE)


def _run_build(ctx: click.Context, schema_path: Path | None) -> tuple[Path, ProjectSettings, BuildResult]:
    from .indexer import build_index
    from .schema import SchemaValidator

    repo_root, settings = _project(ctx)
    try:
        validator = SchemaValidator.from_path(schema_path or get_schema_path(repo_root, settings))
        result = build_index(repo_root, validator, docs_glob=settings.docs_glob)
    except DocsdbError as e:
        _handle_error(ctx, e)

    if not result.ok:
        _report_issues(ctx, result)
    return repo_root, settings, result


schema_option = click.option(
    "--schema",
    "schema_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Metadata JSON Schema (default: schema.json or docsdb/schema.json)",
)


@cli.command()
@schema_option
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Index file to write (default: docsdb/docsdb.json)",
)
@click.pass_context
def build(ctx: click.Context, schema_path: Path | None, output: Path | None):
    """Validate all docs and write the index.

    Nothing is written if any document is invalid or two documents share an id.

    \b
    Examples:
      docsdb build
      docsdb build --schema docs/schema.json --output public/docsdb.json
    """
    from .indexer import publish_index

    repo_root, settings, result = _run_build(ctx, schema_path)

    index_path = output or get_index_path(repo_root, settings)
    publish_index(result, index_path)
    click.echo(f"Wrote {len(result.entries)} docs to {_display_path(index_path, repo_root)}.")


@cli.command()
@schema_option
@click.pass_context
def validate(ctx: click.Context, schema_path: Path | None):
    """Validate all docs without writing the index."""
    _, _, result = _run_build(ctx, schema_path)
    click.echo(f"Validated {result.files_scanned} Markdown file(s).")


@cli.command()
@click.option("--type", "doc_type", help="Exact document type (adr, runbook, ...)")
@click.option("--status", help="Exact status")
@click.option("--owner", help="Owner substring (case-insensitive)")
@click.option("--tag", help="Documents carrying this tag")
@click.option("--text", help="Substring of title or summary (case-insensitive)")
@click.option("--service", help="Exact service")
@click.option("--severity", help="Exact severity")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option(
    "--limit",
    "-n",
    default=DEFAULT_QUERY_LIMIT,
    show_default=True,
    type=click.IntRange(min=1),
    help="Max results",
)
@click.pass_context
def query(
    ctx: click.Context,
    doc_type: str | None,
    status: str | None,
    owner: str | None,
    tag: str | None,
    text: str | None,
    service: str | None,
    severity: str | None,
    as_json: bool,
    limit: int,
):
    """Query the index built by `docsdb build`.

    Filters combine with AND. Results are ordered by type, then id.
    Exits 1 when nothing matches and 2 when the index is missing.

    \b
    Examples:
      docsdb query --type runbook --status active
      docsdb query --owner platform --tag postgres --json
      docsdb query --text "rollback" --limit 5
    """
    from .query import QueryFilters, load_index, query_index

    repo_root, settings = _project(ctx)
    try:
        entries = load_index(get_index_path(repo_root, settings))
    except DocsdbError as e:
        _handle_error(ctx, e, exit_code=EXIT_USAGE)

    filters = QueryFilters(
        type=doc_type,
        status=status,
        owner=owner,
        tag=tag,
        text=text,
        service=service,
        severity=severity,
    )
    results = query_index(entries, filters, limit=limit)

    if not results:
        click.echo("No matching docs found.", err=True)
        sys.exit(EXIT_FAILURE)

    rows = [entry.to_json_dict() for entry in results]
    if as_json:
        click.echo(json.dumps(rows, indent=2, ensure_ascii=False))
    else:
        click.echo(format_table(rows, ["id", "type", "title", "path"], {"title": 60, "path": 80}))


# ─────────────────────────────────────────────────────────────────────────────
# Scaffolding
# ─────────────────────────────────────────────────────────────────────────────


@cli.group()
def new():
    """Create a new document from a template."""


def _common_new_options(func):
    func = click.option("--audience", help="Comma-separated audiences (e.g. dev,ops)")(func)
    func = click.option("--summary", help="One-line summary")(func)
    func = click.option("--tags", help="Comma-separated tags")(func)
    func = click.option("--owner", required=True, help="Owning team")(func)
    func = click.option("--title", required=True, help="Document title")(func)
    return func


def _announce_created(path: Path, repo_root: Path) -> None:
    click.echo(f"Created {_display_path(path, repo_root)}")
    click.echo("Next: docsdb build")


@new.command("adr")
@_common_new_options
@click.option("--status", default="proposed", show_default=True, help="Initial status")
@click.pass_context
def new_adr(
    ctx: click.Context,
    title: str,
    owner: str,
    tags: str | None,
    summary: str | None,
    audience: str | None,
    status: str,
):
    """Create docs/adr/adr-NNNN-<slug>.md with the next free number."""
    from .scaffold import create_adr, split_list

    repo_root, _ = _project(ctx)
    try:
        path = create_adr(
            repo_root,
            title=title,
            owner=owner,
            status=status,
            tags=split_list(tags),
            summary=summary,
            audience=split_list(audience),
        )
    except DocsdbError as e:
        _handle_error(ctx, e, exit_code=EXIT_USAGE)
    _announce_created(path, repo_root)


@new.command("runbook")
@_common_new_options
@click.option("--service", required=True, help="Service the runbook operates")
@click.option("--status", default="active", show_default=True, help="Initial status")
@click.pass_context
def new_runbook(
    ctx: click.Context,
    title: str,
    owner: str,
    tags: str | None,
    summary: str | None,
    audience: str | None,
    service: str,
    status: str,
):
    """Create docs/runbooks/runbook-<slug>.md."""
    from .scaffold import create_runbook, split_list

    repo_root, _ = _project(ctx)
    try:
        path = create_runbook(
            repo_root,
            title=title,
            owner=owner,
            service=service,
            status=status,
            tags=split_list(tags),
            summary=summary,
            audience=split_list(audience),
        )
    except DocsdbError as e:
        _handle_error(ctx, e, exit_code=EXIT_USAGE)
    _announce_created(path, repo_root)


# ─────────────────────────────────────────────────────────────────────────────
# Web Server
# ─────────────────────────────────────────────────────────────────────────────


def _first_free_port(host: str, ports: Sequence[int]) -> int | None:
    for port in ports:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            try:
                sock.bind((host, port))
            except OSError:
                continue
            return port
    return None


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Host interface")
@click.option(
    "--port",
    type=click.IntRange(1, 65535),
    help=f"Server port (default: first free of {', '.join(map(str, SERVE_PORTS))})",
)
@click.pass_context
def serve(ctx: click.Context, host: str, port: int | None):
    """Serve the index directory and a JSON query API over HTTP."""
    import uvicorn

    from .webapp import create_app

    repo_root, settings = _project(ctx)
    index_path = get_index_path(repo_root, settings)
    if not index_path.exists() and not index_path.with_name(LEGACY_INDEX_FILENAME).exists():
        click.echo("Warning: index JSON not found. Run `docsdb build` first.", err=True)

    if port is None:
        port = _first_free_port(host, SERVE_PORTS)
        if port is None:
            click.echo(f"Error: No available ports found ({SERVE_PORTS[0]}-{SERVE_PORTS[-1]}).", err=True)
            sys.exit(EXIT_USAGE)

    click.echo(f"Serving docsdb at http://{host}:{port}")
    click.echo("Press Ctrl+C to stop.")
    uvicorn.run(create_app(index_path), host=host, port=port, log_level="info")


def main() -> None:
    from ._logging import configure_logging

    configure_logging()
    cli()


if __name__ == "__main__":
    main()
