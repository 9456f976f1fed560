"""Create new ADR and runbook documents with pre-filled frontmatter."""

from __future__ import annotations

import logging
import re
from datetime import UTC, date, datetime
from pathlib import Path

from .errors import DocumentExistsError
from .frontmatter import build_frontmatter

log = logging.getLogger(__name__)

ADR_DIR = Path("docs") / "adr"
RUNBOOK_DIR = Path("docs") / "runbooks"

ADR_NUMBER_PATTERN = re.compile(r"adr-(\d{4})-")

ADR_SECTIONS = ("Context", "Decision", "Consequences")
RUNBOOK_SECTIONS = ("Purpose", "Preconditions", "Steps", "Rollback", "Verification")


def slugify(title: str) -> str:
    """Convert title to URL-friendly slug (lowercase, hyphens, alphanumeric only)."""
    slug = title.lower()
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def split_list(value: str | None) -> list[str] | None:
    """Split a comma-separated option value, dropping blanks."""
    if not value:
        return None
    items = [item.strip() for item in value.split(",") if item.strip()]
    return items or None


def _today() -> date:
    return datetime.now(UTC).date()


def next_adr_number(adr_dir: Path) -> str:
    """Return the next free four-digit ADR number in adr_dir."""
    numbers = []
    if adr_dir.is_dir():
        for child in adr_dir.iterdir():
            if not child.is_file():
                continue
            match = ADR_NUMBER_PATTERN.search(child.name)
            if match:
                numbers.append(int(match.group(1)))
    return f"{max(numbers, default=0) + 1:04d}"


def _template_body(sections: tuple[str, ...]) -> str:
    return "".join(f"# {section}\n\n" for section in sections)


def _write_new(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with path.open("x", encoding="utf-8") as handle:
            handle.write(content)
    except FileExistsError as e:
        raise DocumentExistsError(str(path)) from e
    log.info("Created %s", path)
    return path


def create_adr(
    repo_root: Path,
    *,
    title: str,
    owner: str,
    status: str = "proposed",
    tags: list[str] | None = None,
    summary: str | None = None,
    audience: list[str] | None = None,
    today: date | None = None,
) -> Path:
    """Create docs/adr/adr-NNNN-<slug>.md with the next free number.

    Raises:
        DocumentExistsError: If the target file already exists.
    """
    adr_dir = repo_root / ADR_DIR
    number = next_adr_number(adr_dir)
    path = adr_dir / f"adr-{number}-{slugify(title)}.md"
    created = today or _today()

    frontmatter = build_frontmatter(
        {
            "id": f"adr-{number}",
            "type": "adr",
            "title": title,
            "status": status,
            "owner": owner,
            "tags": tags,
            "created": created,
            "updated": created,
            "summary": summary,
            "audience": audience,
        }
    )
    return _write_new(path, frontmatter + _template_body(ADR_SECTIONS))


def create_runbook(
    repo_root: Path,
    *,
    title: str,
    owner: str,
    service: str,
    status: str = "active",
    tags: list[str] | None = None,
    summary: str | None = None,
    audience: list[str] | None = None,
    today: date | None = None,
) -> Path:
    """Create docs/runbooks/runbook-<slug>.md.

    Raises:
        DocumentExistsError: If the target file already exists.
    """
    slug = slugify(title)
    path = repo_root / RUNBOOK_DIR / f"runbook-{slug}.md"
    created = today or _today()

    frontmatter = build_frontmatter(
        {
            "id": f"runbook-{slug}",
            "type": "runbook",
            "title": title,
            "status": status,
            "owner": owner,
            "service": service,
            "tags": tags,
            "created": created,
            "updated": created,
            "summary": summary,
            "audience": audience,
        }
    )
    return _write_new(path, frontmatter + _template_body(RUNBOOK_SECTIONS))
