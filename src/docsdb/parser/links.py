"""Link extraction from document bodies.

Two notations are recognized:

- wiki references, ``[[adr-0001]]``, naming a target identifier directly
- Markdown links, ``[label](../adr/adr-0001.md)``, naming a target file

This is a lexical scan, not a Markdown parse. Brackets inside fenced code
blocks and inline code spans are matched exactly like prose. That is a known
limitation and existing corpora may rely on it.
"""

import re

from ..config import DOC_EXTENSION
from ..models import LinkTarget, PathRef, WikiRef

# [[target]] - any run of non-bracket characters between double brackets
WIKI_LINK_PATTERN = re.compile(r"\[\[([^\[\]]+)\]\]")

# [label](target) - the label is ignored
MARKDOWN_LINK_PATTERN = re.compile(r"\[[^\]]*\]\(([^)]+)\)")

EXTERNAL_SCHEME_PATTERN = re.compile(r"^(https?:|mailto:|tel:)", re.IGNORECASE)


def extract_wiki_links(body: str) -> list[WikiRef]:
    """Extract [[name]] references in order of appearance."""
    links: list[WikiRef] = []
    for match in WIKI_LINK_PATTERN.finditer(body):
        name = match.group(1).strip()
        if name:
            links.append(WikiRef(name))
    return links


def _strip_link_suffix(target: str) -> str:
    return target.split("#", 1)[0].split("?", 1)[0]


def extract_markdown_links(body: str, extension: str = DOC_EXTENSION) -> list[PathRef]:
    """Extract local document paths from [label](target) links.

    Anchors, external URLs and links to non-document files are skipped.
    Fragments and query strings are removed from the kept paths.
    """
    links: list[PathRef] = []
    for match in MARKDOWN_LINK_PATTERN.finditer(body):
        target = match.group(1).strip()
        if not target or target.startswith("#"):
            continue
        if EXTERNAL_SCHEME_PATTERN.match(target):
            continue

        path = _strip_link_suffix(target)
        if not path.endswith(extension):
            continue
        links.append(PathRef(path))
    return links


def extract_links(body: str) -> list[LinkTarget]:
    """Extract all link targets, wiki references first."""
    return [*extract_wiki_links(body), *extract_markdown_links(body)]
