"""Markdown parsing with frontmatter and link extraction."""

from ..errors import MissingFrontmatterError, ParseError
from .links import extract_links, extract_markdown_links, extract_wiki_links
from .markdown import has_frontmatter, normalize_dates, split_document
from .path_index import PathIdentityTable, canonical_path, resolve_link_target

__all__ = [
    "split_document",
    "has_frontmatter",
    "normalize_dates",
    "ParseError",
    "MissingFrontmatterError",
    "extract_links",
    "extract_wiki_links",
    "extract_markdown_links",
    "PathIdentityTable",
    "canonical_path",
    "resolve_link_target",
]
