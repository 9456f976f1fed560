"""Path-to-identifier table for resolving document links.

The table is assembled from every accepted document before any link is
resolved, then frozen. Resolution never mutates it.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from pathlib import Path
from types import MappingProxyType

from ..models import LinkTarget, WikiRef

log = logging.getLogger(__name__)


def canonical_path(path: str | os.PathLike[str]) -> str:
    """Absolute, lexically normalized form of a path.

    Symlinks are not followed, so a link resolves against the path as written.
    """
    return os.path.normpath(os.path.abspath(path))


class PathIdentityTable:
    """Read-only mapping of canonical file path to document identifier."""

    __slots__ = ("_root", "_by_path", "_identifiers")

    def __init__(self, root: Path, by_path: Mapping[str, str]) -> None:
        self._root = canonical_path(root)
        self._by_path = MappingProxyType(
            {canonical_path(path): identifier for path, identifier in by_path.items()}
        )
        self._identifiers = frozenset(self._by_path.values())

    @classmethod
    def from_pairs(cls, root: Path, pairs: Iterable[tuple[Path, str]]) -> PathIdentityTable:
        return cls(root, {str(path): identifier for path, identifier in pairs})

    @property
    def root(self) -> str:
        return self._root

    def __len__(self) -> int:
        return len(self._by_path)

    def lookup(self, path: str | os.PathLike[str]) -> str | None:
        return self._by_path.get(canonical_path(path))

    def has_identifier(self, identifier: str) -> bool:
        return identifier in self._identifiers


def resolve_link_target(
    target: LinkTarget,
    current_file: Path,
    table: PathIdentityTable,
) -> str | None:
    """Resolve a link target to a document identifier.

    Wiki references resolve by exact identifier match. Path references
    starting with "/" resolve against the corpus root, anything else against
    the directory of the current file.

    Args:
        target: Link extracted from the body of current_file.
        current_file: Absolute path of the document containing the link.
        table: Frozen table built from all accepted documents.

    Returns:
        The identifier, or None if the target names no known document.
    """
    if isinstance(target, WikiRef):
        resolved = target.name if table.has_identifier(target.name) else None
    else:
        raw = target.raw_path
        if raw.startswith("/"):
            candidate = os.path.join(table.root, "." + raw)
        else:
            candidate = os.path.join(os.path.dirname(current_file), raw)
        resolved = table.lookup(candidate)

    if resolved is None:
        log.debug("Unresolved link %r in %s", target, current_file)
    return resolved
