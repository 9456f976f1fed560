"""Configuration management for docsdb.

This module contains the configurable constants for the docs index and the
discovery of the repository root and its optional `.docsdb.yaml` file.
"""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ValidationError

from .errors import ConfigurationError, ErrorCode, SchemaLoadError

# =============================================================================
# Corpus layout
# =============================================================================

# Per-repository settings file, looked up from the working directory upwards
CONFIG_FILENAME = ".docsdb.yaml"

# Source documents, relative to the repository root
DEFAULT_DOCS_GLOB = "docs/**/*.md"

# Only links to files with this extension become graph edges
DOC_EXTENSION = ".md"

# Candidate schema locations, relative to the repository root, in lookup order
SCHEMA_CANDIDATES = ("schema.json", "docsdb/schema.json")


# =============================================================================
# Index artifact
# =============================================================================

INDEX_DIRNAME = "docsdb"
INDEX_FILENAME = "docsdb.json"

# Older builds wrote the index under this name; queries still read it
LEGACY_INDEX_FILENAME = "docs.db.json"


# =============================================================================
# Query and serve defaults
# =============================================================================

DEFAULT_QUERY_LIMIT = 50

# `docsdb serve` tries these in order when --port is not given
SERVE_PORTS = (4173, 4174, 4175)

SEARCH_PAGE = "search.html"

# Bounds the upward search for .docsdb.yaml
MAX_CONFIG_SEARCH_DEPTH = 50


class ProjectSettings(BaseModel):
    """Optional overrides read from .docsdb.yaml."""

    docs_glob: str = DEFAULT_DOCS_GLOB
    schema_path: str | None = None
    output: str | None = None


def _discover_config_dir(start_dir: Path | None = None) -> Path | None:
    current = Path(start_dir or os.getcwd()).resolve()

    for _ in range(MAX_CONFIG_SEARCH_DEPTH):
        if (current / CONFIG_FILENAME).is_file():
            return current
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def get_repo_root(explicit: Path | None = None) -> Path:
    """Get the repository root that holds docs/ and the index directory.

    Discovery order:
    1. Explicit path (the CLI --root option)
    2. DOCSDB_ROOT environment variable
    3. Nearest ancestor of the working directory containing .docsdb.yaml
    4. The working directory itself
    """
    if explicit is not None:
        return Path(explicit).resolve()

    root = os.environ.get("DOCSDB_ROOT")
    if root:
        return Path(root).resolve()

    discovered = _discover_config_dir()
    if discovered is not None:
        return discovered

    return Path.cwd().resolve()


def load_settings(repo_root: Path) -> ProjectSettings:
    """Load .docsdb.yaml from the repository root, or defaults if absent.

    Raises:
        ConfigurationError: If the file exists but is not a valid mapping.
    """
    config_file = repo_root / CONFIG_FILENAME
    if not config_file.exists():
        return ProjectSettings()

    try:
        data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to read {CONFIG_FILENAME}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{CONFIG_FILENAME} must contain a mapping")

    # The YAML key is "schema"; pydantic reserves that name on BaseModel
    if "schema" in data:
        data["schema_path"] = data.pop("schema")

    try:
        return ProjectSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {CONFIG_FILENAME}: {e}") from e


def get_index_path(repo_root: Path, settings: ProjectSettings | None = None) -> Path:
    """Get the path the index artifact is written to and read from."""
    if settings is not None and settings.output:
        output = Path(settings.output)
        return output if output.is_absolute() else repo_root / output
    return repo_root / INDEX_DIRNAME / INDEX_FILENAME


def get_schema_path(repo_root: Path, settings: ProjectSettings | None = None) -> Path:
    """Locate the metadata schema.

    Raises:
        SchemaLoadError: If no schema file can be found.
    """
    if settings is not None and settings.schema_path:
        configured = Path(settings.schema_path)
        return configured if configured.is_absolute() else repo_root / configured

    for candidate in SCHEMA_CANDIDATES:
        path = repo_root / candidate
        if path.is_file():
            return path

    raise SchemaLoadError(
        "No metadata schema found. Expected one of: " + ", ".join(SCHEMA_CANDIDATES),
        code=ErrorCode.SCHEMA_NOT_FOUND,
    )
