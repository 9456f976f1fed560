"""HTTP API and static file server for the docs index."""

from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from .. import __version__
from ..config import DEFAULT_QUERY_LIMIT, SEARCH_PAGE
from ..errors import IndexNotFoundError, InvalidIndexError
from ..models import IndexEntry
from ..query import QueryFilters, load_index, query_index


class QueryResponse(BaseModel):
    """Query results response."""
    results: list[dict[str, Any]]
    total: int


def create_app(index_path: Path) -> FastAPI:
    """Build the app serving index_path and the files next to it."""
    index_dir = index_path.parent

    app = FastAPI(
        title="docsdb",
        description="Docs index browser",
        version=__version__,
    )

    def _load() -> list[IndexEntry]:
        try:
            return load_index(index_path)
        except IndexNotFoundError as e:
            raise HTTPException(status_code=503, detail=e.message)
        except InvalidIndexError as e:
            raise HTTPException(status_code=500, detail=e.message)

    @app.get("/")
    async def root():
        """Serve the search page."""
        page = index_dir / SEARCH_PAGE
        if page.is_file():
            return FileResponse(str(page))
        raise HTTPException(status_code=404, detail="Not found")

    @app.get("/api/docs")
    async def docs() -> list[dict[str, Any]]:
        """Return the full index."""
        return [entry.to_json_dict() for entry in _load()]

    @app.get("/api/query", response_model=QueryResponse)
    async def query(
        type: str | None = None,
        status: str | None = None,
        owner: str | None = None,
        tag: str | None = None,
        text: str | None = None,
        service: str | None = None,
        severity: str | None = None,
        limit: int = Query(DEFAULT_QUERY_LIMIT, ge=1),
    ) -> QueryResponse:
        """Filter the index with the same semantics as `docsdb query`."""
        filters = QueryFilters(
            type=type,
            status=status,
            owner=owner,
            tag=tag,
            text=text,
            service=service,
            severity=severity,
        )
        results = query_index(_load(), filters, limit=limit)
        return QueryResponse(
            results=[entry.to_json_dict() for entry in results],
            total=len(results),
        )

    # Everything else in the index directory is served as-is
    if index_dir.is_dir():
        app.mount("/", StaticFiles(directory=str(index_dir)), name="static")

    return app
