"""Web server for browsing the docs index."""

from .api import create_app

__all__ = ["create_app"]
