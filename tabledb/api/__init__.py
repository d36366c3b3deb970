"""
HTTP server for tabledb.

A thin FastAPI layer exposing registration, session login/logout and the
table listing.
"""

from .config import Settings
from .http_server import create_app

__all__ = ["Settings", "create_app"]
