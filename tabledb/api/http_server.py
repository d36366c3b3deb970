"""
FastAPI application factory for the tabledb HTTP server.

This module creates the FastAPI app with:
- Database lifecycle management
- Signed cookie sessions
- CORS configuration
- Error mapping from tabledb errors to HTTP statuses
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from .._version import __version__
from ..config import ServerConfig
from ..database import Database, open_database
from ..errors import TableDbError
from .config import Settings
from .errors import tabledb_exception_handler
from .routes import router

logger = logging.getLogger(__name__)


def create_app(
    database: Optional[Database] = None,
    config: Optional[ServerConfig] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        database: Open database to serve; the app opens (and closes) its
            own from ``config`` when omitted
        config: Server configuration, used only when ``database`` is None
        settings: HTTP settings (loaded from environment when omitted)
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage database lifecycle."""
        if database is not None:
            app.state.database = database
            yield
            return

        server_config = config or ServerConfig.from_env()
        db = await open_database(config=server_config.storage, auth_config=server_config.auth)
        app.state.database = db
        try:
            yield
        finally:
            await db.close()

    app = FastAPI(
        title="tabledb",
        description="Tables, users and sessions over one ordered key-value store.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=settings.session_cookie,
        max_age=settings.session_max_age,
        https_only=settings.secure_cookies,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.add_exception_handler(TableDbError, tabledb_exception_handler)
    app.include_router(router)

    @app.get("/health")
    async def health():
        db: Database = app.state.database
        return {"status": "healthy" if db.is_open else "closed", "service": "tabledb"}

    return app
