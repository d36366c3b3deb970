"""
Configuration for the tabledb HTTP server.

Uses pydantic-settings for environment variable loading.
"""

import secrets

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """HTTP server configuration loaded from environment."""

    # Bind address
    host: str = Field(default="0.0.0.0", description="Server bind host")
    port: int = Field(default=3000, description="Server bind port")

    # Sessions; a random secret invalidates sessions on restart
    session_secret: str = Field(
        default_factory=lambda: secrets.token_hex(32),
        min_length=32,
        description="Session cookie signing secret",
    )
    session_cookie: str = Field(default="tabledb_session", description="Session cookie name")
    session_max_age: int = Field(default=14 * 24 * 3600, description="Session lifetime seconds")
    secure_cookies: bool = Field(default=False, description="Send session cookie over HTTPS only")

    # CORS settings
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins",
    )

    model_config = {"env_prefix": "TABLEDB_HTTP_"}
