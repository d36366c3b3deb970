"""
tabledb server entry point.

This module loads configuration, sets up logging and serves the HTTP app
with uvicorn.

Usage:
    tabledb-server

    # Or with environment variables
    TABLEDB_DATA_DIR=/var/lib/tabledb LOG_FORMAT=json tabledb-server

Invariants:
    - Configuration errors exit before anything is opened
    - The store is closed when the server shuts down
"""

from __future__ import annotations

import logging
import sys

import json_log_formatter
import uvicorn

from .api import Settings, create_app
from .config import ServerConfig

logger = logging.getLogger(__name__)

UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    The root logger gets a single handler; uvicorn's loggers drop their own
    handlers and propagate to it. Access lines are kept only at DEBUG.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # uvicorn logs through the root handler so every line shares one format
    for name in UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.propagate = True
        uvicorn_logger.setLevel(logging.NOTSET)

    # One line per request only when debugging
    access_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    logging.getLogger("uvicorn.access").setLevel(access_level)


def main() -> None:
    """Main entry point."""
    try:
        config = ServerConfig.from_env()
        settings = Settings()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    config.log_config()

    app = create_app(config=config, settings=settings)
    logger.info(f"Starting tabledb server on {settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
