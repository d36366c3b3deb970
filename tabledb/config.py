"""
Configuration management for tabledb.

All configuration is done via environment variables.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep variable names prefixed with TABLEDB_ (logging variables excepted)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class StoreBackend(Enum):
    """Supported key-value store backends."""

    SQLITE = "sqlite"
    MEMORY = "memory"


@dataclass(frozen=True)
class StorageConfig:
    """Key-value store configuration.

    Attributes:
        backend: Which store implementation to use
        data_dir: Default store location (directory)
        create_if_missing: Create the store if it does not exist
        error_if_exists: Refuse to open an existing store
        wal_mode: SQLite WAL journal mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
        read_page_size: Rows fetched per query while scanning
    """

    backend: StoreBackend = StoreBackend.SQLITE
    data_dir: str = "./tabledb-data"
    create_if_missing: bool = True
    error_if_exists: bool = False
    wal_mode: bool = True
    busy_timeout_ms: int = 5000
    read_page_size: int = 256

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        backend_str = os.getenv("TABLEDB_STORE_BACKEND", "sqlite").lower()
        try:
            backend = StoreBackend(backend_str)
        except ValueError:
            raise ValueError(
                f"Invalid TABLEDB_STORE_BACKEND '{backend_str}'. Must be one of: sqlite, memory"
            )
        return cls(
            backend=backend,
            data_dir=os.getenv("TABLEDB_DATA_DIR", "./tabledb-data"),
            create_if_missing=_env_bool("TABLEDB_CREATE_IF_MISSING", "true"),
            error_if_exists=_env_bool("TABLEDB_ERROR_IF_EXISTS", "false"),
            wal_mode=_env_bool("TABLEDB_SQLITE_WAL_MODE", "true"),
            busy_timeout_ms=int(os.getenv("TABLEDB_SQLITE_BUSY_TIMEOUT_MS", "5000")),
            read_page_size=int(os.getenv("TABLEDB_READ_PAGE_SIZE", "256")),
        )


@dataclass(frozen=True)
class AuthConfig:
    """Identity workflow configuration.

    Attributes:
        email_required: Whether registration must supply an email
        reset_token_minutes: Default validity of password reset tokens
    """

    email_required: bool = False
    reset_token_minutes: int = 120

    @classmethod
    def from_env(cls) -> AuthConfig:
        """Load configuration from environment variables."""
        return cls(
            email_required=_env_bool("TABLEDB_EMAIL_REQUIRED", "false"),
            reset_token_minutes=int(os.getenv("TABLEDB_RESET_TOKEN_MINUTES", "120")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class ServerConfig:
    """Complete configuration.

    Attributes:
        storage: Key-value store configuration
        auth: Identity workflow configuration
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            auth=AuthConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.storage.backend == StoreBackend.SQLITE and not self.storage.data_dir:
            raise ValueError("TABLEDB_DATA_DIR is required when TABLEDB_STORE_BACKEND=sqlite")
        if self.storage.read_page_size < 1:
            raise ValueError("TABLEDB_READ_PAGE_SIZE must be positive")
        if self.storage.create_if_missing is False and self.storage.error_if_exists:
            raise ValueError(
                "TABLEDB_ERROR_IF_EXISTS with TABLEDB_CREATE_IF_MISSING=false can never open a store"
            )
        if self.auth.reset_token_minutes < 0:
            raise ValueError("TABLEDB_RESET_TOKEN_MINUTES must not be negative")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

        if self.storage.backend == StoreBackend.SQLITE and not os.path.exists(
            self.storage.data_dir
        ):
            logger.warning(
                f"Data directory does not exist: {self.storage.data_dir}. "
                "It will be created on open."
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Configuration loaded",
            extra={
                "store_backend": self.storage.backend.value,
                "data_dir": self.storage.data_dir,
                "email_required": self.auth.email_required,
                "reset_token_minutes": self.auth.reset_token_minutes,
                "log_level": self.observability.log_level,
            },
        )
