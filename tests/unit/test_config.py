"""
Unit tests for environment configuration.
"""

import pytest

from tabledb.config import (
    AuthConfig,
    ObservabilityConfig,
    ServerConfig,
    StorageConfig,
    StoreBackend,
)


class TestStorageConfig:
    """Tests for StorageConfig.from_env."""

    def test_defaults(self, monkeypatch):
        """Defaults apply with an empty environment."""
        for name in (
            "TABLEDB_STORE_BACKEND",
            "TABLEDB_DATA_DIR",
            "TABLEDB_CREATE_IF_MISSING",
            "TABLEDB_ERROR_IF_EXISTS",
            "TABLEDB_READ_PAGE_SIZE",
        ):
            monkeypatch.delenv(name, raising=False)

        config = StorageConfig.from_env()

        assert config.backend == StoreBackend.SQLITE
        assert config.data_dir == "./tabledb-data"
        assert config.create_if_missing is True
        assert config.error_if_exists is False
        assert config.read_page_size == 256

    def test_from_env(self, monkeypatch):
        """Environment variables override defaults."""
        monkeypatch.setenv("TABLEDB_STORE_BACKEND", "memory")
        monkeypatch.setenv("TABLEDB_DATA_DIR", "/tmp/x")
        monkeypatch.setenv("TABLEDB_ERROR_IF_EXISTS", "TRUE")
        monkeypatch.setenv("TABLEDB_READ_PAGE_SIZE", "10")

        config = StorageConfig.from_env()

        assert config.backend == StoreBackend.MEMORY
        assert config.data_dir == "/tmp/x"
        assert config.error_if_exists is True
        assert config.read_page_size == 10

    def test_invalid_backend(self, monkeypatch):
        """Unknown backends are rejected."""
        monkeypatch.setenv("TABLEDB_STORE_BACKEND", "leveldb")
        with pytest.raises(ValueError, match="TABLEDB_STORE_BACKEND"):
            StorageConfig.from_env()


class TestServerConfig:
    """Tests for ServerConfig validation."""

    def test_auth_from_env(self, monkeypatch):
        """Auth settings are read from the environment."""
        monkeypatch.setenv("TABLEDB_EMAIL_REQUIRED", "true")
        monkeypatch.setenv("TABLEDB_RESET_TOKEN_MINUTES", "15")

        config = AuthConfig.from_env()

        assert config.email_required is True
        assert config.reset_token_minutes == 15

    def test_validate_page_size(self):
        """Page size must be positive."""
        config = ServerConfig(storage=StorageConfig(read_page_size=0))
        with pytest.raises(ValueError, match="TABLEDB_READ_PAGE_SIZE"):
            config.validate()

    def test_validate_contradicting_open_flags(self):
        """error_if_exists without create_if_missing can never open."""
        config = ServerConfig(
            storage=StorageConfig(
                backend=StoreBackend.MEMORY,
                create_if_missing=False,
                error_if_exists=True,
            )
        )
        with pytest.raises(ValueError):
            config.validate()

    def test_validate_log_format(self):
        """Only json and text log formats exist."""
        config = ServerConfig(
            storage=StorageConfig(backend=StoreBackend.MEMORY),
            observability=ObservabilityConfig(log_format="xml"),
        )
        with pytest.raises(ValueError, match="LOG_FORMAT"):
            config.validate()

    def test_validate_negative_minutes(self):
        """Reset token validity cannot be negative."""
        config = ServerConfig(
            storage=StorageConfig(backend=StoreBackend.MEMORY),
            auth=AuthConfig(reset_token_minutes=-1),
        )
        with pytest.raises(ValueError):
            config.validate()

    def test_valid_memory_config(self):
        """A memory config with defaults is valid."""
        ServerConfig(storage=StorageConfig(backend=StoreBackend.MEMORY)).validate()
