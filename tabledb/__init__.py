"""
tabledb - tables, schemas and user accounts over one ordered key-value store.

Example:
    >>> from tabledb import open_database
    >>> db = await open_database("./data")
    >>> tasks = await db.create_table("tasks", {"required": ["title"]})
    >>> await tasks.put("t-1", {"title": "Write docs"})
    >>> await db.users.register("bob", "correct horse")
    >>> await db.close()
"""

from ._version import __version__
from .access import any_user, field_owner, user_key
from .config import AuthConfig, ServerConfig, StorageConfig, StoreBackend
from .database import SCHEMA_TABLE, Database, open_database
from .errors import (
    AccessDeniedError,
    AlreadyExistsError,
    FieldError,
    InvalidSchemaError,
    InvalidTokenError,
    MalformedEmailError,
    MalformedKeyError,
    MalformedNameError,
    NotFoundError,
    PasswordMismatchError,
    PolicyViolationError,
    StoreClosedError,
    StoreError,
    StoreOpenError,
    TableDbError,
    UnsupportedOperationError,
    ValidationError,
)
from .table import Table, TableConfig

__all__ = [
    "__version__",
    # Database
    "Database",
    "open_database",
    "SCHEMA_TABLE",
    "Table",
    "TableConfig",
    # Access rules
    "any_user",
    "user_key",
    "field_owner",
    # Configuration
    "AuthConfig",
    "ServerConfig",
    "StorageConfig",
    "StoreBackend",
    # Errors
    "TableDbError",
    "StoreError",
    "StoreClosedError",
    "StoreOpenError",
    "NotFoundError",
    "ValidationError",
    "FieldError",
    "InvalidSchemaError",
    "AccessDeniedError",
    "MalformedKeyError",
    "MalformedNameError",
    "MalformedEmailError",
    "AlreadyExistsError",
    "PasswordMismatchError",
    "InvalidTokenError",
    "PolicyViolationError",
    "UnsupportedOperationError",
]
