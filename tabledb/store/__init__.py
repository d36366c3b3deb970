"""
Ordered key-value store backends for tabledb.

This module provides the single flat keyspace every table lives in:
- SQLite (default, one file per store location)
- In-memory (for testing)

Invariants:
    - Keys are compared by code point in every backend
    - Operations on a closed store fail immediately with StoreClosedError
    - Only the Database opens or closes a store; tables just delegate

How to change safely:
    - New backends must subclass KeyValueStore
    - Run the shared store tests against every backend
"""

from .base import (
    KeyRange,
    KeyValue,
    KeyValueStore,
    StoreState,
    create_store,
)
from .memory import InMemoryKeyValueStore
from .sqlite import SqliteKeyValueStore

__all__ = [
    # Base and types
    "KeyValueStore",
    "KeyValue",
    "KeyRange",
    "StoreState",
    # Factory
    "create_store",
    # Implementations
    "SqliteKeyValueStore",
    "InMemoryKeyValueStore",
]
