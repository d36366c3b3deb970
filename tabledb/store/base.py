"""
Base class and types for the ordered key-value store.

The store is a flat, ordered map from string keys to JSON values with a
lifecycle (open, closed) and ascending range iteration. Tables never open
or close it; they only delegate to it and subscribe to its signals.

Invariants:
    - Keys are ordered by code point, identically in every backend
    - Every data operation on a store that is not open raises
      StoreClosedError immediately
    - on_put fires after the backend acknowledged the write
    - on_closing fires exactly once per close()

How to change safely:
    - New backends subclass KeyValueStore and implement the _raw_* hooks
    - Keep lifecycle and signal handling in this module only
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional

from ..errors import NotFoundError, StoreClosedError, StoreError
from ..events import Signal

if TYPE_CHECKING:
    from ..config import StorageConfig

logger = logging.getLogger(__name__)


class StoreState(Enum):
    """Lifecycle states of a store."""

    NEW = "new"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class KeyValue:
    """One item of a range scan.

    Attributes:
        key: Record key
        value: Decoded JSON value
    """

    key: str
    value: Any

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {"key": self.key, "value": self.value}


@dataclass(frozen=True)
class KeyRange:
    """Bounds and direction of a range scan.

    Unset bounds are None. Both a strict and an inclusive bound may be set
    on the same side; the tighter one wins.
    """

    gt: Optional[str] = None
    gte: Optional[str] = None
    lt: Optional[str] = None
    lte: Optional[str] = None
    reverse: bool = False
    limit: Optional[int] = None

    def contains(self, key: str) -> bool:
        """Whether ``key`` lies within the bounds."""
        if self.gt is not None and not key > self.gt:
            return False
        if self.gte is not None and not key >= self.gte:
            return False
        if self.lt is not None and not key < self.lt:
            return False
        if self.lte is not None and not key <= self.lte:
            return False
        return True


def encode_value(value: Any) -> str:
    """Serialize a value for storage.

    Raises:
        StoreError: If the value is not JSON serializable
    """
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise StoreError(f"Value is not JSON serializable: {e}")


def decode_value(raw: str) -> Any:
    """Deserialize a stored value."""
    return json.loads(raw)


class KeyValueStore(ABC):
    """Ordered key-value store with lifecycle and change signals.

    Subclasses implement the ``_raw_*`` hooks; this class owns state
    checks, value encoding, and the ``on_put`` / ``on_closing`` signals.

    Example:
        >>> store = InMemoryKeyValueStore()
        >>> await store.open()
        >>> await store.put("users:bob", {"age": 42})
        >>> await store.get("users:bob")
        {'age': 42}
        >>> async for item in store.create_read_stream(gte="users:"):
        ...     print(item.key)
        users:bob
    """

    def __init__(
        self,
        location: Optional[str] = None,
        create_if_missing: bool = True,
        error_if_exists: bool = False,
    ) -> None:
        self.location = location
        self.create_if_missing = create_if_missing
        self.error_if_exists = error_if_exists
        self.on_put = Signal("store.put")
        self.on_closing = Signal("store.closing")
        self._state = StoreState.NEW

    @property
    def state(self) -> StoreState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_open(self) -> bool:
        """Whether the store accepts operations."""
        return self._state == StoreState.OPEN

    @property
    def is_closed(self) -> bool:
        """Whether the store rejects operations."""
        return self._state != StoreState.OPEN

    def _ensure_open(self) -> None:
        if self._state != StoreState.OPEN:
            raise StoreClosedError()

    async def open(self) -> None:
        """Open the store.

        Raises:
            StoreOpenError: If create_if_missing / error_if_exists forbid it
            OSError: If the location cannot be created
        """
        if self._state == StoreState.OPEN:
            return
        await self._raw_open()
        self._state = StoreState.OPEN
        logger.info(f"Opened {type(self).__name__} at {self.location or '<memory>'}")

    async def close(self) -> None:
        """Close the store. Closing twice is a no-op."""
        if self._state != StoreState.OPEN:
            self._state = StoreState.CLOSED
            return
        self.on_closing.emit()
        self._state = StoreState.CLOSED
        await self._raw_close()
        logger.info(f"Closed {type(self).__name__} at {self.location or '<memory>'}")

    async def destroy(self) -> None:
        """Close the store, then irreversibly remove its data."""
        await self.close()
        await self._raw_destroy()
        logger.info(f"Destroyed {type(self).__name__} at {self.location or '<memory>'}")

    async def get(self, key: str) -> Any:
        """Get the value stored under ``key``.

        Raises:
            StoreClosedError: If the store is not open
            NotFoundError: If the key is absent
        """
        self._ensure_open()
        raw = await self._raw_get(key)
        if raw is None:
            raise NotFoundError(f"Key not found in database [{key}]", "key", key)
        return decode_value(raw)

    async def put(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` and fire ``on_put``.

        Raises:
            StoreClosedError: If the store is not open
            StoreError: If the value cannot be encoded
        """
        self._ensure_open()
        raw = encode_value(value)
        await self._raw_put(key, raw)
        self.on_put.emit(key, decode_value(raw))

    async def delete(self, key: str) -> None:
        """Remove ``key``; absent keys are ignored."""
        self._ensure_open()
        await self._raw_delete(key)

    async def create_read_stream(
        self,
        gt: Optional[str] = None,
        gte: Optional[str] = None,
        lt: Optional[str] = None,
        lte: Optional[str] = None,
        reverse: bool = False,
        limit: Optional[int] = None,
    ) -> AsyncIterator[KeyValue]:
        """Iterate over a key range in key order.

        Each call starts a new scan. The state check runs when iteration
        starts and again before every backend fetch.

        Yields:
            KeyValue items, ascending unless ``reverse``
        """
        key_range = KeyRange(gt=gt, gte=gte, lt=lt, lte=lte, reverse=reverse, limit=limit)
        self._ensure_open()
        if limit is not None and limit <= 0:
            return
        async for key, raw in self._raw_iterate(key_range):
            yield KeyValue(key=key, value=decode_value(raw))

    @abstractmethod
    async def _raw_open(self) -> None:
        ...

    @abstractmethod
    async def _raw_close(self) -> None:
        ...

    @abstractmethod
    async def _raw_destroy(self) -> None:
        ...

    @abstractmethod
    async def _raw_get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def _raw_put(self, key: str, raw: str) -> None:
        ...

    @abstractmethod
    async def _raw_delete(self, key: str) -> None:
        ...

    @abstractmethod
    def _raw_iterate(self, key_range: KeyRange) -> AsyncIterator[tuple[str, str]]:
        ...


def create_store(config: "StorageConfig", location: Optional[str] = None) -> KeyValueStore:
    """Factory function to create a store from configuration.

    Args:
        config: Storage configuration
        location: Store location (defaults to ``config.data_dir``)

    Returns:
        Appropriate KeyValueStore implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StoreBackend
    from .memory import InMemoryKeyValueStore
    from .sqlite import SqliteKeyValueStore

    if config.backend == StoreBackend.SQLITE:
        return SqliteKeyValueStore(
            location or config.data_dir,
            create_if_missing=config.create_if_missing,
            error_if_exists=config.error_if_exists,
            wal_mode=config.wal_mode,
            busy_timeout_ms=config.busy_timeout_ms,
            page_size=config.read_page_size,
        )
    elif config.backend == StoreBackend.MEMORY:
        return InMemoryKeyValueStore(
            location,
            create_if_missing=config.create_if_missing,
            error_if_exists=config.error_if_exists,
        )
    else:
        raise ValueError(f"Unsupported store backend: {config.backend}")
