"""
Tables over the shared key-value store.

A Table is a logical namespace carved out of the flat keyspace. Every
record key is stored as ``<name>:<key>``; every write is gated by the
table's access rule and schema; scans are clamped to the table's own
key range.

Invariants:
    - A physical key read inside the namespace always splits into this
      table's name and a non-empty record key, or MalformedKeyError is raised
    - An unbounded scan never returns another table's keys
    - A rejected write never reaches the store
    - put listeners fire only for keys inside this namespace

How to change safely:
    - Keep the check order in put(): state, key, access, schema, write
    - Never derive keys from values except through put_record()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, Optional

from .access import AccessRule
from .errors import (
    AccessDeniedError,
    MalformedKeyError,
    MalformedNameError,
    NotFoundError,
    StoreClosedError,
)
from .events import Signal
from .naming import DELIMITER, SENTINEL
from .schema import CompiledSchema, compile_schema
from .store import KeyValue, KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableConfig:
    """Per-table configuration.

    Attributes:
        schema: Compiled validator applied to every write
        id_key: Record field used as key by put_record()
        access_get: Rule checked after a value is read
        access_put: Rule checked before a value is written
    """

    schema: CompiledSchema = field(default_factory=compile_schema)
    id_key: str = "_id"
    access_get: Optional[AccessRule] = None
    access_put: Optional[AccessRule] = None


class Table:
    """A named, schema-checked namespace in a KeyValueStore.

    Attributes:
        name: Table name (immutable)
        config: Schema, id key and access rules
        on_put: Signal fired with (key, value) after each write in the namespace
        on_closing: Signal fired once when the store starts closing

    Example:
        >>> table = Table(store, "tasks")
        >>> await table.put("t-1", {"title": "Write docs"})
        >>> await table.get("t-1")
        {'title': 'Write docs'}
        >>> async for item in table.create_read_stream(gte="t"):
        ...     print(item.key)
        t-1
    """

    def __init__(
        self,
        store: KeyValueStore,
        name: str,
        config: Optional[TableConfig] = None,
    ) -> None:
        if not isinstance(store, KeyValueStore):
            raise TypeError("store argument must be a KeyValueStore.")
        if not name or not isinstance(name, str) or DELIMITER in name:
            raise MalformedNameError("name argument must be a string without delimiter.", name=name)

        self._store = store
        self._name = name
        self._prefix = f"{name}{DELIMITER}"
        self.config = config or TableConfig()

        self.on_put = Signal(f"{name}.put")
        self.on_closing = Signal(f"{name}.closing")
        self._closing_emitted = False

        store.on_put.connect(self._relay_put)
        store.on_closing.connect(self._relay_closing)

    @property
    def name(self) -> str:
        """Table name."""
        return self._name

    @property
    def id_key(self) -> str:
        """Record field used as key by put_record()."""
        return self.config.id_key

    @property
    def schema(self) -> CompiledSchema:
        """Compiled schema."""
        return self.config.schema

    @property
    def store(self) -> KeyValueStore:
        """Underlying store."""
        return self._store

    def prefixed(self, key: str = "") -> str:
        """Physical key for a record key."""
        return f"{self._prefix}{key}"

    def unprefixed(self, physical_key: str) -> str:
        """Record key for a physical key.

        Raises:
            MalformedKeyError: If the key belongs to no or another table
        """
        if not physical_key or not isinstance(physical_key, str):
            raise MalformedKeyError("Malformed key.", key=physical_key)
        table_name, sep, key = physical_key.partition(DELIMITER)
        if not sep or not key or table_name != self._name:
            raise MalformedKeyError("Malformed key.", key=physical_key)
        return key

    def _ensure_open(self) -> None:
        if self._store.is_closed:
            raise StoreClosedError()

    def _check_key(self, key: Any) -> None:
        if not key or not isinstance(key, str):
            raise MalformedKeyError("Record key must be a non-empty string.", key=key)

    async def put(self, key: str, value: Any, actor: Any = None) -> None:
        """Validate and store ``value`` under ``key``.

        Args:
            key: Record key
            value: JSON value
            actor: Identity handed to the access rule

        Raises:
            StoreClosedError: If the store is not open
            MalformedKeyError: If the key is empty or not a string
            AccessDeniedError: If access_put rejects the actor
            ValidationError: If the schema rejects the value
        """
        self._ensure_open()
        self._check_key(key)

        access_put = self.config.access_put
        if access_put is not None and not access_put(actor, key, value):
            raise AccessDeniedError("Cannot put.", actor=actor, key=key, operation="put")

        self.schema.validate(value, table=self._name)

        await self._store.put(self.prefixed(key), value)
        logger.debug(f"Put {self._name}{DELIMITER}{key}")

    async def put_record(self, record: Dict[str, Any], actor: Any = None) -> None:
        """Store a whole record under ``record[id_key]``.

        Raises:
            MalformedKeyError: If the record has no usable id field
        """
        if not isinstance(record, dict):
            raise MalformedKeyError("Record must be an object.", key=None)
        key = record.get(self.id_key)
        if key is None:
            raise MalformedKeyError(f"Missing {self.id_key} field.", key=None)
        await self.put(key, record, actor)

    async def get(self, key: str, actor: Any = None) -> Any:
        """Fetch the value stored under ``key``.

        Raises:
            StoreClosedError: If the store is not open
            NotFoundError: If no record exists
            AccessDeniedError: If access_get rejects the actor
        """
        self._ensure_open()
        self._check_key(key)
        try:
            value = await self._store.get(self.prefixed(key))
        except NotFoundError as e:
            raise NotFoundError(e.message, resource_type=self._name, key=key) from e

        access_get = self.config.access_get
        if access_get is not None and not access_get(actor, key, value):
            raise AccessDeniedError("Cannot get.", actor=actor, key=key, operation="get")
        return value

    def create_read_stream(
        self,
        gt: Optional[str] = None,
        gte: Optional[str] = None,
        lt: Optional[str] = None,
        lte: Optional[str] = None,
        reverse: bool = False,
        limit: Optional[int] = None,
    ) -> AsyncIterator[KeyValue]:
        """Scan this table in key order.

        Bounds are record keys. A missing lower bound starts at the first
        key of the table; a missing upper bound stops at the end of it.

        Raises:
            StoreClosedError: Immediately, if the store is not open
        """
        self._ensure_open()
        bounds = {"gt": gt, "gte": gte, "lt": lt, "lte": lte}
        physical = {k: self.prefixed(v) for k, v in bounds.items() if v is not None}
        if gt is None and gte is None:
            physical["gte"] = self.prefixed("")
        if lt is None and lte is None:
            physical["lte"] = self.prefixed(SENTINEL)
        return self._stream(physical, reverse, limit)

    async def _stream(
        self,
        physical: Dict[str, str],
        reverse: bool,
        limit: Optional[int],
    ) -> AsyncIterator[KeyValue]:
        stream = self._store.create_read_stream(reverse=reverse, limit=limit, **physical)
        async for item in stream:
            yield KeyValue(key=self.unprefixed(item.key), value=item.value)

    async def create_key_stream(self, **options: Any) -> AsyncIterator[str]:
        """Scan record keys only. Accepts create_read_stream() options."""
        async for item in self.create_read_stream(**options):
            yield item.key

    async def create_value_stream(self, **options: Any) -> AsyncIterator[Any]:
        """Scan values only. Accepts create_read_stream() options."""
        async for item in self.create_read_stream(**options):
            yield item.value

    def subscribe_put(self, listener: Callable[[str, Any], Any]) -> Callable[[], None]:
        """Call ``listener(key, value)`` after every write in this namespace."""
        return self.on_put.connect(listener)

    def subscribe_closing(self, listener: Callable[[], Any]) -> Callable[[], None]:
        """Call ``listener()`` once when the store starts closing."""
        return self.on_closing.connect(listener)

    def _relay_put(self, physical_key: str, value: Any) -> None:
        if physical_key.startswith(self._prefix) and len(physical_key) > len(self._prefix):
            self.on_put.emit(physical_key[len(self._prefix):], value)

    def _relay_closing(self) -> None:
        if self._closing_emitted:
            return
        self._closing_emitted = True
        self.on_closing.emit()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r}, id_key={self.id_key!r})"
