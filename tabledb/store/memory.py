"""
In-memory key-value store for testing.

This module provides a simple in-memory backend for:
- Unit tests
- Local development without a data directory

Invariants:
    - Data lives only as long as the process
    - Stores opened on the same location share one volume, so a
      close/reopen cycle sees earlier writes
    - Provides the same ordering guarantees as the SQLite backend

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep behaviour identical to SqliteKeyValueStore
"""

from __future__ import annotations

import asyncio
import bisect
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, List, Optional

from ..errors import StoreOpenError
from .base import KeyRange, KeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class MemoryVolume:
    """Sorted key list plus encoded values."""

    keys: List[str] = field(default_factory=list)
    values: Dict[str, str] = field(default_factory=dict)


# Volumes by location; anonymous stores get a private volume.
_volumes: Dict[str, MemoryVolume] = {}


class InMemoryKeyValueStore(KeyValueStore):
    """In-memory implementation of KeyValueStore.

    Example:
        >>> store = InMemoryKeyValueStore("scratch")
        >>> await store.open()
        >>> await store.put("a:1", "one")
        >>> await store.close()
        >>> store = InMemoryKeyValueStore("scratch")
        >>> await store.open()
        >>> await store.get("a:1")
        'one'
    """

    def __init__(
        self,
        location: Optional[str] = None,
        create_if_missing: bool = True,
        error_if_exists: bool = False,
    ) -> None:
        super().__init__(
            location,
            create_if_missing=create_if_missing,
            error_if_exists=error_if_exists,
        )
        self._volume: Optional[MemoryVolume] = None
        self._lock = asyncio.Lock()

    async def _raw_open(self) -> None:
        if self.location is None:
            self._volume = MemoryVolume()
            return

        exists = self.location in _volumes
        if exists and self.error_if_exists:
            raise StoreOpenError(
                f"Invalid argument: {self.location}: exists (error_if_exists is true)",
                location=self.location,
            )
        if not exists and not self.create_if_missing:
            raise StoreOpenError(
                f"Invalid argument: {self.location}: does not exist (create_if_missing is false)",
                location=self.location,
            )
        self._volume = _volumes.setdefault(self.location, MemoryVolume())

    async def _raw_close(self) -> None:
        self._volume = None

    async def _raw_destroy(self) -> None:
        if self.location is not None:
            _volumes.pop(self.location, None)

    async def _raw_get(self, key: str) -> Optional[str]:
        return self._volume.values.get(key)

    async def _raw_put(self, key: str, raw: str) -> None:
        async with self._lock:
            volume = self._volume
            if key not in volume.values:
                bisect.insort(volume.keys, key)
            volume.values[key] = raw

    async def _raw_delete(self, key: str) -> None:
        async with self._lock:
            volume = self._volume
            if volume.values.pop(key, None) is not None:
                index = bisect.bisect_left(volume.keys, key)
                del volume.keys[index]

    async def _raw_iterate(self, key_range: KeyRange) -> AsyncIterator[tuple[str, str]]:
        volume = self._volume
        keys = volume.keys

        # Narrow to the bounded slice, then snapshot it
        lo = 0
        if key_range.gte is not None:
            lo = max(lo, bisect.bisect_left(keys, key_range.gte))
        if key_range.gt is not None:
            lo = max(lo, bisect.bisect_right(keys, key_range.gt))
        hi = len(keys)
        if key_range.lte is not None:
            hi = min(hi, bisect.bisect_right(keys, key_range.lte))
        if key_range.lt is not None:
            hi = min(hi, bisect.bisect_left(keys, key_range.lt))

        snapshot = [(key, volume.values[key]) for key in keys[lo:hi]]
        if key_range.reverse:
            snapshot.reverse()
        if key_range.limit is not None:
            snapshot = snapshot[: key_range.limit]

        for item in snapshot:
            self._ensure_open()
            yield item
