"""
Unit tests for the key-value store backends.

Tests cover:
- Lifecycle (open, close, destroy) and closed-store errors
- Get/put/delete
- Ordered range scans with bounds, reverse and limit
- Signals
- Open options (create_if_missing, error_if_exists)

Every test runs against both backends.
"""

import tempfile
import uuid
from pathlib import Path

import pytest

from tabledb.config import StorageConfig, StoreBackend
from tabledb.errors import NotFoundError, StoreClosedError, StoreError, StoreOpenError
from tabledb.store import (
    InMemoryKeyValueStore,
    KeyRange,
    SqliteKeyValueStore,
    StoreState,
    create_store,
)


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture(params=["memory", "sqlite"])
def make_store(request, data_dir):
    """Factory building stores of one backend on a shared location."""
    location = str(Path(data_dir) / "db") if request.param == "sqlite" else f"mem-{uuid.uuid4()}"

    def factory(**kwargs):
        if request.param == "sqlite":
            return SqliteKeyValueStore(location, page_size=2, **kwargs)
        return InMemoryKeyValueStore(location, **kwargs)

    return factory


async def collect(stream):
    return [(item.key, item.value) async for item in stream]


class TestLifecycle:
    """Tests for open/close/destroy."""

    @pytest.mark.asyncio
    async def test_open_close(self, make_store):
        """State follows open and close."""
        store = make_store()
        assert store.state == StoreState.NEW
        assert store.is_closed

        await store.open()
        assert store.is_open

        await store.close()
        assert store.state == StoreState.CLOSED
        await store.close()

    @pytest.mark.asyncio
    async def test_operations_before_open_fail(self, make_store):
        """Data operations on a store that is not open fail immediately."""
        store = make_store()
        with pytest.raises(StoreClosedError):
            await store.get("a")
        with pytest.raises(StoreClosedError):
            await store.put("a", 1)

    @pytest.mark.asyncio
    async def test_operations_after_close_fail(self, make_store):
        """Closed stores reject reads, writes and scans."""
        store = make_store()
        await store.open()
        await store.close()

        with pytest.raises(StoreClosedError):
            await store.put("a", 1)
        with pytest.raises(StoreClosedError):
            await store.get("a")
        with pytest.raises(StoreClosedError):
            await collect(store.create_read_stream())

    @pytest.mark.asyncio
    async def test_data_survives_reopen(self, make_store):
        """A reopened store sees earlier writes."""
        store = make_store()
        await store.open()
        await store.put("k", {"v": 1})
        await store.close()

        reopened = make_store()
        await reopened.open()
        assert await reopened.get("k") == {"v": 1}
        await reopened.destroy()

    @pytest.mark.asyncio
    async def test_destroy_after_close(self, make_store):
        """destroy() works on a closed store and removes the data."""
        store = make_store()
        await store.open()
        await store.put("k", 1)
        await store.close()
        await store.destroy()

        fresh = make_store()
        await fresh.open()
        with pytest.raises(NotFoundError):
            await fresh.get("k")
        await fresh.destroy()

    @pytest.mark.asyncio
    async def test_error_if_exists(self, make_store):
        """error_if_exists refuses an existing store."""
        store = make_store()
        await store.open()
        await store.close()

        with pytest.raises(StoreOpenError, match="exists"):
            await make_store(error_if_exists=True).open()
        await store.destroy()

    @pytest.mark.asyncio
    async def test_create_if_missing_false(self, make_store):
        """A missing store is not created when create_if_missing is off."""
        with pytest.raises(StoreOpenError, match="does not exist"):
            await make_store(create_if_missing=False).open()


class TestReadWrite:
    """Tests for get/put/delete."""

    @pytest.mark.asyncio
    async def test_put_get(self, make_store):
        """Values round-trip as JSON."""
        store = make_store()
        await store.open()
        value = {"name": "bob", "tags": ["a", "b"], "n": 1.5, "ok": True, "none": None}

        await store.put("users:bob", value)

        assert await store.get("users:bob") == value
        await store.destroy()

    @pytest.mark.asyncio
    async def test_overwrite(self, make_store):
        """A second put replaces the value."""
        store = make_store()
        await store.open()
        await store.put("k", 1)
        await store.put("k", 2)
        assert await store.get("k") == 2
        assert await collect(store.create_read_stream()) == [("k", 2)]
        await store.destroy()

    @pytest.mark.asyncio
    async def test_get_missing(self, make_store):
        """Missing keys raise NotFoundError."""
        store = make_store()
        await store.open()
        with pytest.raises(NotFoundError, match=r"Key not found in database \[nope\]"):
            await store.get("nope")
        await store.destroy()

    @pytest.mark.asyncio
    async def test_delete(self, make_store):
        """Deleted keys are gone; deleting twice is fine."""
        store = make_store()
        await store.open()
        await store.put("k", 1)
        await store.delete("k")
        await store.delete("k")
        with pytest.raises(NotFoundError):
            await store.get("k")
        await store.destroy()

    @pytest.mark.asyncio
    async def test_unserializable_value(self, make_store):
        """Non-JSON values are rejected before writing."""
        store = make_store()
        await store.open()
        with pytest.raises(StoreError):
            await store.put("k", {1, 2})
        with pytest.raises(NotFoundError):
            await store.get("k")
        await store.destroy()


class TestRangeScan:
    """Tests for create_read_stream."""

    KEYS = ["a:1", "a:2", "a:3", "b:1", "b:2"]

    async def _filled(self, make_store):
        store = make_store()
        await store.open()
        for key in reversed(self.KEYS):
            await store.put(key, key.upper())
        return store

    @pytest.mark.asyncio
    async def test_full_scan_ordered(self, make_store):
        """Unbounded scans return every key ascending."""
        store = await self._filled(make_store)
        items = await collect(store.create_read_stream())
        assert [k for k, _ in items] == self.KEYS
        assert items[0] == ("a:1", "A:1")
        await store.destroy()

    @pytest.mark.asyncio
    async def test_bounds(self, make_store):
        """Inclusive and exclusive bounds are honoured."""
        store = await self._filled(make_store)

        assert [k for k, _ in await collect(store.create_read_stream(gte="a:2", lte="b:1"))] == [
            "a:2",
            "a:3",
            "b:1",
        ]
        assert [k for k, _ in await collect(store.create_read_stream(gt="a:2", lt="b:1"))] == [
            "a:3"
        ]
        await store.destroy()

    @pytest.mark.asyncio
    async def test_reverse_and_limit(self, make_store):
        """reverse flips the order; limit caps the count."""
        store = await self._filled(make_store)

        items = await collect(store.create_read_stream(reverse=True, limit=3))
        assert [k for k, _ in items] == ["b:2", "b:1", "a:3"]

        assert await collect(store.create_read_stream(limit=0)) == []
        await store.destroy()

    @pytest.mark.asyncio
    async def test_scan_is_restartable(self, make_store):
        """Each call starts a new scan."""
        store = await self._filled(make_store)
        first = await collect(store.create_read_stream(gte="b:"))
        second = await collect(store.create_read_stream(gte="b:"))
        assert first == second == [("b:1", "B:1"), ("b:2", "B:2")]
        await store.destroy()

    @pytest.mark.asyncio
    async def test_code_point_order(self, make_store):
        """Keys sort by code point, not by locale."""
        store = make_store()
        await store.open()
        for key in ["t:b", "t:B", "t:\u00e9", "t:a", "t:\ufff0"]:
            await store.put(key, 0)
        keys = [k for k, _ in await collect(store.create_read_stream())]
        assert keys == ["t:B", "t:a", "t:b", "t:\u00e9", "t:\ufff0"]
        await store.destroy()


class TestSignals:
    """Tests for on_put / on_closing."""

    @pytest.mark.asyncio
    async def test_on_put(self, make_store):
        """on_put fires with key and stored value."""
        store = make_store()
        events = []
        store.on_put.connect(lambda key, value: events.append((key, value)))
        await store.open()

        await store.put("k", {"a": 1})

        assert events == [("k", {"a": 1})]
        await store.destroy()

    @pytest.mark.asyncio
    async def test_on_closing_once(self, make_store):
        """on_closing fires once, even if close() is repeated."""
        store = make_store()
        events = []
        store.on_closing.connect(lambda: events.append("closing"))
        await store.open()

        await store.close()
        await store.close()
        await store.destroy()

        assert events == ["closing"]


class TestKeyRange:
    """Tests for KeyRange.contains."""

    def test_contains(self):
        """Bounds combine conjunctively."""
        key_range = KeyRange(gte="a", lt="c")
        assert key_range.contains("a")
        assert key_range.contains("b")
        assert not key_range.contains("c")
        assert KeyRange().contains("anything")


class TestCreateStore:
    """Tests for the store factory."""

    def test_sqlite(self, data_dir):
        """The sqlite backend uses the config options."""
        config = StorageConfig(data_dir=data_dir, wal_mode=False, read_page_size=7)
        store = create_store(config)
        assert isinstance(store, SqliteKeyValueStore)
        assert store.location == data_dir
        assert store.page_size == 7
        assert store.wal_mode is False

    def test_memory(self):
        """The memory backend is selected by config."""
        store = create_store(StorageConfig(backend=StoreBackend.MEMORY), "scratch")
        assert isinstance(store, InMemoryKeyValueStore)
        assert store.location == "scratch"
