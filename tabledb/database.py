"""
Table registry: the single entry point owning the key-value store.

The Database creates and looks up tables. Table schemas are persisted in
the ``_table`` system table so that tables can be rediscovered after the
store is reopened; the in-memory cache only holds tables built by this
process.

Invariants:
    - A table name exists at most once, in the cache or in the registry
    - The schema is persisted before the table is handed out
    - Only the Database opens, closes or destroys the store

How to change safely:
    - A table present in the registry but not in the cache is rebuilt on
      first access by get_table(); keep that path working, it is the
      recovery path after a crash between the two creation steps
    - Never let user table names start with SYSTEM_PREFIX
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, List, Optional

from .access import AccessRule
from .config import AuthConfig, StorageConfig
from .errors import AlreadyExistsError, NotFoundError
from .naming import check_name
from .schema import REGISTRY_SCHEMA, compile_schema
from .store import KeyValue, KeyValueStore, create_store
from .table import Table, TableConfig

if TYPE_CHECKING:
    from .auth.users import UserTable

logger = logging.getLogger(__name__)

# Registry table: table name -> schema document (False when none)
SCHEMA_TABLE = "_table"


class Database:
    """Registry of the tables living in one store.

    Attributes:
        store: The owned KeyValueStore
        schemas: The ``_table`` registry table
        auth_config: Settings for the user table

    Example:
        >>> db = await open_database("/var/lib/tabledb")
        >>> tasks = await db.create_table("tasks", {"required": ["title"]})
        >>> await tasks.put("t-1", {"title": "Write docs"})
        >>> await db.close()
    """

    def __init__(
        self,
        store: KeyValueStore,
        auth_config: Optional[AuthConfig] = None,
    ) -> None:
        self.store = store
        self.auth_config = auth_config or AuthConfig()
        self.schemas = Table(
            store,
            SCHEMA_TABLE,
            TableConfig(schema=compile_schema(REGISTRY_SCHEMA)),
        )
        self._tables: Dict[str, Table] = {}
        self._users: Optional["UserTable"] = None

    @property
    def is_open(self) -> bool:
        """Whether the underlying store is open."""
        return self.store.is_open

    async def create_table(
        self,
        name: str,
        schema: Any = None,
        id_key: str = "_id",
        access_get: Optional[AccessRule] = None,
        access_put: Optional[AccessRule] = None,
    ) -> Table:
        """Create a table and persist its schema.

        Args:
            name: Table name (lowercase letters and inner hyphens)
            schema: JSON Schema document, or None for no schema
            id_key: Record field used by put_record()
            access_get: Optional read rule
            access_put: Optional write rule

        Returns:
            The new Table

        Raises:
            MalformedNameError: If the name breaks the grammar
            AlreadyExistsError: If the table is cached or registered
            InvalidSchemaError: If the schema is not a valid JSON Schema
            StoreClosedError: If the store is not open
        """
        check_name(name)

        if name in self._tables:
            raise AlreadyExistsError("Table exists.", "table", name)
        try:
            await self.schemas.get(name)
        except NotFoundError:
            pass
        else:
            raise AlreadyExistsError("Table exists.", "table", name)

        compiled = compile_schema(schema)
        await self.schemas.put(name, compiled.to_document())

        table = Table(
            self.store,
            name,
            TableConfig(
                schema=compiled,
                id_key=id_key,
                access_get=access_get,
                access_put=access_put,
            ),
        )
        self._tables[name] = table
        logger.info(
            f"Created table {name}",
            extra={"table": name, "has_schema": not compiled.accepts_anything},
        )
        return table

    async def get_table(self, name: str) -> Table:
        """Return a table by name, rebuilding it from the registry if needed.

        Access rules are not persisted: a rebuilt table has none.

        Raises:
            MalformedNameError: If the name breaks the grammar
            NotFoundError: If no such table is registered
        """
        check_name(name)
        table = self._tables.get(name)
        if table is not None:
            return table

        try:
            document = await self.schemas.get(name)
        except NotFoundError as e:
            raise NotFoundError(f"Table not found [{name}]", resource_type="table", key=name) from e

        table = Table(self.store, name, TableConfig(schema=compile_schema(document)))
        self._tables[name] = table
        logger.debug(f"Rehydrated table {name} from registry")
        return table

    def tables_stream(self, **options: Any) -> AsyncIterator[KeyValue]:
        """Scan the registry: one (name, schema) item per table, by name."""
        return self.schemas.create_read_stream(**options)

    async def table_names(self) -> List[str]:
        """Names of all registered tables, in ascending order."""
        return [name async for name in self.schemas.create_key_stream()]

    @property
    def users(self) -> "UserTable":
        """The user table, built on first access."""
        if self._users is None:
            from .auth.users import UserTable

            self._users = UserTable(
                self.store,
                email_required=self.auth_config.email_required,
                reset_minutes=self.auth_config.reset_token_minutes,
            )
        return self._users

    def get_users(self) -> "UserTable":
        """Same as ``users``."""
        return self.users

    async def close(self) -> None:
        """Close the store. Closing twice is a no-op."""
        await self.store.close()

    async def destroy(self) -> None:
        """Close the store and remove its data. Works after close()."""
        await self.store.destroy()
        self._tables.clear()

    async def __aenter__(self) -> "Database":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"Database(location={self.store.location!r}, tables={sorted(self._tables)})"


async def open_database(
    location: Optional[str] = None,
    config: Optional[StorageConfig] = None,
    auth_config: Optional[AuthConfig] = None,
) -> Database:
    """Build, open and wrap a store.

    Args:
        location: Store location (defaults to ``config.data_dir``)
        config: Storage configuration (defaults to SQLite)
        auth_config: User table settings

    Raises:
        StoreOpenError: If the store options forbid opening
        OSError: If the location cannot be created
    """
    config = config or StorageConfig()
    store = create_store(config, location)
    await store.open()
    return Database(store, auth_config=auth_config)
