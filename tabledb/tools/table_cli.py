"""
Table CLI tool for tabledb.

This tool inspects and manages tables in a store location:
- tables: List registered tables
- dump: Print the records of one table as JSON lines
- create: Create a table, optionally with a JSON Schema file

Usage:
    tabledb --data-dir ./tabledb-data tables
    tabledb dump tasks --gte t-1 --limit 10
    tabledb create tasks --schema tasks.schema.json

Invariants:
    - Tools work offline (no running server required)
    - Errors cause non-zero exit code
    - Output of dump is one JSON document per line

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep output format stable for scripting
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import Any, TextIO

from ..config import StorageConfig, StoreBackend
from ..database import Database, open_database
from ..errors import TableDbError

logger = logging.getLogger(__name__)


class TableCLI:
    """CLI commands over an open Database.

    Example:
        >>> cli = TableCLI(db, out=sys.stdout)
        >>> await cli.tables()
        tasks
    """

    def __init__(self, db: Database, out: TextIO | None = None) -> None:
        self.db = db
        self.out = out or sys.stdout

    async def tables(self) -> int:
        """Print table names, one per line."""
        for name in await self.db.table_names():
            print(name, file=self.out)
        return 0

    async def dump(
        self,
        name: str,
        gte: str | None = None,
        lte: str | None = None,
        limit: int | None = None,
        reverse: bool = False,
    ) -> int:
        """Print records of a table as JSON lines."""
        table = await self.db.get_table(name)
        count = 0
        async for item in table.create_read_stream(gte=gte, lte=lte, limit=limit, reverse=reverse):
            print(json.dumps(item.to_dict(), sort_keys=True), file=self.out)
            count += 1
        logger.debug(f"Dumped {count} record(s) from {name}")
        return 0

    async def create(
        self,
        name: str,
        schema_path: str | None = None,
        id_key: str = "_id",
    ) -> int:
        """Create a table."""
        schema: Any = None
        if schema_path:
            with open(schema_path) as f:
                schema = json.load(f)
        await self.db.create_table(name, schema, id_key=id_key)
        print(f"Created table {name}", file=self.out)
        return 0


def build_parser() -> argparse.ArgumentParser:
    """Argument parser of the tabledb command."""
    parser = argparse.ArgumentParser(description="tabledb table management tool")
    parser.add_argument("--data-dir", help="Store location (default: TABLEDB_DATA_DIR)")
    parser.add_argument(
        "--backend",
        choices=[b.value for b in StoreBackend],
        help="Store backend (default: TABLEDB_STORE_BACKEND)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # tables command
    subparsers.add_parser("tables", help="List tables")

    # dump command
    dump_parser = subparsers.add_parser("dump", help="Print records of a table")
    dump_parser.add_argument("table", help="Table name")
    dump_parser.add_argument("--gte", help="Smallest key to include")
    dump_parser.add_argument("--lte", help="Largest key to include")
    dump_parser.add_argument("--limit", type=int, help="Maximum number of records")
    dump_parser.add_argument("--reverse", action="store_true", help="Descending key order")

    # create command
    create_parser = subparsers.add_parser("create", help="Create a table")
    create_parser.add_argument("table", help="Table name")
    create_parser.add_argument("--schema", help="Path to a JSON Schema file")
    create_parser.add_argument("--id-key", default="_id", help="Record field used as key")

    return parser


async def run(args: argparse.Namespace, out: TextIO | None = None) -> int:
    """Open the store, run one command, close the store."""
    config = StorageConfig.from_env()
    if args.backend:
        config = replace(config, backend=StoreBackend(args.backend))

    db = await open_database(args.data_dir, config=config)
    async with db:
        cli = TableCLI(db, out=out)
        if args.command == "tables":
            return await cli.tables()
        elif args.command == "dump":
            return await cli.dump(
                args.table,
                gte=args.gte,
                lte=args.lte,
                limit=args.limit,
                reverse=args.reverse,
            )
        elif args.command == "create":
            return await cli.create(args.table, args.schema, id_key=args.id_key)
    return 2


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for the table tool."""
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run(args))
    except (TableDbError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
