"""
CLI tools for tabledb administration.

This module provides command-line tools for:
- tables: List registered tables
- dump: Print the records of a table
- create: Create a table

Invariants:
    - Tools work offline (no running server required)
"""

from .table_cli import TableCLI

__all__ = ["TableCLI"]
