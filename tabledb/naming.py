"""
Key layout constants and the name grammar.

Every table shares one flat keyspace. A physical key is
``<table-name><DELIMITER><record-key>``; an unbounded scan of a table stops
at ``<table-name><DELIMITER><SENTINEL>``.

Invariants:
    - No table name can contain DELIMITER (checked at import time)
    - SENTINEL sorts after every character of the name alphabet
    - System tables start with "_", which the user grammar excludes
"""

from __future__ import annotations

import re
import string
from typing import Any

from .errors import MalformedNameError

DELIMITER = ":"
SENTINEL = "\ufff0"
SYSTEM_PREFIX = "_"

# 1-63 lowercase letters, internal hyphens only.
NAME_PATTERN = "^([a-z][a-z-]{0,61}[a-z]|[a-z]{1,63})$"
NAME_ALPHABET = string.ascii_lowercase + "-"

_NAME_RE = re.compile(NAME_PATTERN)


def is_valid_name(name: Any) -> bool:
    """Whether ``name`` matches the table-name / user-id grammar."""
    return isinstance(name, str) and _NAME_RE.fullmatch(name) is not None


def check_name(name: Any, kind: str = "table name") -> str:
    """Return ``name`` unchanged or raise MalformedNameError.

    Args:
        name: Candidate name
        kind: Label used in the error message

    Raises:
        MalformedNameError: If the name does not match the grammar
    """
    if not is_valid_name(name):
        raise MalformedNameError(f"Malformed {kind}.", name=name)
    return name


def is_system_name(name: str) -> bool:
    """Whether ``name`` is reserved for a system table."""
    return name.startswith(SYSTEM_PREFIX) and DELIMITER not in name


def _check_constants() -> None:
    if len(DELIMITER) != 1:
        raise RuntimeError("DELIMITER must be a single character")
    if DELIMITER in NAME_ALPHABET or DELIMITER in SYSTEM_PREFIX:
        raise RuntimeError(f"DELIMITER {DELIMITER!r} is allowed in table names")
    if _NAME_RE.search(DELIMITER):
        raise RuntimeError(f"DELIMITER {DELIMITER!r} matches the name grammar")
    if any(SENTINEL <= c for c in NAME_ALPHABET + SYSTEM_PREFIX + DELIMITER):
        raise RuntimeError("SENTINEL must sort after every key character")


_check_constants()
