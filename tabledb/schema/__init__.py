"""
Schema module for tabledb.

Table schemas are JSON Schema (draft 7) documents compiled with the
``jsonschema`` library. The schema registry table stores one document per
table name, validated against the draft-7 meta-schema.

Invariants:
    - A schema is compiled once per table instance
    - "No schema" is persisted as False and accepts every value
"""

from .validator import (
    REGISTRY_SCHEMA,
    CompiledSchema,
    compile_schema,
    is_empty_schema,
    to_field_error,
)

__all__ = [
    "REGISTRY_SCHEMA",
    "CompiledSchema",
    "compile_schema",
    "is_empty_schema",
    "to_field_error",
]
