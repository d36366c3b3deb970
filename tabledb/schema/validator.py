"""
Compiled JSON Schema validators for tables.

A table schema is a JSON Schema (draft 7) document. It is compiled once
when the table is opened; every write is then checked against it.

Invariants:
    - None, False, True and {} all mean "no schema" (accept everything)
    - Invalid schema documents are rejected at compile time
    - All violations of a value are collected, not just the first
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional

from jsonschema import Draft7Validator, FormatChecker
from jsonschema.exceptions import SchemaError
from jsonschema.exceptions import ValidationError as JsonSchemaViolation

from ..errors import FieldError, InvalidSchemaError, ValidationError

logger = logging.getLogger(__name__)

# Schema of the schema registry table: stored documents are schemas.
REGISTRY_SCHEMA = Draft7Validator.META_SCHEMA


def _pointer(parts: Iterable[Any], root: str = "") -> str:
    return root + "".join(f"/{part}" for part in parts)


def to_field_error(error: JsonSchemaViolation) -> FieldError:
    """Convert a jsonschema violation into a FieldError."""
    return FieldError(
        path=_pointer(error.absolute_path),
        validator=str(error.validator),
        message=error.message,
        schema_path=_pointer(error.absolute_schema_path, root="#"),
    )


def is_empty_schema(document: Any) -> bool:
    """Whether ``document`` stands for "no schema"."""
    return document is None or document is True or document is False or document == {}


class CompiledSchema:
    """A schema document compiled into a predicate.

    Calling the compiled schema returns whether a value is valid and keeps
    the violations of that call in ``errors``.

    Attributes:
        document: The source schema document (None when empty)
        errors: Violations found by the most recent call

    Example:
        >>> schema = compile_schema({"properties": {"age": {"type": "number"}}})
        >>> schema({"age": "old"})
        False
        >>> schema.errors[0].path
        '/age'
    """

    def __init__(self, document: Any = None) -> None:
        if is_empty_schema(document):
            self.document = None
            self._validator: Optional[Draft7Validator] = None
        else:
            if not isinstance(document, dict):
                raise InvalidSchemaError("schema argument must be an object.")
            try:
                Draft7Validator.check_schema(document)
            except SchemaError as e:
                raise InvalidSchemaError(f"schema is invalid: {e.message}")
            self.document = document
            self._validator = Draft7Validator(document, format_checker=FormatChecker())
        self.errors: List[FieldError] = []

    @property
    def accepts_anything(self) -> bool:
        """Whether this schema is the empty schema."""
        return self._validator is None

    def __call__(self, value: Any) -> bool:
        if self._validator is None:
            self.errors = []
            return True
        self.errors = [to_field_error(e) for e in self._validator.iter_errors(value)]
        return not self.errors

    def validate(self, value: Any, table: Optional[str] = None) -> None:
        """Check ``value`` and raise on violation.

        Raises:
            ValidationError: With one FieldError per violation
        """
        if self(value):
            return
        errors = list(self.errors)
        message = "; ".join(str(e) for e in errors)
        raise ValidationError(message, errors=errors, table=table)

    def to_document(self) -> Any:
        """Document to persist in the schema registry (False when empty)."""
        return self.document if self.document is not None else False


def compile_schema(document: Any = None) -> CompiledSchema:
    """Compile a schema document.

    Raises:
        InvalidSchemaError: If the document is not a valid draft-7 schema
    """
    return CompiledSchema(document)
