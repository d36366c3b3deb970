"""
Error types for tabledb.

This module defines every exception raised by the table layer and the
identity workflow:
- TableDbError: Base exception
- StoreError / StoreClosedError / StoreOpenError: Key-value engine failures
- NotFoundError: Missing record
- ValidationError: Schema rejection (carries structured field errors)
- AccessDeniedError: Access rule rejected the actor
- MalformedKeyError / MalformedNameError / MalformedEmailError: Bad identifiers
- AlreadyExistsError: Duplicate table, user or email
- PasswordMismatchError / InvalidTokenError / PolicyViolationError: Identity failures

Invariants:
    - All errors inherit from TableDbError
    - Every error carries a stable ``code`` for programmatic handling
    - Messages never contain passwords, salts, derived keys or tokens
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class FieldError:
    """A single schema violation.

    Attributes:
        path: JSON pointer to the offending value ("" for the root)
        validator: Schema keyword that failed (e.g. "type", "required")
        message: Human-readable description
        schema_path: Pointer into the schema (e.g. "#/properties/age/type")
    """

    path: str
    validator: str
    message: str
    schema_path: str = "#"

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary representation."""
        return {
            "path": self.path,
            "validator": self.validator,
            "message": self.message,
            "schema_path": self.schema_path,
        }

    def __str__(self) -> str:
        return f"{self.path or '/'}: {self.message}"


class TableDbError(Exception):
    """Base exception for all tabledb errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "TABLEDB_ERROR"
        self.details = details or {}


class StoreError(TableDbError):
    """The underlying key-value engine failed."""

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message, code=code or "STORE_ERROR")


class StoreClosedError(StoreError):
    """Operation attempted on a store that is not open.

    Raised immediately, never queued or retried.
    """

    def __init__(self, message: str = "Database is not open") -> None:
        super().__init__(message, code="STORE_CLOSED")


class StoreOpenError(StoreError):
    """Store could not be opened with the requested options."""

    def __init__(self, message: str, location: Optional[str] = None) -> None:
        super().__init__(message, code="STORE_OPEN_ERROR")
        self.location = location
        self.details = {"location": location}


class NotFoundError(TableDbError):
    """Record not found.

    Raised when:
    - A key is absent from the store
    - A table name is absent from the schema registry
    - An email alias or user id does not resolve
    """

    def __init__(
        self,
        message: str,
        resource_type: str,
        key: str,
    ) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={"resource_type": resource_type, "key": key},
        )
        self.resource_type = resource_type
        self.key = key


class ValidationError(TableDbError):
    """Value rejected by a table schema."""

    def __init__(
        self,
        message: str,
        errors: Optional[List[FieldError]] = None,
        table: Optional[str] = None,
    ) -> None:
        errors = errors or []
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"table": table, "errors": [e.to_dict() for e in errors]},
        )
        self.errors = errors
        self.table = table

    @property
    def paths(self) -> List[str]:
        """Paths of all violated fields."""
        return [e.path for e in self.errors]


class InvalidSchemaError(TableDbError):
    """Schema document is not a valid JSON Schema."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_SCHEMA")


class AccessDeniedError(TableDbError):
    """Access rule rejected the actor.

    Distinct from NotFoundError: the record may exist.
    """

    def __init__(
        self,
        message: str,
        actor: Any,
        key: str,
        operation: str,
    ) -> None:
        super().__init__(
            message,
            code="ACCESS_DENIED",
            details={"actor": actor, "key": key, "operation": operation},
        )
        self.actor = actor
        self.key = key
        self.operation = operation


class MalformedKeyError(TableDbError):
    """Record key is empty, not a string, or outside the table namespace."""

    def __init__(self, message: str, key: Any = None) -> None:
        super().__init__(message, code="MALFORMED_KEY", details={"key": key})
        self.key = key


class MalformedNameError(TableDbError):
    """Table name or user id does not match the name grammar."""

    def __init__(self, message: str, name: Any = None) -> None:
        super().__init__(message, code="MALFORMED_NAME", details={"name": name})
        self.name = name


class MalformedEmailError(TableDbError):
    """Email address has no domain part."""

    def __init__(self, message: str = "Malformed email.") -> None:
        super().__init__(message, code="MALFORMED_EMAIL")


class AlreadyExistsError(TableDbError):
    """Table, user or email already exists."""

    def __init__(
        self,
        message: str,
        resource_type: str,
        resource_id: str,
    ) -> None:
        super().__init__(
            message,
            code="ALREADY_EXISTS",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class PasswordMismatchError(TableDbError):
    """Supplied password does not match the stored hash."""

    def __init__(self, message: str = "Password does not match.") -> None:
        super().__init__(message, code="PASSWORD_MISMATCH")


class InvalidTokenError(TableDbError):
    """Reset token is missing, wrong or expired.

    The cause is deliberately not reported.
    """

    def __init__(self, message: str = "Invalid token.") -> None:
        super().__init__(message, code="INVALID_TOKEN")


class PolicyViolationError(TableDbError):
    """Input breaks a credential policy or a required-parameter rule."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="POLICY_VIOLATION")


class UnsupportedOperationError(TableDbError):
    """Operation is disabled on this table."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="UNSUPPORTED_OPERATION")
