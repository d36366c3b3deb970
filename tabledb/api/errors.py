"""
Mapping of tabledb errors onto HTTP responses.
"""

import logging
from typing import Dict, Type

from fastapi import Request
from fastapi.responses import JSONResponse

from ..errors import (
    AccessDeniedError,
    AlreadyExistsError,
    InvalidSchemaError,
    InvalidTokenError,
    MalformedEmailError,
    MalformedKeyError,
    MalformedNameError,
    NotFoundError,
    PasswordMismatchError,
    PolicyViolationError,
    StoreClosedError,
    TableDbError,
    UnsupportedOperationError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_CODES: Dict[Type[TableDbError], int] = {
    NotFoundError: 404,
    PasswordMismatchError: 401,
    InvalidTokenError: 401,
    AccessDeniedError: 403,
    AlreadyExistsError: 409,
    ValidationError: 400,
    InvalidSchemaError: 400,
    MalformedKeyError: 400,
    MalformedNameError: 400,
    MalformedEmailError: 400,
    PolicyViolationError: 400,
    StoreClosedError: 503,
    UnsupportedOperationError: 405,
}


def status_for(exc: TableDbError) -> int:
    """HTTP status for an error; 500 for anything unmapped."""
    for error_type in type(exc).__mro__:
        status = STATUS_CODES.get(error_type)
        if status is not None:
            return status
    return 500


async def tabledb_exception_handler(request: Request, exc: TableDbError) -> JSONResponse:
    """Render a TableDbError as a structured JSON error."""
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"Request failed: {exc.message} - {request.url.path}", exc_info=exc)
    else:
        logger.warning(f"HTTP {status_code}: {exc.message} - {request.url.path}")

    content = {"error": exc.code, "message": exc.message, "status_code": status_code}
    if isinstance(exc, ValidationError):
        content["errors"] = [e.to_dict() for e in exc.errors]
    return JSONResponse(status_code=status_code, content=content)
