"""
Email claims.

The ``_email`` table maps a normalized email alias to the user that
claimed it. Plus-addressed variants and case variants of one mailbox
share an alias, so only one user can own the mailbox.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from ..errors import AlreadyExistsError, MalformedEmailError, NotFoundError
from ..naming import NAME_PATTERN
from ..schema import compile_schema
from ..store import KeyValueStore
from ..table import Table, TableConfig

logger = logging.getLogger(__name__)

EMAIL_TABLE = "_email"

EMAIL_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["_id", "userId", "email"],
    "properties": {
        "_id": {"type": "string", "format": "email"},
        "userId": {"type": "string", "pattern": NAME_PATTERN},
        "email": {"type": "string", "format": "email"},
    },
}


def email_alias(email: Any) -> str:
    """Normalize an address: drop the "+tag" of the local part, lower-case.

    Example:
        >>> email_alias("Joe+News@Example.com")
        'joe@example.com'

    Raises:
        MalformedEmailError: If there is no domain part
    """
    if not isinstance(email, str):
        raise MalformedEmailError()
    parts = email.split("@")
    if len(parts) < 2 or not parts[1]:
        raise MalformedEmailError()
    local, domain = parts[0], parts[1]
    return f"{local.split('+')[0]}@{domain}".lower()


class EmailTable(Table):
    """Alias -> owning user id.

    Records are ``{"_id": alias, "email": literal address, "userId": id}``.
    """

    def __init__(self, store: KeyValueStore) -> None:
        super().__init__(store, EMAIL_TABLE, TableConfig(schema=compile_schema(EMAIL_SCHEMA)))

    async def get(self, email: str, actor: Any = None) -> Dict[str, Any]:
        """Look up the claim on ``email``'s alias.

        Raises:
            MalformedEmailError: If the address has no domain
            NotFoundError: If nobody claimed the alias
        """
        return await super().get(email_alias(email), actor)

    async def put(self, email: str, user_id: str, actor: Any = None) -> None:
        """Claim ``email`` for ``user_id``.

        Raises:
            MalformedEmailError: If the address has no domain
            AlreadyExistsError: If the alias is already claimed
            ValidationError: If the record breaks the email schema
        """
        alias = email_alias(email)
        try:
            await super().get(alias)
        except NotFoundError:
            pass
        else:
            raise AlreadyExistsError("Email already exists.", "email", alias)

        await super().put(alias, {"_id": alias, "email": email, "userId": user_id}, actor)
        logger.info(f"Claimed email alias for user {user_id}")

    async def put_record(self, record: Dict[str, Any], actor: Any = None) -> None:
        """Claim ``record["email"]`` for ``record["userId"]``."""
        await self.put(record.get("email"), record.get("userId"), actor)
