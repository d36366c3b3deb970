"""
User accounts.

The ``_user`` table holds one record per user, keyed by the lower-cased
user id:

    {
        "_id": "b-ob",             # lower-cased id (record key)
        "origId": "B-ob",          # id as registered
        "salt": "<32 hex>",
        "derivedKey": "<40 hex>",
        "email": "bob@example.com",  # optional
        "reset": {"token": "<24 hex>", "validUntil": "2026-01-01T12:00:00.000Z"}
    }

Invariants:
    - Records are written only by the named operations below; the raw
      get/put entry points are disabled
    - register() runs every check it can before its first write
    - register() and every read-modify-write of a user record hold the
      table lock from the first read to the last write
    - A reset token is usable only while validUntil lies in the future
    - Tokens, salts and derived keys are never logged

How to change safely:
    - The email claim and the user write are two separate writes; a crash
      between them leaves an orphaned claim that nothing repairs
    - Keep the "@ in the id means email" lookup rule, logins depend on it
"""

from __future__ import annotations

import asyncio
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from ..access import user_key
from ..errors import (
    AlreadyExistsError,
    InvalidTokenError,
    MalformedNameError,
    NotFoundError,
    PolicyViolationError,
    UnsupportedOperationError,
)
from ..naming import NAME_PATTERN, check_name
from ..schema import compile_schema
from ..store import KeyValueStore
from ..table import Table, TableConfig
from .emails import EmailTable, email_alias
from .password import Credentials, check_password, check_policy, hash_password

logger = logging.getLogger(__name__)

USER_TABLE = "_user"
TOKEN_LENGTH = 12
TOKEN_MINUTES = 120


def user_schema(email_required: bool = False) -> Dict[str, Any]:
    """JSON Schema of user records."""
    required: List[str] = ["_id", "salt", "derivedKey", "reset"]
    if email_required:
        required.append("email")
    return {
        "type": "object",
        "required": required,
        "properties": {
            "_id": {"type": "string", "pattern": NAME_PATTERN},
            "origId": {"type": "string"},
            "salt": {"type": "string", "pattern": "^[a-f0-9]{32}$"},
            "derivedKey": {"type": "string", "pattern": "^[a-f0-9]{40}$"},
            "email": {"type": "string", "format": "email"},
            "reset": {
                "type": "object",
                "properties": {
                    "token": {"type": "string", "pattern": "^[a-f0-9]{24}$"},
                    "validUntil": {"type": "string", "format": "date-time"},
                },
            },
        },
    }


def format_timestamp(moment: datetime) -> str:
    """UTC ISO-8601 with milliseconds and a Z suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Inverse of format_timestamp()."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserTable(Table):
    """Registration, login and password reset on top of two tables.

    Attributes:
        emails: The email claim table
        email_required: Whether register() demands an email
        reset_minutes: Default validity of reset tokens

    Example:
        >>> users = UserTable(store)
        >>> await users.register("B-ob", "correct horse", email="bob@example.com")
        >>> await users.login("bob+news@example.com", "correct horse")
        'b-ob'
    """

    def __init__(
        self,
        store: KeyValueStore,
        email_required: bool = False,
        reset_minutes: int = TOKEN_MINUTES,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        super().__init__(
            store,
            USER_TABLE,
            TableConfig(
                schema=compile_schema(user_schema(email_required)),
                access_get=user_key,
                access_put=user_key,
            ),
        )
        self.emails = EmailTable(store)
        self.email_required = email_required
        self.reset_minutes = reset_minutes
        self._clock = clock or _utcnow
        self._lock = asyncio.Lock()

    async def get(self, key: Any = None, actor: Any = None) -> Any:
        raise UnsupportedOperationError("UserTable.get() is not implemented.")

    async def put(self, key: Any = None, value: Any = None, actor: Any = None) -> None:
        raise UnsupportedOperationError("UserTable.put() is not implemented.")

    async def put_record(self, record: Any = None, actor: Any = None) -> None:
        raise UnsupportedOperationError("UserTable.put_record() is not implemented.")

    async def _read(self, user_id: str) -> Dict[str, Any]:
        return await super().get(user_id, user_id)

    async def _write(self, record: Dict[str, Any]) -> None:
        await super().put(record["_id"], record, record["_id"])

    async def register(
        self,
        user_id: str,
        password: str,
        email: Optional[str] = None,
    ) -> Credentials:
        """Create a user.

        Args:
            user_id: User id; stored lower-cased, original casing kept in origId
            password: Clear-text password
            email: Optional (or required, see email_required) address

        Returns:
            The stored credential material

        Raises:
            MalformedNameError: If the id breaks the name grammar
            PolicyViolationError: If the password is too short or a
                required email is missing
            MalformedEmailError: If the email has no domain
            AlreadyExistsError: If the user or the email already exists
        """
        if not isinstance(user_id, str):
            raise MalformedNameError("Malformed user id.", name=user_id)
        uid = check_name(user_id.lower(), kind="user id")
        check_policy(password)
        if self.email_required and not email:
            raise PolicyViolationError("Email required.")
        if email:
            email_alias(email)

        async with self._lock:
            try:
                await self._read(uid)
            except NotFoundError:
                pass
            else:
                raise AlreadyExistsError("User already exists.", "user", uid)

            if email:
                await self.emails.put(email, uid)

            credentials = await hash_password(password)
            record: Dict[str, Any] = {
                "_id": uid,
                "origId": user_id,
                **credentials.to_dict(),
                "reset": {},
            }
            if email:
                record["email"] = email
            await self._write(record)
        logger.info(f"Registered user {uid}", extra={"user_id": uid, "has_email": bool(email)})
        return credentials

    async def id_or_email_to_user(
        self,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Resolve an id or an email to the stored user record.

        An explicit email wins; an id containing "@" is looked up as an email.

        Raises:
            PolicyViolationError: If neither id nor email is given
            NotFoundError: If nothing resolves
        """
        if not user_id and not email:
            raise PolicyViolationError("Email or _id required.")
        if not email and "@" in user_id:
            email = user_id
        if email:
            claim = await self.emails.get(email)
            uid = claim["userId"]
        else:
            uid = user_id.lower()
        return await self._read(uid)

    async def login(
        self,
        user_id: Optional[str] = None,
        password: Optional[str] = None,
        email: Optional[str] = None,
    ) -> str:
        """Verify a password and return the canonical user id.

        Raises:
            NotFoundError: If the user does not resolve
            PasswordMismatchError: If the password is wrong
        """
        user = await self.id_or_email_to_user(user_id, email)
        await check_password(password, user.get("salt"), user.get("derivedKey"))
        logger.debug(f"Login succeeded for user {user['_id']}")
        return user["_id"]

    async def change_password(
        self,
        user_id: Optional[str] = None,
        password: Optional[str] = None,
        email: Optional[str] = None,
    ) -> None:
        """Replace the password; any pending reset token is dropped."""
        async with self._lock:
            user = await self.id_or_email_to_user(user_id, email)
            credentials = await hash_password(password)
            await self._write({**user, **credentials.to_dict(), "reset": {}})
        logger.info(f"Changed password of user {user['_id']}")

    def _expired(self, reset: Dict[str, Any]) -> bool:
        valid_until = reset.get("validUntil")
        if not valid_until:
            return True
        try:
            return parse_timestamp(valid_until) <= self._clock()
        except ValueError:
            return True

    async def reset_password(
        self,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
        valid_for: Optional[int] = None,
    ) -> str:
        """Issue a reset token, or return the pending one while it is valid.

        Args:
            user_id: User id or email
            email: Email (wins over user_id)
            valid_for: Validity in minutes (defaults to reset_minutes)

        Returns:
            24-character hex token
        """
        if valid_for is None:
            valid_for = self.reset_minutes
        async with self._lock:
            user = await self.id_or_email_to_user(user_id, email)
            reset = user.get("reset") or {}
            if reset.get("token") and not self._expired(reset):
                return reset["token"]

            token = secrets.token_hex(TOKEN_LENGTH)
            valid_until = format_timestamp(self._clock() + timedelta(minutes=valid_for))
            await self._write({**user, "reset": {"token": token, "validUntil": valid_until}})
        logger.info(f"Issued reset token for user {user['_id']}", extra={"valid_until": valid_until})
        return token

    async def use_token(
        self,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
        token: Optional[str] = None,
        password: Optional[str] = None,
    ) -> None:
        """Set a new password with a reset token.

        Raises:
            InvalidTokenError: If the token is missing, wrong or expired
            PolicyViolationError: If no new password is given
        """
        if not token or not isinstance(token, str):
            raise InvalidTokenError()
        if not password:
            raise PolicyViolationError("New password must be supplied.")

        async with self._lock:
            user = await self.id_or_email_to_user(user_id, email)
            reset = user.get("reset") or {}
            stored = reset.get("token")
            if (
                not stored
                or not hmac.compare_digest(token.encode("utf-8"), stored.encode("utf-8"))
                or self._expired(reset)
            ):
                raise InvalidTokenError()

            credentials = await hash_password(password)
            await self._write({**user, **credentials.to_dict(), "reset": {}})
        logger.info(f"Reset password of user {user['_id']}")
