"""
Password hashing.

Passwords are stretched with PBKDF2-HMAC-SHA1 under fixed parameters. The
derivation is CPU bound and runs in a worker thread so the event loop
keeps serving other requests.

Invariants:
    - salt is 32 lowercase hex characters, derived_key 40
    - The hex salt string itself is the PBKDF2 salt input
    - Derived keys are compared in constant time
    - Passwords are never logged
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..errors import PasswordMismatchError, PolicyViolationError

ITERATIONS = 10
KEY_LENGTH = 20
SALT_LENGTH = 16
DIGEST = "sha1"
MIN_PASSWORD_LENGTH = 8


@dataclass(frozen=True)
class Credentials:
    """Stored password material.

    Attributes:
        salt: Hex-encoded random salt
        derived_key: Hex-encoded PBKDF2 output
    """

    salt: str
    derived_key: str

    def to_dict(self) -> Dict[str, str]:
        """Convert to the stored record fields."""
        return {"salt": self.salt, "derivedKey": self.derived_key}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credentials":
        """Create from stored record fields."""
        return cls(salt=data["salt"], derived_key=data["derivedKey"])


def check_policy(password: Any) -> str:
    """Return ``password`` unchanged or raise PolicyViolationError."""
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PolicyViolationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
        )
    return password


def derive_key(password: str, salt: str) -> str:
    """Run PBKDF2 and return the hex digest. Blocking."""
    return hashlib.pbkdf2_hmac(
        DIGEST,
        password.encode("utf-8"),
        salt.encode("utf-8"),
        ITERATIONS,
        dklen=KEY_LENGTH,
    ).hex()


async def hash_password(password: str) -> Credentials:
    """Hash a new password under a fresh salt.

    Raises:
        PolicyViolationError: If the password is too short
    """
    check_policy(password)
    salt = secrets.token_hex(SALT_LENGTH)
    derived_key = await asyncio.to_thread(derive_key, password, salt)
    return Credentials(salt=salt, derived_key=derived_key)


async def check_password(
    password: str,
    salt: Optional[str] = None,
    derived_key: Optional[str] = None,
) -> None:
    """Verify a password against stored material.

    Raises:
        PolicyViolationError: If the password is too short, or only one of
            salt and derived_key is given
        PasswordMismatchError: If the password does not match
    """
    check_policy(password)
    if not salt or not derived_key:
        raise PolicyViolationError("Both salt and derivedKey must be provided.")
    candidate = await asyncio.to_thread(derive_key, password, salt)
    if not hmac.compare_digest(candidate, derived_key):
        raise PasswordMismatchError()
