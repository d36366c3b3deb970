"""
Identity workflow for tabledb.

Users and email claims are ordinary tables (``_user`` and ``_email``) in
the shared store; passwords are stored as PBKDF2 salt/derived-key pairs.
"""

from .emails import EMAIL_TABLE, EmailTable, email_alias
from .password import Credentials, check_password, hash_password
from .users import USER_TABLE, UserTable

__all__ = [
    "EMAIL_TABLE",
    "USER_TABLE",
    "Credentials",
    "EmailTable",
    "UserTable",
    "check_password",
    "email_alias",
    "hash_password",
]
