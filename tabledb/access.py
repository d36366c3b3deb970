"""
Access rules for tables.

An access rule is a predicate ``(actor, key, value) -> bool``. A table may
carry one rule for reads and one for writes; a falsy result fails the call
with AccessDeniedError.

Invariants:
    - Rules are pure: no I/O, no mutation of the value
    - Read rules see the stored value, write rules see the incoming one
    - A missing actor is passed through as None
"""

from __future__ import annotations

from typing import Any, Callable

AccessRule = Callable[[Any, str, Any], bool]


def any_user(actor: Any, key: str, value: Any = None) -> bool:
    """Allow any truthy actor."""
    return bool(actor)


def user_key(actor: Any, key: str, value: Any = None) -> bool:
    """Allow only the actor whose id is the record key."""
    return actor is not None and actor == key


def field_owner(field_name: str) -> AccessRule:
    """Build a rule allowing the actor named in ``value[field_name]``.

    Example:
        >>> rule = field_owner("owner")
        >>> rule("bob", "doc-1", {"owner": "bob"})
        True
    """

    def rule(actor: Any, key: str, value: Any = None) -> bool:
        if actor is None or not isinstance(value, dict):
            return False
        return value.get(field_name) == actor

    rule.__name__ = f"field_owner_{field_name}"
    return rule
