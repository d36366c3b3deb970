"""
Unit tests for stock access rules.
"""

from tabledb.access import any_user, field_owner, user_key


class TestAccessRules:
    """Tests for any_user, user_key and field_owner."""

    def test_any_user(self):
        """Any truthy actor is allowed."""
        assert any_user("bob", "k")
        assert not any_user(None, "k")
        assert not any_user("", "k")

    def test_user_key(self):
        """Only the actor named by the key is allowed."""
        assert user_key("bob", "bob")
        assert not user_key("alice", "bob")
        assert not user_key(None, "bob")

    def test_field_owner(self):
        """The actor must match the owner field of the value."""
        rule = field_owner("owner")
        assert rule("bob", "doc-1", {"owner": "bob"})
        assert not rule("alice", "doc-1", {"owner": "bob"})
        assert not rule("bob", "doc-1", "not a dict")
        assert not rule(None, "doc-1", {"owner": None})
