"""
Unit tests for email aliasing and claims.
"""

import pytest
import pytest_asyncio

from tabledb.auth.emails import EmailTable, email_alias
from tabledb.errors import AlreadyExistsError, MalformedEmailError, NotFoundError
from tabledb.store import InMemoryKeyValueStore


@pytest_asyncio.fixture
async def emails():
    """Email table on a fresh memory store."""
    store = InMemoryKeyValueStore()
    await store.open()
    yield EmailTable(store)
    await store.close()


class TestEmailAlias:
    """Tests for email_alias."""

    @pytest.mark.parametrize(
        "email,alias",
        [
            ("joe@example.com", "joe@example.com"),
            ("JOE@Example.COM", "joe@example.com"),
            ("joe+abc@example.com", "joe@example.com"),
            ("Joe+a+b@example.com", "joe@example.com"),
        ],
    )
    def test_normalized(self, email, alias):
        """Plus tags are dropped and case folded."""
        assert email_alias(email) == alias

    @pytest.mark.parametrize("email", ["joe", "joe@", None])
    def test_malformed(self, email):
        """Addresses without a domain are malformed."""
        with pytest.raises(MalformedEmailError, match="Malformed email."):
            email_alias(email)


class TestEmailTable:
    """Tests for EmailTable claims."""

    @pytest.mark.asyncio
    async def test_claim_and_lookup(self, emails):
        """A claim is found through any alias of the address."""
        await emails.put("Joe+abc@example.com", "joe")

        claim = await emails.get("joe+xyz@EXAMPLE.com")

        assert claim == {
            "_id": "joe@example.com",
            "email": "Joe+abc@example.com",
            "userId": "joe",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("other", ["joe+xyz@example.com", "JOE@example.com"])
    async def test_duplicate_alias(self, emails, other):
        """Aliases of a claimed address cannot be claimed again."""
        await emails.put("joe+abc@example.com", "joe")
        with pytest.raises(AlreadyExistsError, match="Email already exists."):
            await emails.put(other, "other")

    @pytest.mark.asyncio
    async def test_unknown(self, emails):
        """Unclaimed addresses are not found."""
        with pytest.raises(NotFoundError):
            await emails.get("nobody@example.com")

    @pytest.mark.asyncio
    async def test_put_record(self, emails):
        """put_record claims from an email/userId record."""
        await emails.put_record({"email": "ann@example.com", "userId": "ann"})
        assert (await emails.get("ann@example.com"))["userId"] == "ann"
