"""Tests for credential persistence in the profile record.

Test categories:
- Reading and writing credentials
- Preservation of other providers' entries
- Compare-and-swap under concurrent writers
- Unreadable records
"""

import os
from contextlib import asynccontextmanager
from unittest.mock import patch

import pytest
from sqlalchemy import update

from founderhub.cloud.repositories import CredentialStore
from founderhub.cloud.schemas import CloudProvider, CloudScope
from founderhub.exceptions import CredentialStoreError
from founderhub.models import Profile
from tests.fakes import FIXED_NOW, make_credential

USER = "founder@example.com"
OTHER_ENTRY = {"provider": "dropbox", "access_token": "opaque"}


async def create_profile(session_factory, cloud_storage=None, version=0):
    """Insert a profile row for USER."""
    async with session_factory() as session:
        session.add(
            Profile(
                id=USER,
                username=USER,
                cloud_storage=cloud_storage or {},
                cloud_storage_version=version,
            )
        )


async def load_profile(session_factory) -> Profile:
    """Read USER's profile row."""
    async with session_factory() as session:
        return await session.get(Profile, USER)


def racing_factory(session_factory, races: int):
    """Session factory where another writer bumps the profile after each read.

    The first ``races`` reads of the profile are followed by a concurrent
    write that adds a ``dropbox`` entry.
    """
    remaining = {"races": races}

    @asynccontextmanager
    async def factory():
        async with session_factory() as session:
            original_get = session.get

            async def get_then_race(*args, **kwargs):
                result = await original_get(*args, **kwargs)
                if remaining["races"] > 0:
                    remaining["races"] -= 1
                    async with session_factory() as other:
                        await other.execute(
                            update(Profile)
                            .where(Profile.id == USER)
                            .values(
                                cloud_storage={"dropbox": OTHER_ENTRY},
                                cloud_storage_version=Profile.cloud_storage_version + 1,
                            )
                        )
                return result

            session.get = get_then_race
            yield session

    return factory


class TestReadWrite:
    """Reading and writing credentials."""

    @staticmethod
    @pytest.mark.asyncio
    async def test_get_without_profile(session_factory):
        """Test a user without profile has no credential."""
        store = CredentialStore(USER, session_factory)

        assert await store.get(CloudProvider.GOOGLE) is None

    @staticmethod
    @pytest.mark.asyncio
    async def test_save_and_get(session_factory):
        """Test a saved credential reads back unchanged."""
        await create_profile(session_factory)
        store = CredentialStore(USER, session_factory)
        credential = make_credential(scopes={CloudScope.DRIVE, CloudScope.DOCS})

        await store.save(CloudProvider.GOOGLE, credential)

        assert await store.get(CloudProvider.GOOGLE) == credential
        profile = await load_profile(session_factory)
        assert profile.cloud_storage_version == 1

    @staticmethod
    @pytest.mark.asyncio
    async def test_tokens_are_encrypted_at_rest(session_factory):
        """Test tokens never hit the database in plain text."""
        store = CredentialStore(USER, session_factory)
        credential = make_credential(access_token="ya29.plain", refresh_token="1//plain")

        await store.save(CloudProvider.GOOGLE, credential)

        record = (await load_profile(session_factory)).cloud_storage["google"]
        assert record["access_token"] != "ya29.plain"
        assert record["refresh_token"] != "1//plain"
        assert record["expires_at"] == credential.expires_at.isoformat()
        assert record["scopes"] == ["drive", "slides"]

    @staticmethod
    @pytest.mark.asyncio
    async def test_save_creates_missing_profile(session_factory):
        """Test the first save creates the profile row."""
        store = CredentialStore(USER, session_factory)

        await store.save(CloudProvider.GOOGLE, make_credential())

        profile = await load_profile(session_factory)
        assert profile.username == USER
        assert profile.cloud_storage_version == 1
        assert set(profile.cloud_storage) == {"google"}

    @staticmethod
    @pytest.mark.asyncio
    async def test_save_replaces_previous_credential(session_factory):
        """Test saving again replaces the provider's entry."""
        store = CredentialStore(USER, session_factory)
        await store.save(CloudProvider.GOOGLE, make_credential(access_token="old"))

        await store.save(CloudProvider.GOOGLE, make_credential(access_token="new"))

        assert (await store.get(CloudProvider.GOOGLE)).access_token == "new"

    @staticmethod
    @pytest.mark.asyncio
    async def test_save_preserves_other_providers(session_factory):
        """Test unrelated entries survive a save."""
        await create_profile(session_factory, {"dropbox": OTHER_ENTRY}, version=4)
        store = CredentialStore(USER, session_factory)

        await store.save(CloudProvider.GOOGLE, make_credential())

        profile = await load_profile(session_factory)
        assert profile.cloud_storage["dropbox"] == OTHER_ENTRY
        assert "google" in profile.cloud_storage
        assert profile.cloud_storage_version == 5

    @staticmethod
    @pytest.mark.asyncio
    async def test_delete(session_factory):
        """Test deleting removes only the provider's entry."""
        await create_profile(session_factory, {"dropbox": OTHER_ENTRY})
        store = CredentialStore(USER, session_factory)
        await store.save(CloudProvider.GOOGLE, make_credential())

        assert await store.delete(CloudProvider.GOOGLE) is True
        assert await store.delete(CloudProvider.GOOGLE) is False

        profile = await load_profile(session_factory)
        assert profile.cloud_storage == {"dropbox": OTHER_ENTRY}
        assert await store.get(CloudProvider.GOOGLE) is None

    @staticmethod
    @pytest.mark.asyncio
    async def test_expired_credential_is_still_returned(session_factory):
        """Test the store does not judge expiry."""
        store = CredentialStore(USER, session_factory)
        expired = make_credential(expires_at=FIXED_NOW)

        await store.save(CloudProvider.GOOGLE, expired)

        assert await store.get(CloudProvider.GOOGLE) == expired


class TestConcurrentWriters:
    """Compare-and-swap on cloud_storage_version."""

    @staticmethod
    @pytest.mark.asyncio
    async def test_lost_race_is_retried_without_dropping_entries(session_factory):
        """Test a concurrent write is merged instead of overwritten."""
        await create_profile(session_factory)
        store = CredentialStore(USER, racing_factory(session_factory, races=1))

        await store.save(CloudProvider.GOOGLE, make_credential())

        profile = await load_profile(session_factory)
        assert profile.cloud_storage["dropbox"] == OTHER_ENTRY
        assert "google" in profile.cloud_storage
        assert profile.cloud_storage_version == 2

    @staticmethod
    @pytest.mark.asyncio
    async def test_gives_up_after_repeated_conflicts(session_factory):
        """Test the store raises once every attempt loses the race."""
        await create_profile(session_factory)
        store = CredentialStore(
            USER,
            racing_factory(session_factory, races=CredentialStore.MAX_WRITE_ATTEMPTS),
        )

        with pytest.raises(CredentialStoreError):
            await store.save(CloudProvider.GOOGLE, make_credential())

        profile = await load_profile(session_factory)
        assert "google" not in profile.cloud_storage


class TestUnreadableRecords:
    """Records that cannot be turned back into credentials."""

    @staticmethod
    @pytest.mark.asyncio
    async def test_rotated_secret_key(session_factory):
        """Test a credential encrypted under an old key reads as absent."""
        from founderhub.config import get_settings
        from founderhub.crypto import clear_fernet_cache

        store = CredentialStore(USER, session_factory)
        await store.save(CloudProvider.GOOGLE, make_credential())

        with patch.dict(os.environ, {"SECRET_KEY": "rotated-secret-key"}):
            get_settings.cache_clear()
            clear_fernet_cache()

            assert await store.get(CloudProvider.GOOGLE) is None

    @staticmethod
    @pytest.mark.asyncio
    async def test_malformed_record(session_factory):
        """Test a record missing fields reads as absent."""
        await create_profile(session_factory, {"google": {"provider": "google"}})
        store = CredentialStore(USER, session_factory)

        assert await store.get(CloudProvider.GOOGLE) is None
