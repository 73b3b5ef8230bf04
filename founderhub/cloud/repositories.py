"""Per-user credential storage inside the profile record."""

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from founderhub.cloud.schemas import AuthorizationCredential, CloudProvider
from founderhub.crypto import decrypt_secret, encrypt_secret
from founderhub.database import get_db_context
from founderhub.exceptions import CredentialStoreError, SecretDecryptionError
from founderhub.models import Profile

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class _WriteConflict(Exception):
    """cloud_storage changed between read and write."""


class CredentialStore:
    """Read and write the current user's provider credentials.

    Credentials are kept in ``profiles.cloud_storage`` keyed by provider name.
    Writes are compare-and-swap on ``cloud_storage_version`` so two tabs
    connecting different providers cannot drop each other's entry.
    """

    MAX_WRITE_ATTEMPTS = 3

    def __init__(
        self,
        user_id: str,
        session_factory: SessionFactory = get_db_context,
    ) -> None:
        """Initialize the store for one user.

        Args:
            user_id: Profile identifier of the signed-in user
            session_factory: Async context manager factory yielding a session
        """
        self._user_id = user_id
        self._session_factory = session_factory

    @property
    def user_id(self) -> str:
        """Profile identifier this store is bound to."""
        return self._user_id

    async def get(self, provider: CloudProvider) -> AuthorizationCredential | None:
        """Get the stored credential for a provider.

        Returns:
            The credential, or None when absent or unreadable
        """
        async with self._session_factory() as session:
            profile = await session.get(Profile, self._user_id)
            record = (profile.cloud_storage or {}).get(provider.value) if profile else None

        if not record:
            return None

        try:
            return _credential_from_record(record)
        except (SecretDecryptionError, ValidationError, KeyError, TypeError) as e:
            logger.warning(
                "Ignoring unreadable %s credential for user %s: %s",
                provider.value,
                self._user_id,
                type(e).__name__,
            )
            return None

    async def save(
        self, provider: CloudProvider, credential: AuthorizationCredential
    ) -> None:
        """Store a credential, replacing any previous one for the same provider.

        Entries for other providers are preserved.

        Raises:
            CredentialStoreError: If concurrent writers keep winning the race
        """
        record = _credential_to_record(credential)

        def put(cloud_storage: dict[str, Any]) -> dict[str, Any]:
            return {**cloud_storage, provider.value: record}

        await self._compare_and_swap(put)
        logger.info("Saved %s credential for user %s", provider.value, self._user_id)

    async def delete(self, provider: CloudProvider) -> bool:
        """Remove the credential for a provider.

        Returns:
            True if a credential was removed
        """
        removed = False

        def drop(cloud_storage: dict[str, Any]) -> dict[str, Any] | None:
            nonlocal removed
            removed = provider.value in cloud_storage
            if not removed:
                return None
            return {k: v for k, v in cloud_storage.items() if k != provider.value}

        await self._compare_and_swap(drop)
        if removed:
            logger.info("Deleted %s credential for user %s", provider.value, self._user_id)
        return removed

    async def _compare_and_swap(
        self, mutate: Callable[[dict[str, Any]], dict[str, Any] | None]
    ) -> None:
        """Apply ``mutate`` to ``cloud_storage`` unless another writer got there first.

        ``mutate`` returns the new mapping, or None to leave the record untouched.
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.MAX_WRITE_ATTEMPTS),
                retry=retry_if_exception_type(_WriteConflict),
                after=self._log_conflict,
                reraise=True,
            ):
                with attempt:
                    await self._write_once(mutate)
        except _WriteConflict as e:
            raise CredentialStoreError(
                f"Could not update cloud storage for user {self._user_id}: concurrent updates"
            ) from e

    def _log_conflict(self, retry_state: RetryCallState) -> None:
        logger.info(
            "cloud_storage changed underneath user %s (attempt %d/%d)",
            self._user_id,
            retry_state.attempt_number,
            self.MAX_WRITE_ATTEMPTS,
        )

    async def _write_once(
        self, mutate: Callable[[dict[str, Any]], dict[str, Any] | None]
    ) -> None:
        try:
            async with self._session_factory() as session:
                if not await self._try_write(session, mutate):
                    raise _WriteConflict
        except IntegrityError as e:
            # Another request created the profile row first
            raise _WriteConflict from e

    async def _try_write(
        self,
        session: AsyncSession,
        mutate: Callable[[dict[str, Any]], dict[str, Any] | None],
    ) -> bool:
        profile = await session.get(Profile, self._user_id)

        if profile is None:
            new_storage = mutate({})
            if new_storage is None:
                return True
            session.add(
                Profile(
                    id=self._user_id,
                    username=self._user_id,
                    cloud_storage=new_storage,
                    cloud_storage_version=1,
                )
            )
            await session.flush()
            return True

        new_storage = mutate(dict(profile.cloud_storage or {}))
        if new_storage is None:
            return True

        result = await session.execute(
            update(Profile)
            .where(
                Profile.id == self._user_id,
                Profile.cloud_storage_version == profile.cloud_storage_version,
            )
            .values(
                cloud_storage=new_storage,
                cloud_storage_version=Profile.cloud_storage_version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


def _credential_to_record(credential: AuthorizationCredential) -> dict[str, Any]:
    return {
        "provider": credential.provider.value,
        "access_token": encrypt_secret(credential.access_token),
        "refresh_token": encrypt_secret(credential.refresh_token),
        "expires_at": credential.expires_at.isoformat(),
        "scopes": sorted(scope.value for scope in credential.scopes),
    }


def _credential_from_record(record: dict[str, Any]) -> AuthorizationCredential:
    refresh_token = record.get("refresh_token")
    return AuthorizationCredential(
        provider=record["provider"],
        access_token=decrypt_secret(record["access_token"]),
        refresh_token=decrypt_secret(refresh_token) if refresh_token else "",
        expires_at=datetime.fromisoformat(record["expires_at"]),
        scopes=record.get("scopes", []),
    )
