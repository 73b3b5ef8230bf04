"""Repository for administrator-managed application settings."""

import logging
from typing import Any

from founderhub.cloud.repositories import SessionFactory
from founderhub.cloud.schemas import ApplicationOAuthConfig, CloudProvider
from founderhub.config import get_settings
from founderhub.crypto import decrypt_secret, encrypt_secret
from founderhub.database import get_db_context
from founderhub.exceptions import SecretDecryptionError
from founderhub.models import AppSetting

logger = logging.getLogger(__name__)

APP_CREDENTIALS_KEY = "app_credentials"


def default_oauth_config(provider: CloudProvider) -> ApplicationOAuthConfig:
    """Build the unconfigured OAuth config for a provider from settings."""
    settings = get_settings()
    return ApplicationOAuthConfig(
        redirect_uri=settings.google_redirect_uri,
        auth_uri=settings.google_auth_uri,
        token_uri=settings.google_token_uri,
    )


class AppCredentialsRepository:
    """Read and write the ``app_credentials`` settings record.

    The record holds one OAuth client per provider, with the client secret
    stored encrypted. Read-only from the authorization flow's point of view.
    """

    def __init__(self, session_factory: SessionFactory = get_db_context) -> None:
        """Initialize repository with a session factory."""
        self._session_factory = session_factory

    async def get(self, provider: CloudProvider) -> ApplicationOAuthConfig | None:
        """Get the OAuth config for a provider.

        Args:
            provider: Provider to look up

        Returns:
            ApplicationOAuthConfig or None if the provider was never configured
        """
        async with self._session_factory() as session:
            setting = await session.get(AppSetting, APP_CREDENTIALS_KEY)
            entry = (setting.value or {}).get(provider.value) if setting else None

        if not entry:
            return None

        data = default_oauth_config(provider).model_dump()
        data.update({k: v for k, v in entry.items() if v not in (None, "")})
        if entry.get("client_secret"):
            try:
                data["client_secret"] = decrypt_secret(entry["client_secret"])
            except SecretDecryptionError:
                logger.warning("Stored %s client secret is unreadable", provider.value)
                data["client_secret"] = ""
        return ApplicationOAuthConfig(**data)

    async def save(
        self, provider: CloudProvider, config: ApplicationOAuthConfig
    ) -> ApplicationOAuthConfig:
        """Create or replace the OAuth config for a provider.

        Args:
            provider: Provider to configure
            config: Complete config to store

        Returns:
            The stored config
        """
        entry: dict[str, Any] = config.model_dump()
        entry["client_secret"] = (
            encrypt_secret(config.client_secret) if config.client_secret else ""
        )

        async with self._session_factory() as session:
            setting = await session.get(AppSetting, APP_CREDENTIALS_KEY)
            if setting is None:
                session.add(AppSetting(key=APP_CREDENTIALS_KEY, value={provider.value: entry}))
            else:
                setting.value = {**(setting.value or {}), provider.value: entry}
            await session.flush()

        logger.info("Saved %s application OAuth config", provider.value)
        return config
