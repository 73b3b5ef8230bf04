"""Google Drive access with a stored authorization credential."""

from datetime import UTC
from typing import Any

from anyio.to_thread import run_sync
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from founderhub.cloud.schemas import (
    GOOGLE_SCOPE_URLS,
    ApplicationOAuthConfig,
    AuthorizationCredential,
)
from founderhub.drive.schemas import DriveAccount


def to_google_credentials(
    credential: AuthorizationCredential,
    config: ApplicationOAuthConfig,
) -> Credentials:
    """Build google-auth credentials from a stored credential.

    Args:
        credential: Stored access/refresh token pair
        config: Application OAuth client the tokens were issued to

    Returns:
        Credentials usable with googleapiclient
    """
    return Credentials(
        token=credential.access_token,
        refresh_token=credential.refresh_token or None,
        token_uri=config.token_uri,
        client_id=config.client_id,
        client_secret=config.client_secret,
        scopes=sorted(GOOGLE_SCOPE_URLS[scope] for scope in credential.scopes),
        # google-auth compares expiry against naive UTC
        expiry=credential.expires_at.astimezone(UTC).replace(tzinfo=None),
    )


class DriveAccountService:
    """Reads the identity of the Drive account a user connected."""

    def __init__(self, credentials: Credentials) -> None:
        """Initialize Drive client with credentials.

        Args:
            credentials: Google OAuth credentials
        """
        self._service = build("drive", "v3", credentials=credentials, cache_discovery=False)

    @staticmethod
    async def _execute_async(request: Any) -> Any:
        """Execute a Google API request without blocking the event loop."""
        return await run_sync(request.execute)

    async def get_account(self) -> DriveAccount:
        """Get the connected account's name and email.

        Returns:
            DriveAccount for the credential's owner
        """
        request = self._service.about().get(fields="user(displayName,emailAddress,photoLink)")
        response = await self._execute_async(request)
        user = response.get("user", {})
        return DriveAccount(
            email=user.get("emailAddress"),
            display_name=user.get("displayName"),
            photo_link=user.get("photoLink"),
        )
