"""Authorization code for token exchange."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

from founderhub.cloud.schemas import (
    AuthorizationCredential,
    CloudProvider,
    scopes_from_urls,
)
from founderhub.core.protocols import AppCredentialsProtocol, CredentialStoreProtocol
from founderhub.exceptions import ConfigurationError, TokenExchangeError

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class TokenExchanger:
    """Exchange an authorization code for tokens and store the credential.

    The exchange is attempted once. A network failure or an error response
    surfaces as TokenExchangeError and the user has to authorize again.
    """

    def __init__(
        self,
        store: CredentialStoreProtocol,
        app_credentials: AppCredentialsProtocol,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = utcnow,
        timeout: float = 15.0,
    ) -> None:
        """Initialize the exchanger.

        Args:
            store: Credential store of the user being authorized
            app_credentials: Source of the application OAuth config
            http_client: Optional shared client; a short-lived one is used otherwise
            clock: Returns the current aware datetime
            timeout: Request timeout in seconds for the short-lived client
        """
        self._store = store
        self._app_credentials = app_credentials
        self._http_client = http_client
        self._clock = clock
        self._timeout = timeout

    async def exchange(self, provider: CloudProvider, code: str) -> AuthorizationCredential:
        """Exchange ``code`` for an access/refresh token pair.

        Args:
            provider: Provider that issued the code
            code: Authorization code received by the callback relay

        Returns:
            The stored AuthorizationCredential

        Raises:
            ConfigurationError: If client ID or secret is missing
            TokenExchangeError: If the token endpoint cannot be reached or refuses
        """
        config = await self._app_credentials.get(provider)
        if config is None or not config.client_id or not config.client_secret:
            raise ConfigurationError(
                f"Missing required {provider.value} OAuth configuration. "
                "Please contact an administrator."
            )

        form = {
            "code": code,
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "redirect_uri": config.redirect_uri,
            "grant_type": "authorization_code",
        }

        try:
            response = await self._post(config.token_uri, form)
        except httpx.HTTPError as e:
            logger.warning("Token endpoint unreachable for %s: %s", provider.value, type(e).__name__)
            raise TokenExchangeError(
                f"Could not reach the {provider.value} token endpoint. Please try again."
            ) from e

        if not response.is_success:
            message = _error_description(response)
            logger.warning(
                "Token exchange refused for %s (HTTP %d): %s",
                provider.value,
                response.status_code,
                message,
            )
            raise TokenExchangeError(message, status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise TokenExchangeError("Token endpoint returned an invalid response") from e

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            raise TokenExchangeError("Token endpoint response did not include an access token")

        expires_in = payload.get("expires_in")
        if expires_in is None:
            expires_in = DEFAULT_EXPIRES_IN
        try:
            expires_at = self._clock() + timedelta(seconds=int(expires_in))
        except (TypeError, ValueError, OverflowError) as e:
            raise TokenExchangeError(
                f"Token endpoint returned an invalid expires_in: {expires_in!r}"
            ) from e

        credential = AuthorizationCredential(
            provider=provider,
            access_token=access_token,
            refresh_token=payload.get("refresh_token") or "",
            expires_at=expires_at,
            scopes=scopes_from_urls(config.scopes),
        )

        await self._store.save(provider, credential)
        logger.info("OAuth tokens obtained for %s", provider.value)
        return credential

    async def _post(self, url: str, form: dict[str, str]) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(url, data=form)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(url, data=form)


def _error_description(response: httpx.Response) -> str:
    """Pull the provider's error description out of an error response."""
    try:
        body: Any = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        description = body.get("error_description") or body.get("error")
        if description:
            return str(description)
    return TokenExchangeError.default_message
