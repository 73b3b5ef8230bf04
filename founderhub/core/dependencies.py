"""Dependency Injection configuration for the application.

This module provides FastAPI dependencies for injecting services and repositories
into route handlers. It centralizes all DI configuration for easier management
and testing.
"""

from collections.abc import Callable

from fastapi import Cookie, Depends, HTTPException, status

from founderhub.auth.repositories import ProfileRepository
from founderhub.auth.simple_auth import get_session_manager
from founderhub.cloud.broker import AuthorizationBroker, get_authorization_broker
from founderhub.cloud.exchange import TokenExchanger
from founderhub.cloud.repositories import CredentialStore
from founderhub.cloud.schemas import (
    ApplicationOAuthConfig,
    AuthorizationCredential,
    CloudProvider,
)
from founderhub.config import get_settings
from founderhub.drive.service import DriveAccountService, to_google_credentials
from founderhub.settings.repositories import AppCredentialsRepository


# =============================================================================
# Session Dependencies
# =============================================================================


async def get_session_data(
    session_token: str | None = Cookie(None, alias="session"),
) -> dict | None:
    """Get session data from session token.

    Args:
        session_token: Session cookie value

    Returns:
        Session data dict or None if not authenticated
    """
    if not session_token:
        return None

    return get_session_manager().verify_session_token(session_token)


async def get_user_id_from_session(
    session_data: dict | None = Depends(get_session_data),
) -> str:
    """Extract user_id from the session.

    Args:
        session_data: Session data (injected via DI)

    Returns:
        User ID string

    Raises:
        HTTPException: If not authenticated
    """
    if not session_data:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    user_id = session_data.get("user_id") or session_data.get("username")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User identification not found",
        )

    return user_id


async def get_optional_user_id(
    session_data: dict | None = Depends(get_session_data),
) -> str | None:
    """Extract user_id from the session if signed in (non-throwing version)."""
    if not session_data:
        return None
    return session_data.get("user_id") or session_data.get("username")


async def require_admin(
    session_data: dict | None = Depends(get_session_data),
) -> dict:
    """Require a signed-in administrator.

    Raises:
        HTTPException: 401 if not signed in, 403 if not an administrator
    """
    if not session_data:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    if session_data.get("role") != "superadmin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required",
        )
    return session_data


# =============================================================================
# Repository Dependencies
# =============================================================================


def get_profile_repository() -> ProfileRepository:
    """Get the profile repository."""
    return ProfileRepository()


def get_app_credentials_repository() -> AppCredentialsRepository:
    """Get the application OAuth config repository."""
    return AppCredentialsRepository()


async def get_credential_store(
    user_id: str = Depends(get_user_id_from_session),
) -> CredentialStore:
    """Get the credential store of the signed-in user."""
    return CredentialStore(user_id)


# =============================================================================
# Service Dependencies
# =============================================================================


def get_authorization_broker_dep() -> AuthorizationBroker:
    """Get AuthorizationBroker instance.

    Returns:
        AuthorizationBroker singleton instance
    """
    return get_authorization_broker()


def get_exchanger_factory(
    app_credentials: AppCredentialsRepository = Depends(get_app_credentials_repository),
) -> Callable[[str], TokenExchanger]:
    """Get a function building a TokenExchanger for a user ID.

    The callback relay needs one for the popup's owner, which is not
    necessarily known when the request starts.
    """
    timeout = get_settings().token_exchange_timeout_seconds

    def exchanger_for(user_id: str) -> TokenExchanger:
        return TokenExchanger(CredentialStore(user_id), app_credentials, timeout=timeout)

    return exchanger_for


async def get_token_exchanger(
    user_id: str = Depends(get_user_id_from_session),
    exchanger_for: Callable[[str], TokenExchanger] = Depends(get_exchanger_factory),
) -> TokenExchanger:
    """Get a TokenExchanger for the signed-in user."""
    return exchanger_for(user_id)


async def get_google_credential(
    store: CredentialStore = Depends(get_credential_store),
) -> AuthorizationCredential:
    """Get the signed-in user's stored Google credential.

    Raises:
        HTTPException: If the user has not connected Google
    """
    credential = await store.get(CloudProvider.GOOGLE)
    if credential is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Google account not connected",
        )
    return credential


async def get_google_oauth_config(
    app_credentials: AppCredentialsRepository = Depends(get_app_credentials_repository),
) -> ApplicationOAuthConfig:
    """Get the Google OAuth client config.

    Raises:
        HTTPException: If an administrator has not configured Google
    """
    config = await app_credentials.get(CloudProvider.GOOGLE)
    if config is None or not config.client_id:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Google OAuth credentials not configured. Please contact an administrator.",
        )
    return config


async def get_drive_account_service(
    credential: AuthorizationCredential = Depends(get_google_credential),
    config: ApplicationOAuthConfig = Depends(get_google_oauth_config),
) -> DriveAccountService:
    """Get DriveAccountService with the user's credential.

    Args:
        credential: User's stored Google credential (injected)
        config: Google OAuth client config (injected)

    Returns:
        DriveAccountService configured for the user
    """
    return DriveAccountService(to_google_credentials(credential, config))
