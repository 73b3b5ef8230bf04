"""Protocol definitions for the authorization flow's collaborators.

These protocols define the contracts between the popup orchestrator and the
pieces it drives, enabling dependency injection and easier testing through
fake implementations.
"""

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from founderhub.cloud.schemas import (
        ApplicationOAuthConfig,
        AuthorizationCredential,
        CloudProvider,
    )


class CredentialStoreProtocol(Protocol):
    """Protocol for per-user credential storage."""

    async def get(self, provider: "CloudProvider") -> "AuthorizationCredential | None":
        """Get the stored credential for a provider.

        Args:
            provider: Provider to look up

        Returns:
            The credential, or None if absent
        """
        ...

    async def save(
        self,
        provider: "CloudProvider",
        credential: "AuthorizationCredential",
    ) -> None:
        """Store a credential, replacing any previous one for the provider.

        Args:
            provider: Provider the credential belongs to
            credential: Credential to store
        """
        ...

    async def delete(self, provider: "CloudProvider") -> bool:
        """Remove the credential for a provider.

        Args:
            provider: Provider to disconnect

        Returns:
            True if a credential was removed
        """
        ...


class AppCredentialsProtocol(Protocol):
    """Protocol for reading the application OAuth config."""

    async def get(self, provider: "CloudProvider") -> "ApplicationOAuthConfig | None":
        """Get the OAuth config for a provider.

        Args:
            provider: Provider to look up

        Returns:
            ApplicationOAuthConfig or None if not configured
        """
        ...


class TokenExchangerProtocol(Protocol):
    """Protocol for the code-for-token exchange."""

    async def exchange(
        self, provider: "CloudProvider", code: str
    ) -> "AuthorizationCredential":
        """Exchange an authorization code and store the resulting credential.

        Args:
            provider: Provider that issued the code
            code: Authorization code

        Returns:
            The stored credential
        """
        ...


class PopupWindow(Protocol):
    """Handle on an opened authorization window."""

    @property
    def closed(self) -> bool:
        """Whether the window has been closed."""
        ...

    def close(self) -> None:
        """Close the window. Closing a closed window does nothing."""
        ...


class WindowOpener(Protocol):
    """Opens authorization windows."""

    def open(self, url: str, name: str, features: str) -> PopupWindow | None:
        """Open a window at ``url``.

        Args:
            url: Address to load
            name: Window name
            features: Size and position feature string

        Returns:
            Window handle, or None if the window could not be created
        """
        ...
