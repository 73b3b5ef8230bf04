"""Pydantic schemas for cloud storage authorization."""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class CloudProvider(str, Enum):
    """Third-party providers a user can connect."""

    GOOGLE = "google"


class CloudScope(str, Enum):
    """Resource families granted by a credential."""

    DRIVE = "drive"
    SLIDES = "slides"
    DOCS = "docs"
    SHEETS = "sheets"


# Provider scope URL for each resource family
GOOGLE_SCOPE_URLS: dict[CloudScope, str] = {
    CloudScope.DRIVE: "https://www.googleapis.com/auth/drive.file",
    CloudScope.SLIDES: "https://www.googleapis.com/auth/presentations",
    CloudScope.DOCS: "https://www.googleapis.com/auth/documents",
    CloudScope.SHEETS: "https://www.googleapis.com/auth/spreadsheets",
}

DEFAULT_GOOGLE_SCOPES: list[str] = [
    GOOGLE_SCOPE_URLS[CloudScope.DRIVE],
    GOOGLE_SCOPE_URLS[CloudScope.SLIDES],
]


def scopes_from_urls(scope_urls: list[str]) -> set[CloudScope]:
    """Map provider scope URLs back to resource families, ignoring unknown ones."""
    by_url = {url: scope for scope, url in GOOGLE_SCOPE_URLS.items()}
    return {by_url[url] for url in scope_urls if url in by_url}


class AuthorizationCredential(BaseModel):
    """Access/refresh token pair granting access to a user's provider resources."""

    provider: CloudProvider
    access_token: str
    refresh_token: str = ""
    expires_at: datetime
    scopes: set[CloudScope] = Field(default_factory=set)

    def is_expired(self, now: datetime) -> bool:
        """Check whether the access token has expired at ``now``."""
        return self.expires_at <= now


class ApplicationOAuthConfig(BaseModel):
    """Administrator-managed OAuth client for one provider."""

    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str
    scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_GOOGLE_SCOPES))
    auth_uri: str
    token_uri: str


class CallbackMessage(BaseModel):
    """Envelope posted by the callback relay to the waiting opener."""

    type: Literal["oauth_callback"] = "oauth_callback"
    provider: CloudProvider
    code: str | None = None
    error: str | None = None


class WindowGeometry(BaseModel):
    """Position and outer size of the window that opens the popup."""

    screen_x: int = 0
    screen_y: int = 0
    outer_width: int = Field(default=1280, gt=0)
    outer_height: int = Field(default=800, gt=0)


class ConnectRequest(BaseModel):
    """Request to connect a provider account."""

    parent: WindowGeometry | None = None
    popup_opened: bool = Field(
        default=True,
        description="False when the browser refused to open the popup window",
    )


class CredentialSummary(BaseModel):
    """Credential metadata safe to return to the browser (no tokens)."""

    provider: CloudProvider
    expires_at: datetime
    expired: bool
    scopes: list[CloudScope] = Field(default_factory=list)

    @classmethod
    def from_credential(
        cls, credential: AuthorizationCredential, now: datetime
    ) -> "CredentialSummary":
        """Build a summary from a stored credential."""
        return cls(
            provider=credential.provider,
            expires_at=credential.expires_at,
            expired=credential.is_expired(now),
            scopes=sorted(credential.scopes, key=lambda scope: scope.value),
        )


class ConnectResponse(BaseModel):
    """Outcome of starting an authorization."""

    status: Literal["connected", "pending"]
    credential: CredentialSummary | None = None
    authorization_id: str | None = None
    authorization_url: str | None = None
    features: str | None = None


class ConnectionStatus(BaseModel):
    """Whether the current user has connected a provider."""

    provider: CloudProvider
    connected: bool
    credential: CredentialSummary | None = None
