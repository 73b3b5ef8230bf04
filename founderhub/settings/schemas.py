"""Pydantic schemas for administrator settings."""

from pydantic import BaseModel, Field, field_validator

from founderhub.cloud.schemas import ApplicationOAuthConfig, CloudProvider


class AppCredentialsUpdate(BaseModel):
    """Schema for updating a provider's OAuth client (all fields optional).

    Omitted fields keep their stored value.
    """

    client_id: str | None = Field(default=None, max_length=255)
    client_secret: str | None = Field(default=None, max_length=255)
    redirect_uri: str | None = None
    scopes: list[str] | None = None
    auth_uri: str | None = None
    token_uri: str | None = None

    @field_validator("redirect_uri", "auth_uri", "token_uri")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate endpoint URLs if provided."""
        if v is None:
            return None
        v = v.strip()
        if not v.startswith(("https://", "http://")):
            raise ValueError("URL must start with http:// or https://")
        return v

    @field_validator("scopes")
    @classmethod
    def validate_scopes(cls, v: list[str] | None) -> list[str] | None:
        """Reject an empty scope list."""
        if v is None:
            return None
        scopes = [scope.strip() for scope in v if scope.strip()]
        if not scopes:
            raise ValueError("At least one scope is required")
        return scopes


class AppCredentialsResponse(BaseModel):
    """A provider's OAuth client with the secret masked."""

    provider: CloudProvider
    configured: bool
    client_id: str
    client_secret_set: bool
    redirect_uri: str
    scopes: list[str]
    auth_uri: str
    token_uri: str

    @classmethod
    def from_config(
        cls, provider: CloudProvider, config: ApplicationOAuthConfig
    ) -> "AppCredentialsResponse":
        """Build a masked response from a stored config."""
        return cls(
            provider=provider,
            configured=bool(config.client_id and config.client_secret),
            client_id=config.client_id,
            client_secret_set=bool(config.client_secret),
            redirect_uri=config.redirect_uri,
            scopes=config.scopes,
            auth_uri=config.auth_uri,
            token_uri=config.token_uri,
        )
