"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "FounderHub"
    app_env: str = "development"
    debug: bool = False
    secret_key: str = "change-me-in-production"
    app_origin: str = "http://localhost:8000"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    # Proxies trusted to set X-Forwarded-Proto/For (comma separated, "*" for any)
    forwarded_allow_ips: str = "127.0.0.1"

    # Database
    database_url: str = "sqlite+aiosqlite:///./founderhub.db"

    # Simple authentication
    auth_username: str = ""
    auth_password: str = ""
    admin_usernames: str = ""

    # Google endpoints (overridable per provider in the admin settings)
    google_auth_uri: str = "https://accounts.google.com/o/oauth2/v2/auth"
    google_token_uri: str = "https://oauth2.googleapis.com/token"

    # Popup authorization flow
    authorization_timeout_seconds: float = 120.0
    popup_poll_interval_seconds: float = 1.0
    relay_close_delay_ms: int = 1000
    finished_authorization_ttl_seconds: float = 600.0
    token_exchange_timeout_seconds: float = 15.0
    popup_width: int = 600
    popup_height: int = 600

    @property
    def admin_usernames_list(self) -> list[str]:
        """Return administrator usernames as a list."""
        return [name for name in self.admin_usernames.replace(",", " ").split() if name]

    @property
    def google_redirect_uri(self) -> str:
        """Default callback URL registered with Google."""
        return f"{self.app_origin.rstrip('/')}/auth/google/callback"

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.app_env == "production"

    @property
    def async_database_url(self) -> str:
        """Get async-compatible database URL.

        Converts postgres:// to postgresql+asyncpg://
        and sqlite:// to sqlite+aiosqlite://
        """
        url = self.database_url
        if url.startswith("postgres://"):
            return url.replace("postgres://", "postgresql+asyncpg://", 1)
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if url.startswith("sqlite://"):
            return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
