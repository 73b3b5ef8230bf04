"""Simple session-based authentication for app access."""

import hmac
import time
from typing import Any

from itsdangerous import BadSignature, URLSafeTimedSerializer

from founderhub.config import get_settings

ROLE_MEMBER = "member"
ROLE_SUPERADMIN = "superadmin"


class SessionManager:
    """Manage signed cookie sessions for authentication."""

    SESSION_MAX_AGE = 60 * 60 * 24 * 7  # 7 days

    def __init__(self) -> None:
        """Initialize session manager with settings."""
        self.settings = get_settings()
        self._serializer = URLSafeTimedSerializer(self.settings.secret_key)

    def verify_credentials(self, username: str, password: str) -> bool:
        """Verify username and password against environment settings.

        Args:
            username: Provided username
            password: Provided password

        Returns:
            True if credentials match
        """
        if not self.settings.auth_username or not self.settings.auth_password:
            return False

        # Constant-time comparison
        username_match = hmac.compare_digest(
            username.encode(), self.settings.auth_username.encode()
        )
        password_match = hmac.compare_digest(
            password.encode(), self.settings.auth_password.encode()
        )

        return username_match and password_match

    def role_for(self, username: str) -> str:
        """Role granted to a username at sign-in."""
        if username in self.settings.admin_usernames_list:
            return ROLE_SUPERADMIN
        return ROLE_MEMBER

    def create_session_token(self, username: str, role: str | None = None) -> str:
        """Create a signed session token.

        Args:
            username: Authenticated username
            role: Role to embed; derived from settings when omitted

        Returns:
            Signed session token
        """
        session_data = {
            "username": username,
            "user_id": username,  # Username doubles as user_id
            "role": role or self.role_for(username),
            "created_at": int(time.time()),
        }
        return self._serializer.dumps(session_data)

    def verify_session_token(self, token: str) -> dict[str, Any] | None:
        """Verify and decode a session token.

        Args:
            token: Session token from cookie

        Returns:
            Session data dict or None if invalid/expired
        """
        try:
            return self._serializer.loads(token, max_age=self.SESSION_MAX_AGE)
        except BadSignature:
            return None


# Singleton instance
_session_manager: SessionManager | None = None


def get_session_manager() -> SessionManager:
    """Get or create session manager singleton."""
    global _session_manager
    if _session_manager is None:
        _session_manager = SessionManager()
    return _session_manager


def reset_session_manager() -> None:
    """Drop the session manager singleton so settings are re-read."""
    global _session_manager
    _session_manager = None
