"""Unit tests for custom exceptions.

Tests for:
- Authorization failure codes and messages
- Provider-reported errors
- Token exchange failures
"""

import pytest

from founderhub.exceptions import (
    AuthorizationCancelledError,
    AuthorizationDeniedError,
    AuthorizationError,
    AuthorizationTimeoutError,
    ConfigurationError,
    CredentialStoreError,
    FounderHubError,
    PopupBlockedError,
    SecretDecryptionError,
    TokenExchangeError,
)


@pytest.mark.unit
class TestCustomExceptions:
    """Tests for custom exception classes."""

    @staticmethod
    def test_founderhub_error_is_exception():
        """Test that FounderHubError is a proper exception."""
        error = FounderHubError("Test error")
        assert isinstance(error, Exception)
        assert str(error) == "Test error"

    @staticmethod
    @pytest.mark.parametrize(
        ("error_class", "code", "message"),
        [
            (
                ConfigurationError,
                "configuration",
                "OAuth credentials not configured. Please contact an administrator.",
            ),
            (
                PopupBlockedError,
                "popup_blocked",
                "Failed to open popup window. Please allow popups for this site.",
            ),
            (AuthorizationCancelledError, "cancelled", "Authentication cancelled"),
            (AuthorizationTimeoutError, "timeout", "Authentication timed out"),
            (
                TokenExchangeError,
                "token_exchange",
                "Failed to exchange authorization code for tokens",
            ),
        ],
    )
    def test_default_messages(error_class, code, message):
        """Test each failure kind has a stable code and user-facing message."""
        error = error_class()

        assert error.code == code
        assert error.message == message
        assert str(error) == message
        assert isinstance(error, AuthorizationError)

    @staticmethod
    def test_message_override():
        """Test a custom message replaces the default one."""
        error = ConfigurationError("Client ID missing")
        assert error.message == "Client ID missing"
        assert error.code == "configuration"

    @staticmethod
    def test_denied_carries_provider_error():
        """Test the provider's error string is kept verbatim."""
        error = AuthorizationDeniedError("access_denied")

        assert error.provider_error == "access_denied"
        assert error.message == "access_denied"
        assert error.code == "denied"

    @staticmethod
    def test_token_exchange_status_code():
        """Test TokenExchangeError records the endpoint status."""
        error = TokenExchangeError("invalid_grant", status_code=400)
        assert error.status_code == 400
        assert error.message == "invalid_grant"

        assert TokenExchangeError().status_code is None

    @staticmethod
    def test_storage_errors_are_not_authorization_errors():
        """Test storage failures are distinct from authorization outcomes."""
        for error in (CredentialStoreError("conflict"), SecretDecryptionError("bad key")):
            assert isinstance(error, FounderHubError)
            assert not isinstance(error, AuthorizationError)
