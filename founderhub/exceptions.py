"""Custom exceptions for FounderHub.

The authorization flow rejects with exactly one of the ``AuthorizationError``
subclasses below. Each carries a stable ``code`` so the dashboard can tell
them apart, and a human-readable message that is shown next to the
"Connect" control as-is.
"""


class FounderHubError(Exception):
    """Base exception for all FounderHub errors.

    All custom exceptions in this application inherit from this class
    to allow catching all application-specific errors with a single except clause.
    """
    pass


class AuthorizationError(FounderHubError):
    """Base class for third-party authorization failures."""

    code = "authorization_failed"
    default_message = "Failed to connect the account. Please try again."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ConfigurationError(AuthorizationError):
    """Raised when the administrator has not configured a provider.

    Not retryable by the end user.
    """

    code = "configuration"
    default_message = "OAuth credentials not configured. Please contact an administrator."


class PopupBlockedError(AuthorizationError):
    """Raised when the authorization window could not be opened."""

    code = "popup_blocked"
    default_message = "Failed to open popup window. Please allow popups for this site."


class AuthorizationDeniedError(AuthorizationError):
    """Raised when the provider reports an error, e.g. the user declined consent.

    Attributes:
        provider_error: The error string reported by the provider
    """

    code = "denied"

    def __init__(self, provider_error: str):
        self.provider_error = provider_error
        super().__init__(provider_error)


class AuthorizationCancelledError(AuthorizationError):
    """Raised when the user closes the popup before it reports back."""

    code = "cancelled"
    default_message = "Authentication cancelled"


class AuthorizationTimeoutError(AuthorizationError):
    """Raised when the popup does not report back in time."""

    code = "timeout"
    default_message = "Authentication timed out"


class TokenExchangeError(AuthorizationError):
    """Raised when exchanging the authorization code for tokens fails.

    Attributes:
        status_code: HTTP status returned by the token endpoint, if any
    """

    code = "token_exchange"
    default_message = "Failed to exchange authorization code for tokens"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class CredentialStoreError(FounderHubError):
    """Raised when a credential cannot be written to the user's profile."""
    pass


class SecretDecryptionError(FounderHubError):
    """Raised when a stored secret cannot be decrypted with the current key."""
    pass
