"""Custom exceptions for the credential lifecycle."""

from enum import Enum


REAUTHENTICATE_HINT = "Please run: teams-mcp authenticate"


class AuthError(Exception):
    """Base exception for all authentication-related errors."""

    pass


# ==================== Credential storage ====================


class CredentialsError(AuthError):
    """Base exception for credential storage errors."""

    pass


class CredentialsInvalidError(CredentialsError):
    """Raised when the stored credential document cannot be parsed."""

    pass


class CredentialsStorageError(CredentialsError):
    """Raised when there's an error reading or writing credentials."""

    pass


# ==================== Device authorization flow ====================


class DeviceFlowError(AuthError):
    """Base exception for device authorization flow failures."""

    pass


class AuthorizationServerError(DeviceFlowError):
    """Raised when the device-code request is rejected or unreachable."""

    def __init__(
        self, message: str, status_code: int | None = None, body: str = ""
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class PollingTerminalError(DeviceFlowError):
    """Raised when token polling ends with a non-retryable error code."""

    def __init__(self, error_code: str, description: str | None = None) -> None:
        if error_code == "authorization_declined":
            message = "User declined the authorization request"
        elif error_code == "expired_token":
            message = "Device code expired. Please try again."
        else:
            message = f"Authentication failed: {error_code} - {description or 'no description'}"
        super().__init__(message)
        self.error_code = error_code
        self.description = description


class PollingTimeoutError(DeviceFlowError):
    """Raised when the polling attempt cap is exceeded."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Authentication timed out after {attempts} polling attempts")
        self.attempts = attempts


# ==================== Refresh ====================


class RefreshFailureReason(str, Enum):
    """Why a refresh attempt failed."""

    NO_REFRESH_CREDENTIAL = "no_refresh_credential"
    SERVER_REJECTED = "server_rejected"
    TRANSPORT = "transport"


class RefreshFailure(AuthError):
    """Base exception for refresh failures."""

    reason: RefreshFailureReason


class NoRefreshCredentialError(RefreshFailure):
    """Raised when the record holds no refresh token."""

    reason = RefreshFailureReason.NO_REFRESH_CREDENTIAL

    def __init__(self) -> None:
        super().__init__("No refresh token available")


class RefreshRejectedError(RefreshFailure):
    """Raised when the token endpoint rejects the refresh token."""

    reason = RefreshFailureReason.SERVER_REJECTED

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"Token refresh failed: {status_code} {body}")
        self.status_code = status_code
        self.body = body


class RefreshTransportError(RefreshFailure):
    """Raised when the token endpoint cannot be reached."""

    reason = RefreshFailureReason.TRANSPORT

    def __init__(self, cause: Exception) -> None:
        super().__init__(f"Network error during token refresh: {cause}")
        self.cause = cause


# ==================== Provider ====================


class NotAuthenticatedError(AuthError):
    """Raised when no usable access token exists."""

    def __init__(self, message: str = "Not authenticated.") -> None:
        super().__init__(f"{message} {REAUTHENTICATE_HINT}")
