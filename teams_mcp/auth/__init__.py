"""Credential lifecycle: device flow login, storage, refresh and token access."""

from .exceptions import (
    AuthError,
    AuthorizationServerError,
    CredentialsError,
    CredentialsInvalidError,
    CredentialsStorageError,
    DeviceFlowError,
    NoRefreshCredentialError,
    NotAuthenticatedError,
    PollingTerminalError,
    PollingTimeoutError,
    RefreshFailure,
    RefreshFailureReason,
    RefreshRejectedError,
    RefreshTransportError,
)
from .models import AuthStatus, CredentialRecord, DeviceCodeResponse, UserIdentity
from .provider import CredentialProvider, ProviderState


__all__ = [
    "AuthError",
    "AuthStatus",
    "AuthorizationServerError",
    "CredentialProvider",
    "CredentialRecord",
    "CredentialsError",
    "CredentialsInvalidError",
    "CredentialsStorageError",
    "DeviceCodeResponse",
    "DeviceFlowError",
    "NoRefreshCredentialError",
    "NotAuthenticatedError",
    "PollingTerminalError",
    "PollingTimeoutError",
    "ProviderState",
    "RefreshFailure",
    "RefreshFailureReason",
    "RefreshRejectedError",
    "RefreshTransportError",
    "UserIdentity",
]
