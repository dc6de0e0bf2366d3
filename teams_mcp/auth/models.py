"""Data models for authentication."""

from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_serializer,
    field_validator,
)


# Upper bound on a token lifetime accepted from the token endpoint
MAX_TOKEN_LIFETIME_SECONDS = 366 * 24 * 3600


def _mask(value: str) -> str:
    return f"{value[:8]}...{value[-8:]}" if len(value) > 16 else "***"


class CredentialRecord(BaseModel):
    """The persisted credential pair and its metadata.

    Serialized with the camelCase keys of the on-disk document. Unknown keys
    are ignored so newer files stay readable.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    client_id: str = Field(..., alias="clientId")
    authenticated: bool
    issued_at: datetime = Field(..., alias="timestamp")
    expires_at: datetime = Field(..., alias="expiresAt")
    access_token: SecretStr = Field(..., alias="accessToken")
    refresh_token: SecretStr | None = Field(None, alias="refreshToken")

    @field_validator("issued_at", "expires_at")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @field_validator("refresh_token", mode="before")
    @classmethod
    def empty_refresh_token(cls, v: Any) -> Any:
        """An empty refresh token is the same as none."""
        if v == "":
            return None
        return v

    @field_serializer("access_token", "refresh_token", when_used="json")
    def reveal_token(self, v: SecretStr | None) -> str | None:
        """Write real token values when serializing to the store."""
        return v.get_secret_value() if v is not None else None

    @classmethod
    def from_token_response(
        cls, token: "TokenResponse", client_id: str, now: datetime
    ) -> "CredentialRecord":
        """Build an authenticated record from a token endpoint response."""
        return cls(
            client_id=client_id,
            authenticated=True,
            issued_at=now,
            expires_at=now + timedelta(seconds=token.expires_in),
            access_token=SecretStr(token.access_token),
            refresh_token=SecretStr(token.refresh_token)
            if token.refresh_token
            else None,
        )

    def needs_refresh(self, now: datetime, margin: timedelta) -> bool:
        """Whether the access token expires at or before ``now + margin``."""
        return self.expires_at <= now + margin

    def to_storage(self) -> dict[str, Any]:
        """Serialize to the on-disk JSON document."""
        return self.model_dump(by_alias=True, mode="json")

    def __repr__(self) -> str:
        refresh = (
            _mask(self.refresh_token.get_secret_value())
            if self.refresh_token
            else "None"
        )
        return (
            f"CredentialRecord(client_id='{self.client_id}', "
            f"authenticated={self.authenticated}, "
            f"issued_at={self.issued_at.isoformat()}, "
            f"expires_at={self.expires_at.isoformat()}, "
            f"access_token='{_mask(self.access_token.get_secret_value())}', "
            f"refresh_token='{refresh}')"
        )


class DeviceCodeResponse(BaseModel):
    """Response of the device authorization endpoint."""

    model_config = ConfigDict(extra="ignore")

    device_code: str
    user_code: str
    verification_uri: str
    expires_in: int
    interval: int = 5
    message: str | None = None


class TokenResponse(BaseModel):
    """Successful token endpoint response."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str | None = None
    expires_in: int = Field(..., gt=0, le=MAX_TOKEN_LIFETIME_SECONDS)
    token_type: str = "Bearer"
    scope: str | None = None


class OAuthErrorResponse(BaseModel):
    """Error body returned by the token endpoint."""

    model_config = ConfigDict(extra="ignore")

    error: str
    error_description: str | None = None


class UserIdentity(BaseModel):
    """The signed-in user as reported by the Graph ``/me`` endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = None
    user_principal_name: str | None = Field(None, alias="userPrincipalName")
    display_name: str | None = Field(None, alias="displayName")


class AuthStatus(BaseModel):
    """Authentication status reported to tools and the CLI."""

    model_config = ConfigDict(populate_by_name=True)

    is_authenticated: bool = Field(..., alias="isAuthenticated")
    user_principal_name: str | None = Field(None, alias="userPrincipalName")
    display_name: str | None = Field(None, alias="displayName")
    expires_at: datetime | None = Field(None, alias="expiresAt")
