"""Tests for the credential record and related models."""

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from teams_mcp.auth.models import (
    AuthStatus,
    CredentialRecord,
    DeviceCodeResponse,
    TokenResponse,
    UserIdentity,
)


class TestCredentialRecord:
    """Test cases for CredentialRecord."""

    def test_from_token_response_sets_expiry_from_now(self, now: datetime) -> None:
        token = TokenResponse(
            access_token="at", refresh_token="rt", expires_in=3599
        )

        record = CredentialRecord.from_token_response(token, "client", now)

        assert record.authenticated is True
        assert record.client_id == "client"
        assert record.issued_at == now
        assert record.expires_at == now + timedelta(seconds=3599)
        assert record.access_token.get_secret_value() == "at"
        assert record.refresh_token is not None
        assert record.refresh_token.get_secret_value() == "rt"

    def test_from_token_response_without_refresh_token(self, now: datetime) -> None:
        token = TokenResponse(access_token="at", expires_in=60)

        record = CredentialRecord.from_token_response(token, "client", now)

        assert record.refresh_token is None

    def test_to_storage_uses_camel_case_keys_and_real_tokens(
        self, make_record
    ) -> None:
        record = make_record(access_token="secret-access", refresh_token="secret-refresh")

        data = record.to_storage()

        assert set(data) == {
            "clientId",
            "authenticated",
            "timestamp",
            "expiresAt",
            "accessToken",
            "refreshToken",
        }
        assert data["accessToken"] == "secret-access"
        assert data["refreshToken"] == "secret-refresh"
        assert data["authenticated"] is True

    def test_storage_document_parses_back(self, make_record) -> None:
        record = make_record()

        restored = CredentialRecord.model_validate(record.to_storage())

        assert restored.expires_at == record.expires_at
        assert restored.access_token.get_secret_value() == (
            record.access_token.get_secret_value()
        )

    def test_naive_timestamps_are_utc(self) -> None:
        record = CredentialRecord.model_validate(
            {
                "clientId": "c",
                "authenticated": True,
                "timestamp": "2025-01-15T12:00:00",
                "expiresAt": "2025-01-15T13:00:00",
                "accessToken": "at",
            }
        )

        assert record.expires_at == datetime(2025, 1, 15, 13, tzinfo=UTC)

    def test_empty_refresh_token_is_none(self) -> None:
        record = CredentialRecord.model_validate(
            {
                "clientId": "c",
                "authenticated": True,
                "timestamp": "2025-01-15T12:00:00Z",
                "expiresAt": "2025-01-15T13:00:00Z",
                "accessToken": "at",
                "refreshToken": "",
            }
        )

        assert record.refresh_token is None

    def test_missing_access_token_is_invalid(self) -> None:
        with pytest.raises(ValidationError):
            CredentialRecord.model_validate(
                {
                    "clientId": "c",
                    "authenticated": True,
                    "timestamp": "2025-01-15T12:00:00Z",
                    "expiresAt": "2025-01-15T13:00:00Z",
                }
            )

    @pytest.mark.parametrize(
        ("expires_in", "expected"),
        [
            (3600, False),
            (301, False),
            (300, True),
            (299, True),
            (-10, True),
        ],
    )
    def test_needs_refresh_at_margin(
        self, make_record, now: datetime, expires_in: int, expected: bool
    ) -> None:
        record = make_record(expires_in=expires_in)

        assert record.needs_refresh(now, timedelta(minutes=5)) is expected

    def test_repr_masks_tokens(self, make_record) -> None:
        record = make_record(
            access_token="a" * 40 + "SECRETMIDDLE" + "b" * 40,
            refresh_token="short",
        )

        text = repr(record)

        assert "SECRETMIDDLE" not in text
        assert "short" not in text
        assert "aaaaaaaa...bbbbbbbb" in text


class TestResponseModels:
    """Test cases for authorization server response models."""

    def test_device_code_interval_defaults_to_five(self) -> None:
        response = DeviceCodeResponse.model_validate(
            {
                "device_code": "dc",
                "user_code": "ABCD-EFGH",
                "verification_uri": "https://microsoft.com/devicelogin",
                "expires_in": 900,
            }
        )

        assert response.interval == 5

    def test_user_identity_reads_graph_keys(self) -> None:
        identity = UserIdentity.model_validate(
            {
                "id": "1",
                "displayName": "Ada Lovelace",
                "userPrincipalName": "ada@contoso.com",
                "mail": "ignored@contoso.com",
            }
        )

        assert identity.display_name == "Ada Lovelace"
        assert identity.user_principal_name == "ada@contoso.com"

    def test_auth_status_serializes_with_aliases(self) -> None:
        status = AuthStatus(is_authenticated=False)

        assert status.model_dump(by_alias=True)["isAuthenticated"] is False

    @pytest.mark.parametrize("expires_in", [0, -1, 10**12])
    def test_token_lifetime_out_of_range_is_rejected(self, expires_in: int) -> None:
        with pytest.raises(ValidationError):
            TokenResponse.model_validate(
                {"access_token": "at", "expires_in": expires_in}
            )
