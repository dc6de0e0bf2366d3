"""Refresh-token grant against the Microsoft identity platform."""

import httpx

from teams_mcp.auth.exceptions import (
    CredentialsStorageError,
    NoRefreshCredentialError,
    RefreshRejectedError,
    RefreshTransportError,
)
from teams_mcp.auth.models import CredentialRecord, TokenResponse
from teams_mcp.auth.oauth.base import BaseOAuthClient
from teams_mcp.core.logging import get_logger


logger = get_logger(__name__)


class TokenRefresher(BaseOAuthClient):
    """Exchange a refresh token for a new access/refresh token pair."""

    async def refresh(self, record: CredentialRecord) -> CredentialRecord:
        """Refresh ``record`` and persist the result.

        Microsoft rotates refresh tokens, so the returned refresh token always
        replaces the stored one. If the server omits it, the record is saved
        without a refresh token rather than reusing the old value.

        Raises:
            NoRefreshCredentialError: ``record`` has no refresh token
            RefreshRejectedError: The token endpoint answered with an error or
                an unreadable body
            RefreshTransportError: The token endpoint could not be reached
        """
        if record.refresh_token is None:
            logger.warning("token_refresh_skipped", reason="no_refresh_token", category="auth")
            raise NoRefreshCredentialError()

        form = {
            "grant_type": "refresh_token",
            "client_id": self.settings.client_id,
            "refresh_token": record.refresh_token.get_secret_value(),
            "scope": self.scope,
        }

        logger.info(
            "token_refresh_start",
            expires_at=record.expires_at.isoformat(),
            category="auth",
        )
        try:
            response = await self._post_form(self.settings.token_url, form)
        except httpx.HTTPError as e:
            logger.error(
                "token_refresh_transport_error",
                error=str(e),
                error_type=type(e).__name__,
                category="auth",
            )
            raise RefreshTransportError(e) from e

        if not response.is_success:
            logger.error(
                "token_refresh_rejected",
                status_code=response.status_code,
                error_detail=self._extract_error_detail(response),
                category="auth",
            )
            raise RefreshRejectedError(response.status_code, response.text)

        try:
            token = TokenResponse.model_validate(response.json())
        except ValueError as e:
            logger.error(
                "token_refresh_invalid_response",
                status_code=response.status_code,
                error=str(e),
                category="auth",
            )
            raise RefreshRejectedError(response.status_code, response.text) from e

        now = self.clock()
        refreshed = CredentialRecord.from_token_response(
            token, client_id=record.client_id, now=now
        )
        try:
            await self.storage.save(refreshed)
        except CredentialsStorageError as e:
            # The server has rotated the refresh token; keep the new pair in memory.
            logger.error(
                "refreshed_credentials_persist_failed",
                location=self.storage.get_location(),
                error=str(e),
                category="auth",
            )

        logger.info(
            "token_refresh_succeeded",
            expires_at=refreshed.expires_at.isoformat(),
            rotated_refresh_token=token.refresh_token is not None,
            category="auth",
        )
        return refreshed
