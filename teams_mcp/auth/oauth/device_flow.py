"""OAuth 2.0 device authorization grant (RFC 8628) against Microsoft Entra ID."""

from collections.abc import Callable

import httpx

from teams_mcp.auth.exceptions import (
    AuthorizationServerError,
    DeviceFlowError,
    PollingTerminalError,
    PollingTimeoutError,
)
from teams_mcp.auth.launcher import Launcher
from teams_mcp.auth.models import (
    CredentialRecord,
    DeviceCodeResponse,
    OAuthErrorResponse,
    TokenResponse,
)
from teams_mcp.auth.oauth.base import BaseOAuthClient
from teams_mcp.auth.storage.base import TokenStorage
from teams_mcp.config.settings import AuthSettings
from teams_mcp.core.logging import get_logger
from teams_mcp.utils.clock import Clock, Sleeper, default_sleep, utc_now


logger = get_logger(__name__)

DEVICE_CODE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"

AUTHORIZATION_PENDING = "authorization_pending"
SLOW_DOWN = "slow_down"


class DeviceCodeFlow(BaseOAuthClient):
    """Obtain the first credential record through the device code flow.

    The user opens the verification URI on any device and enters the user
    code while this client polls the token endpoint. Every wait goes through
    the injected ``sleep`` so the loop is cancellable and testable.
    """

    def __init__(
        self,
        settings: AuthSettings,
        storage: TokenStorage,
        http_client: httpx.AsyncClient | None = None,
        clock: Clock = utc_now,
        sleep: Sleeper | None = None,
    ):
        super().__init__(settings, storage, http_client=http_client, clock=clock)
        self._sleep = sleep if sleep is not None else default_sleep

    async def request_device_code(self) -> DeviceCodeResponse:
        """Ask the authorization server for a device code and user code.

        Raises:
            AuthorizationServerError: On a non-success status, an unreachable
                server, or an unreadable response body
        """
        url = self.settings.device_code_url
        logger.debug("device_code_request_start", url=url, category="auth")

        try:
            response = await self._post_form(
                url, {"client_id": self.settings.client_id, "scope": self.scope}
            )
        except httpx.HTTPError as e:
            logger.error("device_code_request_failed", error=str(e), category="auth")
            raise AuthorizationServerError(f"Failed to get device code: {e}") from e

        if not response.is_success:
            logger.error(
                "device_code_request_rejected",
                status_code=response.status_code,
                error_detail=self._extract_error_detail(response),
                category="auth",
            )
            raise AuthorizationServerError(
                f"Failed to get device code: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            device_code = DeviceCodeResponse.model_validate(response.json())
        except ValueError as e:
            raise AuthorizationServerError(
                f"Invalid device code response: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        logger.info(
            "device_code_issued",
            verification_uri=device_code.verification_uri,
            expires_in=device_code.expires_in,
            interval=device_code.interval,
            category="auth",
        )
        return device_code

    async def poll_for_token(self, device_code: str, interval: int) -> TokenResponse:
        """Poll the token endpoint until the user completes or aborts sign-in.

        Args:
            device_code: Device code from :meth:`request_device_code`
            interval: Seconds to wait before each attempt

        Raises:
            PollingTerminalError: The server declined, expired, or returned
                an unrecognized error code
            PollingTimeoutError: The attempt cap was reached
            DeviceFlowError: The token endpoint could not be reached or
                returned an unreadable success body
        """
        max_attempts = self.settings.poll_max_attempts
        form = {
            "grant_type": DEVICE_CODE_GRANT_TYPE,
            "client_id": self.settings.client_id,
            "device_code": device_code,
        }

        for attempt in range(1, max_attempts + 1):
            await self._sleep(interval)

            try:
                response = await self._post_form(self.settings.token_url, form)
            except httpx.HTTPError as e:
                logger.error(
                    "token_poll_transport_error",
                    attempt=attempt,
                    error=str(e),
                    category="auth",
                )
                raise DeviceFlowError(
                    f"Network error while polling for token: {e}"
                ) from e

            if response.is_success:
                try:
                    token = TokenResponse.model_validate(response.json())
                except ValueError as e:
                    raise DeviceFlowError(f"Invalid token response: {e}") from e
                logger.info(
                    "device_flow_authorized",
                    attempts=attempt,
                    expires_in=token.expires_in,
                    has_refresh_token=bool(token.refresh_token),
                    category="auth",
                )
                return token

            error = self._parse_error(response)

            if error.error == AUTHORIZATION_PENDING:
                logger.debug(
                    "authorization_pending", attempt=attempt, interval=interval
                )
                continue

            if error.error == SLOW_DOWN:
                interval += self.settings.slow_down_increment
                logger.info(
                    "token_poll_slow_down",
                    attempt=attempt,
                    interval=interval,
                    category="auth",
                )
                continue

            logger.warning(
                "device_flow_terminated",
                error_code=error.error,
                error_description=error.error_description,
                attempt=attempt,
                category="auth",
            )
            raise PollingTerminalError(error.error, error.error_description)

        logger.warning("device_flow_timed_out", attempts=max_attempts, category="auth")
        raise PollingTimeoutError(max_attempts)

    async def login(
        self,
        launcher: Launcher | None = None,
        on_device_code: Callable[[DeviceCodeResponse], None] | None = None,
    ) -> CredentialRecord:
        """Run the full flow and persist the resulting record.

        Args:
            launcher: Opens the verification URI, if given
            on_device_code: Called with the device code so the caller can show
                the verification URI and user code

        Returns:
            The authenticated record that was saved to storage
        """
        device_code = await self.request_device_code()

        if on_device_code is not None:
            on_device_code(device_code)
        if launcher is not None:
            launcher.open(device_code.verification_uri)

        interval = device_code.interval or self.settings.default_poll_interval
        token = await self.poll_for_token(device_code.device_code, interval)

        record = CredentialRecord.from_token_response(
            token, client_id=self.settings.client_id, now=self.clock()
        )
        await self.storage.save(record)

        logger.info(
            "device_flow_credentials_saved",
            location=self.storage.get_location(),
            expires_at=record.expires_at.isoformat(),
            category="auth",
        )
        return record

    def _parse_error(self, response: httpx.Response) -> OAuthErrorResponse:
        try:
            return OAuthErrorResponse.model_validate(response.json())
        except ValueError:
            return OAuthErrorResponse(
                error=f"http_{response.status_code}",
                error_description=response.text[:200] or None,
            )
