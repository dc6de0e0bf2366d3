"""Tests for the device authorization flow."""

from collections.abc import Callable
from datetime import timedelta
from urllib.parse import parse_qs

import httpx
import pytest

from teams_mcp.auth.exceptions import (
    AuthorizationServerError,
    DeviceFlowError,
    PollingTerminalError,
    PollingTimeoutError,
)
from teams_mcp.auth.oauth.device_flow import DEVICE_CODE_GRANT_TYPE, DeviceCodeFlow
from teams_mcp.config.settings import AuthSettings


DEVICE_CODE_BODY = {
    "device_code": "device-code-123",
    "user_code": "ABCD-EFGH",
    "verification_uri": "https://microsoft.com/devicelogin",
    "expires_in": 900,
    "interval": 5,
    "message": "To sign in, use a web browser...",
}

TOKEN_BODY = {
    "access_token": "new-access-token",
    "refresh_token": "new-refresh-token",
    "expires_in": 3600,
    "token_type": "Bearer",
}


def pending() -> httpx.Response:
    return httpx.Response(400, json={"error": "authorization_pending"})


def slow_down() -> httpx.Response:
    return httpx.Response(400, json={"error": "slow_down"})


class TokenEndpoint:
    """Mock transport handler replaying scripted token endpoint responses."""

    def __init__(self, token_responses: list[httpx.Response]):
        self.token_responses = list(token_responses)
        self.device_code_response = httpx.Response(200, json=DEVICE_CODE_BODY)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/devicecode"):
            return self.device_code_response
        return self.token_responses.pop(0)

    @property
    def token_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/token")]


@pytest.fixture
def make_flow(auth_settings: AuthSettings, memory_storage, sleeper, clock):
    def factory(
        endpoint: TokenEndpoint, settings: AuthSettings | None = None
    ) -> DeviceCodeFlow:
        client = httpx.AsyncClient(transport=httpx.MockTransport(endpoint))
        return DeviceCodeFlow(
            settings or auth_settings,
            memory_storage,
            http_client=client,
            clock=clock,
            sleep=sleeper,
        )

    return factory


class TestRequestDeviceCode:
    """Test cases for the device code request."""

    async def test_posts_client_id_and_scopes(self, make_flow: Callable) -> None:
        endpoint = TokenEndpoint([])
        flow = make_flow(endpoint)

        response = await flow.request_device_code()

        assert response.user_code == "ABCD-EFGH"
        request = endpoint.requests[0]
        assert str(request.url) == "https://login.test/common/oauth2/v2.0/devicecode"
        form = parse_qs(request.content.decode())
        assert form["client_id"] == [flow.settings.client_id]
        assert form["scope"] == ["User.Read offline_access"]

    async def test_error_status_raises_authorization_server_error(
        self, make_flow: Callable
    ) -> None:
        endpoint = TokenEndpoint([])
        endpoint.device_code_response = httpx.Response(
            400, json={"error": "invalid_client"}
        )
        flow = make_flow(endpoint)

        with pytest.raises(AuthorizationServerError) as exc_info:
            await flow.request_device_code()

        assert exc_info.value.status_code == 400
        assert "invalid_client" in exc_info.value.body

    async def test_network_error_raises_authorization_server_error(
        self, auth_settings: AuthSettings, memory_storage, sleeper
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            flow = DeviceCodeFlow(
                auth_settings, memory_storage, http_client=client, sleep=sleeper
            )
            with pytest.raises(AuthorizationServerError):
                await flow.request_device_code()


class TestPollForToken:
    """Test cases for token polling."""

    async def test_sleeps_before_every_attempt(
        self, make_flow: Callable, sleeper
    ) -> None:
        endpoint = TokenEndpoint(
            [pending(), pending(), httpx.Response(200, json=TOKEN_BODY)]
        )
        flow = make_flow(endpoint)

        token = await flow.poll_for_token("device-code-123", 5)

        assert token.access_token == "new-access-token"
        assert sleeper.calls == [5, 5, 5]
        form = parse_qs(endpoint.token_requests[0].content.decode())
        assert form["grant_type"] == [DEVICE_CODE_GRANT_TYPE]
        assert form["device_code"] == ["device-code-123"]

    async def test_slow_down_grows_interval(self, make_flow: Callable, sleeper) -> None:
        endpoint = TokenEndpoint(
            [slow_down(), slow_down(), httpx.Response(200, json=TOKEN_BODY)]
        )
        flow = make_flow(endpoint)

        await flow.poll_for_token("device-code-123", 5)

        assert sleeper.calls == [5, 10, 15]

    async def test_pending_until_cap_times_out(
        self, make_flow: Callable, auth_settings: AuthSettings, sleeper
    ) -> None:
        settings = auth_settings.model_copy(update={"poll_max_attempts": 4})
        endpoint = TokenEndpoint([pending() for _ in range(10)])
        flow = make_flow(endpoint, settings)

        with pytest.raises(PollingTimeoutError) as exc_info:
            await flow.poll_for_token("device-code-123", 5)

        assert exc_info.value.attempts == 4
        assert len(endpoint.token_requests) == 4
        assert len(sleeper.calls) == 4

    async def test_default_cap_is_one_hundred(
        self, make_flow: Callable, sleeper
    ) -> None:
        endpoint = TokenEndpoint([pending() for _ in range(100)])
        flow = make_flow(endpoint)

        with pytest.raises(PollingTimeoutError):
            await flow.poll_for_token("device-code-123", 5)

        assert len(endpoint.token_requests) == 100

    @pytest.mark.parametrize(
        ("error_code", "message"),
        [
            ("authorization_declined", "User declined the authorization request"),
            ("expired_token", "Device code expired. Please try again."),
            ("bad_verification_code", "Authentication failed: bad_verification_code"),
        ],
    )
    async def test_terminal_errors_stop_polling(
        self, make_flow: Callable, error_code: str, message: str
    ) -> None:
        endpoint = TokenEndpoint(
            [
                pending(),
                httpx.Response(
                    400,
                    json={"error": error_code, "error_description": "details"},
                ),
                httpx.Response(200, json=TOKEN_BODY),
            ]
        )
        flow = make_flow(endpoint)

        with pytest.raises(PollingTerminalError) as exc_info:
            await flow.poll_for_token("device-code-123", 5)

        assert exc_info.value.error_code == error_code
        assert message in str(exc_info.value)
        assert len(endpoint.token_requests) == 2

    async def test_unparseable_error_body_is_terminal(self, make_flow: Callable) -> None:
        endpoint = TokenEndpoint([httpx.Response(500, text="Internal Server Error")])
        flow = make_flow(endpoint)

        with pytest.raises(PollingTerminalError) as exc_info:
            await flow.poll_for_token("device-code-123", 5)

        assert exc_info.value.error_code == "http_500"

    async def test_malformed_success_body_raises(self, make_flow: Callable) -> None:
        endpoint = TokenEndpoint([httpx.Response(200, json={"token_type": "Bearer"})])
        flow = make_flow(endpoint)

        with pytest.raises(DeviceFlowError):
            await flow.poll_for_token("device-code-123", 5)

    async def test_unbounded_token_lifetime_raises(self, make_flow: Callable) -> None:
        body = {**TOKEN_BODY, "expires_in": 10**12}
        endpoint = TokenEndpoint([httpx.Response(200, json=body)])
        flow = make_flow(endpoint)

        with pytest.raises(DeviceFlowError) as exc_info:
            await flow.poll_for_token("device-code-123", 5)

        assert not isinstance(exc_info.value, PollingTerminalError)
        assert "Invalid token response" in str(exc_info.value)


class TestLogin:
    """Test cases for the complete device flow."""

    async def test_login_persists_record_once(
        self, make_flow: Callable, memory_storage, sleeper, now
    ) -> None:
        endpoint = TokenEndpoint(
            [slow_down(), pending(), slow_down(), httpx.Response(200, json=TOKEN_BODY)]
        )
        flow = make_flow(endpoint)
        shown = []

        record = await flow.login(on_device_code=shown.append)

        assert shown[0].user_code == "ABCD-EFGH"
        assert sleeper.calls == [5, 10, 10, 15]
        assert memory_storage.save_count == 1
        assert memory_storage.record is record
        assert record.authenticated is True
        assert record.expires_at == now + timedelta(seconds=3600)
        assert record.refresh_token is not None
        assert record.refresh_token.get_secret_value() == "new-refresh-token"

    async def test_login_opens_verification_uri(self, make_flow: Callable) -> None:
        endpoint = TokenEndpoint([httpx.Response(200, json=TOKEN_BODY)])
        flow = make_flow(endpoint)
        opened = []

        class RecordingLauncher:
            def open(self, url: str) -> bool:
                opened.append(url)
                return True

        await flow.login(launcher=RecordingLauncher())

        assert opened == ["https://microsoft.com/devicelogin"]

    async def test_failed_login_saves_nothing(
        self, make_flow: Callable, memory_storage
    ) -> None:
        endpoint = TokenEndpoint(
            [httpx.Response(400, json={"error": "authorization_declined"})]
        )
        flow = make_flow(endpoint)

        with pytest.raises(PollingTerminalError):
            await flow.login()

        assert memory_storage.save_count == 0
        assert memory_storage.record is None
