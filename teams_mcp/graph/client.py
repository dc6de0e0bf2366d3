"""Thin async client for Microsoft Graph.

Every request obtains its bearer token from a token source immediately before
it is sent; the client never stores tokens itself.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
from typing import Any

import httpx

from teams_mcp.auth.models import UserIdentity
from teams_mcp.core.logging import get_logger


logger = get_logger(__name__)

TokenSource = Callable[[], Awaitable[str]]


class GraphApiError(Exception):
    """Raised when a Graph request fails."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class BearerTokenAuth(httpx.Auth):
    """httpx auth hook that pulls a fresh bearer token for every request."""

    def __init__(self, token_source: TokenSource) -> None:
        self.token_source = token_source

    def sync_auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        raise RuntimeError("BearerTokenAuth requires an async httpx client")

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        token = await self.token_source()
        request.headers["Authorization"] = f"Bearer {token}"
        yield request


def _raise_for_graph_error(response: httpx.Response) -> None:
    if response.is_success:
        return
    try:
        detail = response.json().get("error", {}).get("message", response.text)
    except (ValueError, AttributeError):
        detail = response.text
    raise GraphApiError(
        f"Graph request {response.request.method} {response.request.url.path} "
        f"failed: {response.status_code} {detail}",
        status_code=response.status_code,
        body=response.text,
    )


async def fetch_identity(
    http_client: httpx.AsyncClient, base_url: str, access_token: str
) -> UserIdentity:
    """Fetch ``/me`` with an explicit token.

    Used by the credential provider to verify a token it has just handed out.

    Raises:
        GraphApiError: The request failed or returned an error status
    """
    try:
        response = await http_client.get(
            f"{base_url.rstrip('/')}/me",
            headers={"Authorization": f"Bearer {access_token}"},
        )
    except httpx.HTTPError as e:
        raise GraphApiError(f"Graph identity check failed: {e}") from e

    _raise_for_graph_error(response)
    return UserIdentity.model_validate(response.json())


class GraphClient:
    """Microsoft Graph client whose requests are authorized by a token source."""

    def __init__(
        self,
        token_source: TokenSource,
        base_url: str = "https://graph.microsoft.com/v1.0",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self._auth = BearerTokenAuth(token_source)
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._timeout = timeout

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def close(self) -> None:
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send an authorized request and return the decoded JSON body.

        Raises:
            NotAuthenticatedError: No valid token could be obtained
            GraphApiError: The request failed or returned an error status
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = await self.http_client.request(
                method,
                url,
                params=params,
                json=json,
                auth=self._auth,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            logger.error(
                "graph_request_failed",
                method=method,
                path=path,
                error=str(e),
                category="graph",
            )
            raise GraphApiError(f"Graph request {method} {path} failed: {e}") from e

        logger.debug(
            "graph_request_completed",
            method=method,
            path=path,
            status_code=response.status_code,
            category="graph",
        )
        _raise_for_graph_error(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def get_me(self) -> UserIdentity:
        """Return the signed-in user."""
        return UserIdentity.model_validate(await self.get("/me"))
