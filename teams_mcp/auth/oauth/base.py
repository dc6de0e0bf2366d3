"""Shared HTTP plumbing for the Microsoft identity platform endpoints."""

import os
from pathlib import Path
from typing import Any

import httpx

from teams_mcp.auth.storage.base import TokenStorage
from teams_mcp.config.settings import AuthSettings
from teams_mcp.core.logging import get_logger
from teams_mcp.utils.clock import Clock, utc_now


logger = get_logger(__name__)


def get_proxy_url() -> str | None:
    """Get proxy URL from environment variables.

    HTTPS_PROXY wins over ALL_PROXY, which wins over HTTP_PROXY.
    """
    https_proxy = os.environ.get("HTTPS_PROXY") or os.environ.get("https_proxy")
    all_proxy = os.environ.get("ALL_PROXY") or os.environ.get("all_proxy")
    http_proxy = os.environ.get("HTTP_PROXY") or os.environ.get("http_proxy")
    return https_proxy or all_proxy or http_proxy


def get_ssl_verify() -> str | bool:
    """Get SSL verification setting from environment variables.

    Returns:
        Path to a CA bundle when REQUESTS_CA_BUNDLE or SSL_CERT_FILE points
        to an existing file, otherwise True
    """
    ca_bundle = os.environ.get("REQUESTS_CA_BUNDLE") or os.environ.get(
        "SSL_CERT_FILE"
    )
    if ca_bundle and Path(ca_bundle).exists():
        logger.debug("custom_ca_bundle", path=ca_bundle, category="auth")
        return ca_bundle
    return True


def create_http_client(timeout: float) -> httpx.AsyncClient:
    """Create an httpx client that honours proxy and CA bundle environment."""
    return httpx.AsyncClient(
        proxy=get_proxy_url(),
        verify=get_ssl_verify(),
        timeout=timeout,
    )


class BaseOAuthClient:
    """Base class for clients talking to the authorization server."""

    def __init__(
        self,
        settings: AuthSettings,
        storage: TokenStorage,
        http_client: httpx.AsyncClient | None = None,
        clock: Clock = utc_now,
    ):
        """Initialize OAuth client.

        Args:
            settings: Authority, tenant, client id and scope configuration
            storage: Credential store written after a successful exchange
            http_client: HTTP client for making requests (creates one if not provided)
            clock: Source of the current time
        """
        self.settings = settings
        self.storage = storage
        self.clock = clock
        self._http_client = http_client
        self._owns_http_client = http_client is None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating one if needed."""
        if self._http_client is None:
            self._http_client = create_http_client(self.settings.request_timeout)
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "BaseOAuthClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @property
    def scope(self) -> str:
        """Space-separated scope string sent to the authorization server."""
        return " ".join(self.settings.scopes)

    async def _post_form(self, url: str, data: dict[str, str]) -> httpx.Response:
        """POST a form-encoded body and return the raw response."""
        return await self.http_client.post(
            url,
            data=data,
            headers={"Accept": "application/json"},
            timeout=self.settings.request_timeout,
        )

    @staticmethod
    def _extract_error_detail(response: httpx.Response) -> str:
        """Extract a human-readable error detail from a response body."""
        try:
            error_data = response.json()
        except ValueError:
            return response.text[:200]
        if not isinstance(error_data, dict):
            return response.text[:200]
        return str(
            error_data.get("error_description", error_data.get("error", response.text))
        )
