"""Process-wide wiring of the credential lifecycle and the Graph client."""

from datetime import timedelta
from functools import partial
from typing import Any

import httpx

from teams_mcp.auth.models import AuthStatus
from teams_mcp.auth.oauth.base import create_http_client
from teams_mcp.auth.oauth.device_flow import DeviceCodeFlow
from teams_mcp.auth.oauth.refresh import TokenRefresher
from teams_mcp.auth.provider import CredentialProvider
from teams_mcp.auth.storage.json_file import JsonFileCredentialStore
from teams_mcp.config.settings import Settings
from teams_mcp.core.logging import get_logger
from teams_mcp.graph.client import GraphClient, fetch_identity


logger = get_logger(__name__)


class GraphService:
    """Owns the credential store, provider and Graph client for one process.

    Construct once at startup and pass to every consumer. Closing the service
    closes the shared HTTP client.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings
        self._owns_http_client = http_client is None
        self.http_client = http_client or create_http_client(
            settings.auth.request_timeout
        )

        self.storage = JsonFileCredentialStore(settings.auth.credentials_path)
        self.refresher = TokenRefresher(
            settings.auth, self.storage, http_client=self.http_client
        )
        self.provider = CredentialProvider(
            storage=self.storage,
            refresher=self.refresher,
            identity_check=partial(
                fetch_identity, self.http_client, settings.graph.base_url
            ),
            refresh_margin=timedelta(seconds=settings.auth.refresh_margin_seconds),
        )
        self.graph = GraphClient(
            token_source=self.provider.get_access_token,
            base_url=settings.graph.base_url,
            http_client=self.http_client,
            timeout=settings.graph.timeout,
        )

    def device_flow(self) -> DeviceCodeFlow:
        """Create a device flow client sharing this service's store and HTTP client."""
        return DeviceCodeFlow(
            self.settings.auth, self.storage, http_client=self.http_client
        )

    async def get_auth_status(self) -> AuthStatus:
        return await self.provider.get_status()

    async def close(self) -> None:
        if self._owns_http_client:
            await self.http_client.aclose()
        logger.debug("graph_service_closed", category="graph")

    async def __aenter__(self) -> "GraphService":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
