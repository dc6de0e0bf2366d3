"""MCP stdio server exposing the Microsoft Graph tools."""

from datetime import datetime

from mcp.server.fastmcp import FastMCP

from teams_mcp.auth.exceptions import REAUTHENTICATE_HINT
from teams_mcp.auth.models import AuthStatus
from teams_mcp.config.settings import Settings
from teams_mcp.core.logging import get_logger
from teams_mcp.services.graph import GraphService
from teams_mcp.utils.clock import utc_now


logger = get_logger(__name__)

AUTH_STATUS_DESCRIPTION = (
    "Check the authentication status of the Microsoft Graph connection. "
    "Returns whether the user is authenticated and shows their basic profile "
    "information."
)


def format_timestamp(value: datetime) -> str:
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")


def format_auth_status(status: AuthStatus, now: datetime | None = None) -> str:
    """Render an :class:`AuthStatus` as the text returned by ``auth_status``."""
    if not status.is_authenticated:
        return f"❌ Not authenticated. {REAUTHENTICATE_HINT}"

    lines = [
        f"✅ Authenticated as {status.display_name or 'Unknown User'} "
        f"({status.user_principal_name or 'No email available'})"
    ]

    if status.expires_at is not None:
        remaining = status.expires_at - (now or utc_now())
        seconds = int(remaining.total_seconds())
        if seconds > 0:
            hours, rest = divmod(seconds, 3600)
            minutes = rest // 60
            lines.append(
                f"⏰ Access token expires in {hours}h {minutes}m "
                f"({format_timestamp(status.expires_at)})"
            )
            lines.append("🔄 Token will be automatically refreshed when needed")
        else:
            lines.append(
                f"⚠️ Access token expired at {format_timestamp(status.expires_at)}"
            )
            lines.append("🔄 Token will be refreshed on next API call")

    return "\n".join(lines)


def register_auth_tools(server: FastMCP, service: GraphService) -> None:
    """Register authentication tools on ``server``."""

    @server.tool(name="auth_status", description=AUTH_STATUS_DESCRIPTION)
    async def auth_status() -> str:
        status = await service.get_auth_status()
        logger.info(
            "auth_status_checked",
            authenticated=status.is_authenticated,
            category="auth",
        )
        return format_auth_status(status)


def create_server(service: GraphService) -> FastMCP:
    """Create the MCP server with every tool registered."""
    server = FastMCP(service.settings.server.name)
    register_auth_tools(server, service)
    return server


async def run_stdio_server(settings: Settings) -> None:
    """Serve MCP over stdio until the client disconnects."""
    async with GraphService(settings) as service:
        server = create_server(service)
        logger.info(
            "mcp_server_started",
            name=settings.server.name,
            credentials=service.storage.get_location(),
            category="server",
        )
        await server.run_stdio_async()
