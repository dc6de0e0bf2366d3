"""Authentication and credential management commands."""

import asyncio
from collections.abc import Callable
from typing import Annotated

import typer
from rich.console import Console

from teams_mcp.auth.exceptions import (
    REAUTHENTICATE_HINT,
    CredentialsError,
    DeviceFlowError,
    NotAuthenticatedError,
)
from teams_mcp.auth.launcher import Launcher, NullLauncher, WebBrowserLauncher
from teams_mcp.auth.models import (
    CredentialRecord,
    DeviceCodeResponse,
    UserIdentity,
)
from teams_mcp.auth.storage.json_file import JsonFileCredentialStore
from teams_mcp.cli.helpers import bold, code, dim, get_rich_toolkit, link, load_settings
from teams_mcp.config.settings import Settings
from teams_mcp.core.logging import get_logger
from teams_mcp.graph.client import GraphApiError
from teams_mcp.server import format_timestamp
from teams_mcp.services.graph import GraphService
from teams_mcp.utils.clock import utc_now


console = Console()
logger = get_logger(__name__)


async def _authenticate(
    settings: Settings,
    launcher: Launcher,
    on_device_code: Callable[[DeviceCodeResponse], None],
) -> tuple[CredentialRecord, UserIdentity | None]:
    async with GraphService(settings) as service:
        record = await service.device_flow().login(
            launcher=launcher, on_device_code=on_device_code
        )
        await service.provider.reload()
        try:
            identity = await service.graph.get_me()
        except (GraphApiError, NotAuthenticatedError) as e:
            logger.warning("post_login_identity_failed", error=str(e), category="auth")
            identity = None
        return record, identity


def authenticate_command(
    ctx: typer.Context,
    no_browser: Annotated[
        bool,
        typer.Option("--no-browser", help="Don't open the verification page in a browser"),
    ] = False,
) -> None:
    """Sign in to Microsoft Graph with the device code flow.

    Examples:
        teams-mcp authenticate
        teams-mcp auth --no-browser
    """
    settings = load_settings(ctx, quiet=True)
    toolkit = get_rich_toolkit()

    toolkit.print("[bold cyan]Microsoft Graph Authentication[/bold cyan]", centered=True)
    toolkit.print_line()

    def show_device_code(device_code: DeviceCodeResponse) -> None:
        uri = device_code.verification_uri
        toolkit.print(
            f"Open {link(uri, uri)} and enter the code {bold(device_code.user_code)}",
            tag="auth",
        )
        if not no_browser:
            toolkit.print(dim("Opening the page in your browser..."))
        toolkit.print(dim("Waiting for you to complete sign-in (Ctrl+C to cancel)"))
        toolkit.print_line()

    launcher: Launcher = NullLauncher() if no_browser else WebBrowserLauncher()

    try:
        record, identity = asyncio.run(
            _authenticate(settings, launcher, show_device_code)
        )
    except KeyboardInterrupt:
        toolkit.print("Authentication cancelled by user", tag="warning")
        raise typer.Exit(1) from None
    except DeviceFlowError as e:
        toolkit.print(str(e), tag="error")
        raise typer.Exit(1) from e
    except CredentialsError as e:
        toolkit.print(f"Failed to save credentials: {e}", tag="error")
        raise typer.Exit(1) from e

    toolkit.print("Authentication successful!", tag="success")
    if identity is not None:
        console.print(
            f"  Signed in as: {identity.display_name or 'Unknown User'} "
            f"({identity.user_principal_name or 'No email available'})"
        )
    console.print(f"  Token expires: {format_timestamp(record.expires_at)}")
    console.print(f"  Stored at: {settings.auth.credentials_path}")


def check_command(ctx: typer.Context) -> None:
    """Show the stored credentials without contacting any server.

    Exits with status 1 when no usable credentials are stored.
    """
    settings = load_settings(ctx, quiet=True)
    toolkit = get_rich_toolkit()
    storage = JsonFileCredentialStore(settings.auth.credentials_path)

    toolkit.print("[bold cyan]Authentication Status[/bold cyan]", centered=True)
    toolkit.print_line()

    try:
        record = asyncio.run(storage.load())
    except CredentialsError as e:
        toolkit.print(f"Stored credentials are unreadable: {e}", tag="error")
        raise typer.Exit(1) from e

    if record is None or not record.authenticated:
        toolkit.print("No authentication found", tag="warning")
        console.print(REAUTHENTICATE_HINT)
        raise typer.Exit(1)

    toolkit.print("Authenticated", tag="success")
    console.print(f"  Authenticated on: {format_timestamp(record.issued_at)}")
    if record.expires_at > utc_now():
        console.print(f"  Token expires: {format_timestamp(record.expires_at)}")
    else:
        console.print(
            f"  Token expired at {format_timestamp(record.expires_at)}, "
            "will be refreshed automatically"
        )
    console.print(f"  Stored at: {storage.get_location()}")


async def _logout(settings: Settings) -> bool:
    async with GraphService(settings) as service:
        return await service.provider.logout()


def logout_command(ctx: typer.Context) -> None:
    """Remove stored credentials."""
    settings = load_settings(ctx, quiet=True)
    toolkit = get_rich_toolkit()

    try:
        removed = asyncio.run(_logout(settings))
    except CredentialsError as e:
        toolkit.print(f"Failed to remove credentials: {e}", tag="error")
        raise typer.Exit(1) from e

    if removed:
        toolkit.print("Successfully logged out", tag="success")
        console.print(f"Removed {code(str(settings.auth.credentials_path))}")
    else:
        console.print("[yellow]No authentication to clear[/yellow]")
