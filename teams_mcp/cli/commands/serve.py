"""Run the MCP server over stdio."""

import asyncio

import typer

from teams_mcp.cli.helpers import load_settings
from teams_mcp.core.logging import get_logger
from teams_mcp.server import run_stdio_server


logger = get_logger(__name__)


def serve_command(ctx: typer.Context) -> None:
    """Start the MCP server on stdin/stdout.

    This is what MCP clients launch. Nothing but protocol messages is written
    to stdout; logs go to stderr.
    """
    settings = load_settings(ctx)
    try:
        asyncio.run(run_stdio_server(settings))
    except KeyboardInterrupt:
        logger.info("mcp_server_interrupted", category="server")
