"""Main entry point for the teams-mcp CLI."""

from pathlib import Path

import typer

from teams_mcp._version import __version__
from teams_mcp.cli.helpers import get_rich_toolkit

from .commands.auth import authenticate_command, check_command, logout_command
from .commands.serve import serve_command


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        toolkit = get_rich_toolkit()
        toolkit.print(f"teams-mcp {__version__}", tag="version")
        raise typer.Exit()


app = typer.Typer(
    rich_markup_mode="rich",
    add_completion=False,
    no_args_is_help=False,
    pretty_exceptions_enable=False,
)


@app.callback(invoke_without_command=True)
def app_main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a TOML configuration file",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
) -> None:
    """Microsoft Teams MCP server backed by Microsoft Graph.

    Run without a command to start the MCP server on stdio.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config

    if ctx.invoked_subcommand is None:
        serve_command(ctx)


app.command(name="authenticate")(authenticate_command)
app.command(name="auth", hidden=True)(authenticate_command)
app.command(name="check")(check_command)
app.command(name="logout")(logout_command)
app.command(name="serve")(serve_command)


def main() -> None:
    """Entry point for the ``teams-mcp`` console script."""
    app()


if __name__ == "__main__":
    main()
