"""CLI helper utilities for teams-mcp."""

import typer
from rich_toolkit import RichToolkit, RichToolkitTheme
from rich_toolkit.styles import TaggedStyle

from teams_mcp.config.settings import ConfigurationError, Settings
from teams_mcp.core.logging import get_logger, setup_logging


def get_rich_toolkit() -> RichToolkit:
    theme = RichToolkitTheme(
        style=TaggedStyle(tag_width=11),
        theme={
            "tag.title": "white on #4b53bc",
            "tag": "white on #464eb8",
            "placeholder": "grey85",
            "text": "white",
            "selected": "#464eb8",
            "result": "grey85",
            "progress": "on #464eb8",
            "error": "bold red",
            "success": "bold green",
            "warning": "bold yellow",
            "info": "blue",
            "version": "cyan",
            "config": "cyan",
            "auth": "magenta",
        },
    )

    return RichToolkit(theme=theme)


def bold(text: str) -> str:
    return f"[bold]{text}[/bold]"


def dim(text: str) -> str:
    return f"[dim]{text}[/dim]"


def code(text: str) -> str:
    return f"[cyan]{text}[/cyan]"


def link(text: str, link: str) -> str:
    return f"[link={link}]{text}[/link]"


def load_settings(ctx: typer.Context, quiet: bool = False) -> Settings:
    """Load settings for a command and configure logging from them.

    Interactive commands pass ``quiet`` so routine log lines do not interleave
    with their console output; DEBUG stays DEBUG.
    """
    config_path = (ctx.obj or {}).get("config_path")
    try:
        settings = Settings.from_config(config_path)
    except ConfigurationError as e:
        get_rich_toolkit().print(str(e), tag="error")
        raise typer.Exit(1) from e

    level = settings.logging.level
    if quiet and level != "DEBUG":
        level = "WARNING"
    setup_logging(
        json_logs=settings.logging.json_logs,
        log_level_name=level,
        log_file=settings.logging.file,
    )
    get_logger(__name__).debug(
        "settings_loaded",
        config_path=str(config_path) if config_path else None,
        credentials_path=str(settings.auth.credentials_path),
        category="config",
    )
    return settings
