"""Configuration file discovery utilities."""

from pathlib import Path

from .xdg import get_teams_mcp_config_dir


def find_toml_config_file() -> Path | None:
    """Find the TOML configuration file for teams-mcp.

    Searches in the following order:
    1. .teams-mcp.toml in current directory
    2. config.toml in XDG_CONFIG_HOME/teams-mcp/

    Returns:
        Path to the first found configuration file, or None if not found.
    """
    current_dir_config = Path.cwd() / ".teams-mcp.toml"
    if current_dir_config.exists():
        return current_dir_config

    xdg_config = get_teams_mcp_config_dir() / "config.toml"
    if xdg_config.exists():
        return xdg_config

    return None
