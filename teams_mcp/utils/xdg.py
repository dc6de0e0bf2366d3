"""XDG base directory helpers."""

import os
from pathlib import Path


def get_xdg_config_home() -> Path:
    """Return ``$XDG_CONFIG_HOME``, falling back to ``~/.config``."""
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home)
    return Path.home() / ".config"


def get_teams_mcp_config_dir() -> Path:
    """Return the teams-mcp configuration directory."""
    return get_xdg_config_home() / "teams-mcp"
