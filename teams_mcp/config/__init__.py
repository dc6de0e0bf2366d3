"""Configuration module for teams-mcp."""

from .settings import (
    AuthSettings,
    ConfigurationError,
    GraphSettings,
    LoggingSettings,
    ServerSettings,
    Settings,
)


__all__ = [
    "AuthSettings",
    "ConfigurationError",
    "GraphSettings",
    "LoggingSettings",
    "ServerSettings",
    "Settings",
]
