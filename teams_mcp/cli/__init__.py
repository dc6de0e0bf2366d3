"""Command line interface for teams-mcp."""

from .main import app, main


__all__ = ["app", "main"]
