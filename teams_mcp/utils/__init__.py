"""Utility helpers for teams-mcp."""
