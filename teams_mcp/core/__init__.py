"""Core infrastructure shared across teams-mcp."""
