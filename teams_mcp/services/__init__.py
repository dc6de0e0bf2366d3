"""Application services."""

from .graph import GraphService


__all__ = ["GraphService"]
