"""Clients for the Microsoft identity platform OAuth endpoints."""

from .device_flow import DeviceCodeFlow
from .refresh import TokenRefresher


__all__ = ["DeviceCodeFlow", "TokenRefresher"]
