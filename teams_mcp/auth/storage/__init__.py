"""Credential storage backends."""

from .base import TokenStorage
from .json_file import JsonFileCredentialStore


__all__ = ["TokenStorage", "JsonFileCredentialStore"]
