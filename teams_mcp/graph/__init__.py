"""Microsoft Graph API access."""

from .client import BearerTokenAuth, GraphApiError, GraphClient, fetch_identity


__all__ = ["BearerTokenAuth", "GraphApiError", "GraphClient", "fetch_identity"]
