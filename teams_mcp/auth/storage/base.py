"""Abstract base class for credential storage."""

from abc import ABC, abstractmethod

from teams_mcp.auth.models import CredentialRecord


class TokenStorage(ABC):
    """Abstract interface for the single credential record of an installation."""

    @abstractmethod
    async def load(self) -> CredentialRecord | None:
        """Load the credential record.

        Returns:
            The stored record, or None when no usable record exists
        """

    @abstractmethod
    async def save(self, record: CredentialRecord) -> None:
        """Replace the stored record.

        Args:
            record: Record to persist
        """

    @abstractmethod
    async def clear(self) -> bool:
        """Remove the stored record.

        Returns:
            True if a record was removed, False if none existed
        """

    @abstractmethod
    async def exists(self) -> bool:
        """Check whether a record is present in storage."""

    @abstractmethod
    def get_location(self) -> str:
        """Get a human-readable description of where the record is stored."""
