"""JSON file storage for the credential record."""

import asyncio
import contextlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from teams_mcp.auth.exceptions import (
    CredentialsInvalidError,
    CredentialsStorageError,
)
from teams_mcp.auth.models import CredentialRecord
from teams_mcp.auth.storage.base import TokenStorage
from teams_mcp.core.logging import get_logger


logger = get_logger(__name__)


class JsonFileCredentialStore(TokenStorage):
    """Credential record persisted as a JSON document at a fixed path.

    Writes go to a temporary file in the same directory which is then renamed
    over the target, so readers see either the old or the new document.
    """

    def __init__(self, file_path: Path):
        """Initialize JSON file storage.

        Args:
            file_path: Path to the JSON credentials file
        """
        self.file_path = file_path

    async def load(self) -> CredentialRecord | None:
        """Load the record from the JSON file.

        Returns:
            The record, or None if the file is missing or lacks required fields

        Raises:
            CredentialsInvalidError: If the file is not a JSON object
            CredentialsStorageError: If the file cannot be read
        """

        def read_file() -> Any:
            with self.file_path.open(encoding="utf-8") as f:
                return json.load(f)

        try:
            data = await asyncio.to_thread(read_file)
        except FileNotFoundError:
            logger.debug(
                "credentials_file_not_found", path=str(self.file_path), category="auth"
            )
            return None
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(
                "credentials_decode_error",
                path=str(self.file_path),
                error=str(e),
                category="auth",
            )
            raise CredentialsInvalidError(
                f"Failed to parse credentials file {self.file_path}: {e}"
            ) from e
        except PermissionError as e:
            logger.error(
                "permission_denied", path=str(self.file_path), error=str(e), exc_info=e
            )
            raise CredentialsStorageError(
                f"Permission denied accessing credentials file: {self.file_path}"
            ) from e
        except OSError as e:
            logger.error(
                "file_io_error", path=str(self.file_path), error=str(e), exc_info=e
            )
            raise CredentialsStorageError(
                f"Error accessing credentials file {self.file_path}: {e}"
            ) from e

        if not isinstance(data, dict):
            raise CredentialsInvalidError(
                f"Credentials file {self.file_path} does not contain a JSON object"
            )

        try:
            record = CredentialRecord.model_validate(data)
        except ValidationError as e:
            logger.warning(
                "credentials_incomplete",
                path=str(self.file_path),
                missing=[".".join(map(str, err["loc"])) for err in e.errors()],
                category="auth",
            )
            return None

        logger.debug(
            "credentials_load_completed",
            path=str(self.file_path),
            authenticated=record.authenticated,
            expires_at=record.expires_at.isoformat(),
            category="auth",
        )
        return record

    async def save(self, record: CredentialRecord) -> None:
        """Atomically replace the JSON file with ``record``.

        Raises:
            CredentialsStorageError: If the file cannot be written
        """
        data = record.to_storage()

        def write_file() -> None:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            # mkstemp creates the file with owner-only permissions
            fd, temp_name = tempfile.mkstemp(
                dir=self.file_path.parent,
                prefix=f".{self.file_path.name}.",
                suffix=".tmp",
            )
            temp_path = Path(temp_name)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                temp_path.chmod(0o600)
                temp_path.replace(self.file_path)
            finally:
                if temp_path.exists():
                    with contextlib.suppress(OSError):
                        temp_path.unlink()

        try:
            await asyncio.to_thread(write_file)
        except PermissionError as e:
            logger.error(
                "permission_denied", path=str(self.file_path), error=str(e), exc_info=e
            )
            raise CredentialsStorageError(
                f"Permission denied writing credentials file: {self.file_path}"
            ) from e
        except OSError as e:
            logger.error(
                "file_io_error", path=str(self.file_path), error=str(e), exc_info=e
            )
            raise CredentialsStorageError(
                f"Error writing credentials file: {e}"
            ) from e

        logger.debug(
            "credentials_save_completed",
            path=str(self.file_path),
            expires_at=record.expires_at.isoformat(),
            category="auth",
        )

    async def clear(self) -> bool:
        """Delete the JSON file; a missing file is not an error.

        Raises:
            CredentialsStorageError: If the file exists but cannot be removed
        """
        try:
            await asyncio.to_thread(self.file_path.unlink)
        except FileNotFoundError:
            logger.debug(
                "credentials_already_cleared",
                path=str(self.file_path),
                category="auth",
            )
            return False
        except OSError as e:
            logger.error(
                "file_delete_error", path=str(self.file_path), error=str(e), exc_info=e
            )
            raise CredentialsStorageError(
                f"Error deleting credentials file: {self.file_path}"
            ) from e

        logger.info(
            "credentials_cleared", path=str(self.file_path), category="auth"
        )
        return True

    async def exists(self) -> bool:
        """Check if the credentials file exists."""
        return await asyncio.to_thread(
            lambda: self.file_path.exists() and self.file_path.is_file()
        )

    def get_location(self) -> str:
        """Path to the JSON file."""
        return str(self.file_path)
