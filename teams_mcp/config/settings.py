import os
import sys
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from teams_mcp.utils.config import find_toml_config_file


__all__ = [
    "AuthSettings",
    "ConfigurationError",
    "GraphSettings",
    "LoggingSettings",
    "ServerSettings",
    "Settings",
]

DEFAULT_CLIENT_ID = "14d82eec-204b-4c2f-b7e8-296a70dab67e"

DEFAULT_SCOPES = [
    "User.Read",
    "User.ReadBasic.All",
    "Team.ReadBasic.All",
    "Channel.ReadBasic.All",
    "ChannelMessage.Read.All",
    "ChannelMessage.Send",
    "TeamMember.Read.All",
    "Chat.ReadBasic",
    "Chat.ReadWrite",
    "offline_access",
]


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def _default_credentials_path() -> Path:
    return Path.home() / ".msgraph-mcp-auth.json"


class AuthSettings(BaseModel):
    """Microsoft identity platform settings for the device flow and refresh."""

    client_id: str = Field(
        default=DEFAULT_CLIENT_ID,
        description="Public client identifier registered with Microsoft Entra ID",
    )

    tenant_id: str = Field(
        default="common",
        description="Tenant segment of the authority URL",
    )

    authority_url: str = Field(
        default="https://login.microsoftonline.com",
        description="Base URL of the authorization server",
    )

    scopes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SCOPES),
        description="Delegated permission scopes requested during login and refresh",
    )

    credentials_path: Path = Field(
        default_factory=_default_credentials_path,
        description="Location of the persisted credential record",
    )

    refresh_margin_seconds: int = Field(
        default=300,
        ge=0,
        description="Refresh the access token when it expires within this many seconds",
    )

    poll_max_attempts: int = Field(
        default=100,
        ge=1,
        description="Upper bound on device-code polling attempts",
    )

    slow_down_increment: int = Field(
        default=5,
        ge=1,
        description="Seconds added to the polling interval on a slow_down response",
    )

    default_poll_interval: int = Field(
        default=5,
        ge=1,
        description="Polling interval used when the server does not send one",
    )

    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for requests to the authorization server",
    )

    @property
    def device_code_url(self) -> str:
        """Device authorization endpoint for the configured tenant."""
        return f"{self.authority_url.rstrip('/')}/{self.tenant_id}/oauth2/v2.0/devicecode"

    @property
    def token_url(self) -> str:
        """Token endpoint for the configured tenant."""
        return f"{self.authority_url.rstrip('/')}/{self.tenant_id}/oauth2/v2.0/token"

    @field_validator("credentials_path", mode="before")
    @classmethod
    def expand_credentials_path(cls, v: Any) -> Any:
        """Expand ``~`` in configured paths."""
        if isinstance(v, str):
            return Path(v).expanduser()
        if isinstance(v, Path):
            return v.expanduser()
        return v


class GraphSettings(BaseModel):
    """Microsoft Graph API client settings."""

    base_url: str = Field(
        default="https://graph.microsoft.com/v1.0",
        description="Graph API base URL",
    )

    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for Graph API requests",
    )


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    format: str = Field(
        default="auto",
        description=(
            "Console log format: 'rich', 'json', or 'auto' (json when stderr "
            "is not a terminal)"
        ),
    )

    file: str | None = Field(
        default=None,
        description="Path to a JSON log file written in addition to stderr",
    )

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        upper_v = v.upper()
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v

    @field_validator("format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate and normalize log format."""
        lower_v = v.lower()
        valid_formats = ["auto", "rich", "json"]
        if lower_v not in valid_formats:
            raise ValueError(f"Invalid log format: {v}. Must be one of {valid_formats}")
        return lower_v

    @property
    def json_logs(self) -> bool:
        """Whether console output should be rendered as JSON."""
        if self.format == "auto":
            return not sys.stderr.isatty()
        return self.format == "json"


class ServerSettings(BaseModel):
    """MCP server identity."""

    name: str = Field(
        default="teams-mcp",
        description="Server name announced to MCP clients",
    )


class Settings(BaseSettings):
    """
    Configuration settings for the teams-mcp server and CLI.

    Settings are loaded from environment variables, .env files, and TOML configuration files.
    Environment variables take precedence over TOML values.
    TOML configuration files are searched in the following order:
    1. .teams-mcp.toml in current directory
    2. config.toml in XDG_CONFIG_HOME/teams-mcp/
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    auth: AuthSettings = Field(
        default_factory=AuthSettings,
        description="Authorization server and credential storage settings",
    )

    graph: GraphSettings = Field(
        default_factory=GraphSettings,
        description="Microsoft Graph API settings",
    )

    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration",
    )

    server: ServerSettings = Field(
        default_factory=ServerSettings,
        description="MCP server settings",
    )

    @classmethod
    def load_toml_config(cls, toml_path: Path) -> dict[str, Any]:
        """Load configuration from a TOML file."""
        try:
            with toml_path.open("rb") as f:
                return tomllib.load(f)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read TOML config file {toml_path}: {e}"
            ) from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML syntax in {toml_path}: {e}") from e

    @classmethod
    def from_config(
        cls, config_path: Path | str | None = None, **kwargs: Any
    ) -> "Settings":
        """Create Settings from environment plus an optional TOML file.

        Values from the environment win over TOML values; keyword overrides
        win over both.
        """
        if config_path is None:
            config_path_env = os.environ.get("CONFIG_FILE")
            if config_path_env:
                config_path = Path(config_path_env)

        if isinstance(config_path, str):
            config_path = Path(config_path)

        if config_path is None:
            config_path = find_toml_config_file()

        config_data: dict[str, Any] = {}
        if config_path is not None:
            if not config_path.exists():
                raise ConfigurationError(f"Config file not found: {config_path}")
            config_data = cls.load_toml_config(config_path)

        settings = cls()

        for section, values in config_data.items():
            if section not in cls.model_fields or not isinstance(values, dict):
                continue
            current: BaseModel = getattr(settings, section)
            merged = current.model_dump()
            for key, value in values.items():
                env_key = f"{section.upper()}__{key.upper()}"
                if os.getenv(env_key) is None:
                    merged[key] = value
            try:
                setattr(settings, section, type(current).model_validate(merged))
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid [{section}] section in {config_path}: {e}"
                ) from e

        for section, overrides in kwargs.items():
            current = getattr(settings, section)
            merged = {**current.model_dump(), **overrides}
            setattr(settings, section, type(current).model_validate(merged))

        return settings

