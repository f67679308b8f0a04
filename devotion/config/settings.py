"""
Configuration models and their JSON file stores.

Two files configure devotion:

- the global file ``~/.config/devotion.global.json`` holds the API keys for
  the issue tracker and the code host plus the projects database id;
- the local file ``.devotion.json`` at the root of a working copy binds that
  working copy to one project's tickets database and development branch.

Both are JSON with camelCase keys. Values in the global file can be
overridden with ``DEVOTION_``-prefixed environment variables, e.g.
``DEVOTION_GITHUB_API_KEY``.

Example:
    >>> store = ConfigStore(LocalConfig, Path(".devotion.json"))
    >>> config = store.read()
    >>> config.development_branch if config else None
    'develop'
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Generic, TypeVar

import structlog
from pydantic import AliasGenerator, BaseModel, ConfigDict, SecretStr, ValidationError, field_validator
from pydantic.alias_generators import to_camel, to_snake
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from devotion.exceptions import ConfigurationError

log = structlog.get_logger(__name__)

GLOBAL_CONFIG_PATH = Path.home() / ".config" / "devotion.global.json"
LOCAL_CONFIG_FILE = ".devotion.json"
DEFAULT_DEVELOPMENT_BRANCH = "develop"

NOTION_API_KEY_PATTERN = re.compile(r"^(ntn|secret)_[A-Za-z0-9]+$")
GITHUB_API_KEY_PATTERN = re.compile(r"^(ghp_[A-Za-z0-9]+|github_pat_[A-Za-z0-9_]+)$")
DATABASE_ID_PATTERN = re.compile(r"^[a-f0-9]{32}$")
USER_ID_PATTERN = re.compile(r"^[a-f0-9]{8}-?[a-f0-9]{4}-?[a-f0-9]{4}-?[a-f0-9]{4}-?[a-f0-9]{12}$")

# Field names stay snake_case for validation (and env lookup); files use camelCase
_CAMEL_CASE_FILE_KEYS = AliasGenerator(serialization_alias=to_camel)


def normalize_database_id(value: str) -> str:
    """Strip dashes and whitespace from a tracker database id and lower-case it.

    Raises:
        ValueError: If the result is not 32 hex characters
    """
    normalized = value.strip().replace("-", "").lower()
    if not DATABASE_ID_PATTERN.match(normalized):
        raise ValueError("Database ID must be 32 hexadecimal characters (dashes allowed)")
    return normalized


def mask_secret(value: str | SecretStr | None) -> str:
    """Mask all but the first and last four characters of a secret.

    Example:
        >>> mask_secret("ghp_abcdefghijklmnop")
        'ghp_************mnop'
    """
    if value is None:
        return ""
    if isinstance(value, SecretStr):
        value = value.get_secret_value()
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}{'*' * (len(value) - 8)}{value[-4:]}"


class GlobalConfig(BaseSettings):
    """Per-user credentials and the projects database.

    Environment variables take precedence over the file so a key can be
    rotated or injected without editing it.
    """

    model_config = SettingsConfigDict(
        env_prefix="DEVOTION_",
        case_sensitive=False,
        extra="ignore",
        alias_generator=_CAMEL_CASE_FILE_KEYS,
    )

    notion_api_key: SecretStr
    github_api_key: SecretStr
    notion_projects_db_id: str
    user_id: str | None = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # File values arrive as init kwargs; the environment wins over them
        return env_settings, init_settings

    @field_validator("notion_api_key")
    @classmethod
    def validate_notion_api_key(cls, v: SecretStr) -> SecretStr:
        if not NOTION_API_KEY_PATTERN.match(v.get_secret_value()):
            raise ValueError("Notion API key must start with 'ntn_' or 'secret_'")
        return v

    @field_validator("github_api_key")
    @classmethod
    def validate_github_api_key(cls, v: SecretStr) -> SecretStr:
        if not GITHUB_API_KEY_PATTERN.match(v.get_secret_value()):
            raise ValueError("GitHub API key must start with 'ghp_' or 'github_pat_'")
        return v

    @field_validator("notion_projects_db_id")
    @classmethod
    def validate_projects_db_id(cls, v: str) -> str:
        return normalize_database_id(v)

    @field_validator("user_id", mode="before")
    @classmethod
    def validate_user_id(cls, v: Any) -> Any:
        # Older files store an empty string when no user is configured
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        if not isinstance(v, str) or not USER_ID_PATTERN.match(v.strip().lower()):
            raise ValueError("User ID must be a UUID")
        return v.strip().lower()

    def masked(self) -> dict[str, str]:
        """Display values with secrets masked."""
        return {
            "Notion API Key": mask_secret(self.notion_api_key),
            "GitHub API Key": mask_secret(self.github_api_key),
            "Notion Projects DB ID": self.notion_projects_db_id,
            "Notion User ID": self.user_id or "(not set)",
        }


class LocalConfig(BaseModel):
    """Binding of one working copy to a project's tickets database."""

    model_config = ConfigDict(extra="ignore", alias_generator=_CAMEL_CASE_FILE_KEYS)

    project_id: str
    tickets_database_id: str
    ticket_prefix: str
    development_branch: str = DEFAULT_DEVELOPMENT_BRANCH
    assign_on_start: bool = False

    @field_validator("development_branch")
    @classmethod
    def validate_development_branch(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Development branch must not be empty")
        return v.strip()

    def masked(self) -> dict[str, str]:
        """Display values (nothing secret, same shape as GlobalConfig.masked)."""
        return {
            "Project ID": self.project_id,
            "Tickets Database ID": self.tickets_database_id,
            "Ticket Prefix": self.ticket_prefix,
            "Development Branch": self.development_branch,
            "Assign On Start": "yes" if self.assign_on_start else "no",
        }


ConfigT = TypeVar("ConfigT", bound=BaseModel)


class ConfigStore(Generic[ConfigT]):
    """Reads and writes one configuration model as a JSON file.

    Attributes:
        model: Configuration model class
        path: Location of the JSON file
    """

    def __init__(self, model: type[ConfigT], path: Path, private: bool = False) -> None:
        """Initialize the store.

        Args:
            model: Configuration model class
            path: Location of the JSON file
            private: Restrict the written file to the owner (holds secrets)
        """
        self.model = model
        self.path = path
        self.private = private

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> ConfigT | None:
        """Load the configuration.

        Returns:
            The configuration, or None when the file does not exist

        Raises:
            ConfigurationError: If the file cannot be read or is invalid
        """
        if not self.exists():
            return None

        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {self.path}") from e

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration in {self.path} must be a JSON object")

        try:
            # Constructor, not model_validate, so settings sources apply
            return self.model(**{to_snake(key): value for key, value in data.items()})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {self.path}: {e}") from e

    def write(self, config: ConfigT) -> None:
        """Persist the configuration, creating parent directories.

        Raises:
            ConfigurationError: If the file cannot be written
        """
        data = config.model_dump(by_alias=True)
        data = {key: value.get_secret_value() if isinstance(value, SecretStr) else value for key, value in data.items()}

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
            if self.private:
                os.chmod(self.path, 0o600)
        except OSError as e:
            raise ConfigurationError(f"Cannot write configuration file: {self.path}") from e

        log.info("config_written", path=str(self.path))


def global_store(path: Path | None = None) -> ConfigStore[GlobalConfig]:
    """Store for the per-user global configuration."""
    return ConfigStore(GlobalConfig, path or GLOBAL_CONFIG_PATH, private=True)


def local_store(project_root: Path) -> ConfigStore[LocalConfig]:
    """Store for the configuration of the working copy at ``project_root``."""
    return ConfigStore(LocalConfig, project_root / LOCAL_CONFIG_FILE)
