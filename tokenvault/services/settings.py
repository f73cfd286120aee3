"""Settings storage and TokenVault home directory discovery."""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from tokenvault.exceptions import ConfigError
from tokenvault.models.settings import BrokerSettings

logger = logging.getLogger(__name__)

HOME_ENV_VAR = "TOKENVAULT_HOME"
DEFAULT_HOME = Path.home() / ".tokenvault"
CONFIG_FILENAME = "config.yaml"
DATABASE_FILENAME = "tokenvault.db"


def resolve_home(home: Path | None = None) -> Path:
    """Find the TokenVault home directory.

    Resolution order:
    1. Explicit path
    2. TOKENVAULT_HOME environment variable
    3. ~/.tokenvault

    Args:
        home: Optional explicit home directory.

    Returns:
        Path to the home directory (not created).
    """
    if home is not None:
        return Path(home).expanduser()
    env_home = os.environ.get(HOME_ENV_VAR)
    if env_home:
        return Path(env_home).expanduser()
    return DEFAULT_HOME


class SettingsService:
    """Loads and saves BrokerSettings as YAML in the home directory."""

    def __init__(self, home: Path | None = None) -> None:
        """Initialize the settings service.

        Args:
            home: Optional home directory. If not provided, it is resolved
                  from the environment.
        """
        self.home = resolve_home(home)

    @property
    def config_file(self) -> Path:
        """Get the settings file path."""
        return self.home / CONFIG_FILENAME

    def database_path(self, settings: BrokerSettings | None = None) -> Path:
        """Get the database file path.

        Args:
            settings: Loaded settings; an explicit database_path wins.

        Returns:
            Path to the SQLite database file.
        """
        if settings is not None and settings.database_path is not None:
            return settings.database_path.expanduser()
        return self.home / DATABASE_FILENAME

    def _read_raw(self) -> dict[str, Any]:
        if not self.config_file.exists():
            return {}
        try:
            with open(self.config_file, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not read {self.config_file}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{self.config_file} must contain a mapping")
        return data

    def load(self) -> BrokerSettings:
        """Load and validate settings.

        A missing file yields the defaults.

        Returns:
            Validated settings.

        Raises:
            ConfigError: If the file is unreadable or a value is invalid.
        """
        raw = self._read_raw()
        try:
            settings = BrokerSettings.model_validate(raw)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid settings in {self.config_file}: {e}") from e
        logger.debug("Loaded settings from %s", self.config_file)
        return settings

    def save(self, settings: BrokerSettings) -> None:
        """Write settings to the YAML file.

        Args:
            settings: Settings to persist.
        """
        data = settings.model_dump(by_alias=True, mode="json", exclude_none=True)
        try:
            self.home.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=True)
        except OSError as e:
            raise ConfigError(f"Could not write {self.config_file}: {e}") from e

    def set(self, key: str, value: Any) -> BrokerSettings:
        """Validate and persist a single setting.

        Args:
            key: Field name or camel-case alias (e.g. "serverPort").
            value: New value; validated by the settings model.

        Returns:
            The updated settings.

        Raises:
            ConfigError: If the key is unknown or the value is invalid.
        """
        field_name = _field_name(key)
        data = self.load().model_dump()
        data[field_name] = value
        try:
            settings = BrokerSettings.model_validate(data)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid value for {key}: {value!r}") from e
        self.save(settings)
        return settings


def _field_name(key: str) -> str:
    """Map a field name or alias to the model field name."""
    for name, field in BrokerSettings.model_fields.items():
        if key in (name, field.alias):
            return name
    valid = ", ".join(
        field.alias or name for name, field in BrokerSettings.model_fields.items()
    )
    raise ConfigError(f"Unknown setting '{key}'. Valid settings: {valid}")
