"""Application settings - loaded from settings.yaml in the data directory."""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tasksync.core.config import SETTINGS_FILE

logger = logging.getLogger(__name__)

DEFAULT_DAILY_NOTE_TEMPLATE = "# {{date:YYYY-MM-DD}}\n\n## Tasks\n\n## Notes\n\n"
DEFAULT_NOTE_TEMPLATE = "# {{title}}\n\nCreated: {{date}}\nTask ID: {{taskId}}\n\n"


class SettingsError(Exception):
    """Raised when the settings file is invalid."""

    pass


class AppSettings(BaseModel):
    """Typed settings for the vault layout and sync behaviour.

    Frozen to prevent accidental mutation; use model_copy(update=...) to
    derive a changed copy. Extra fields are forbidden to catch typos.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    vault_path: str | None = None
    task_folder_path: str = "Obsidian-Sync-Tasks"
    note_folder_path: str = "Obsidian-Sync-Notes"

    # Daily note
    daily_note_enabled: bool = True
    daily_note_folder_path: str = "Daily"
    daily_note_format: str = "YYYY-MM-DD"
    daily_note_task_section: str = "## Tasks"
    daily_note_template: str = DEFAULT_DAILY_NOTE_TEMPLATE
    sync_all_tasks_to_daily_note: bool = False

    # Sync
    sync_interval: int = Field(default=60, ge=0)
    sync_on_startup: bool = True
    auto_sync: bool = True

    note_template: str = DEFAULT_NOTE_TEMPLATE

    @field_validator(
        "task_folder_path", "note_folder_path", "daily_note_folder_path", "daily_note_format"
    )
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip().strip("/")
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("daily_note_task_section")
    @classmethod
    def _is_heading(cls, value: str) -> str:
        value = value.strip()
        hashes = len(value) - len(value.lstrip("#"))
        if not 1 <= hashes <= 6 or not value[hashes:].startswith(" ") or not value[hashes:].strip():
            raise ValueError(f"must be a markdown heading like '## Tasks', got {value!r}")
        return value

    @field_validator("vault_path")
    @classmethod
    def _blank_vault_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()


class SettingsLoader:
    """Loads settings.yaml and caches the parsed AppSettings.

    Example:
        loader = SettingsLoader("~/.tasksync/settings.yaml")
        settings = loader.load()
    """

    _DEFAULTS = AppSettings()

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path).expanduser() if path else SETTINGS_FILE
        self._settings: AppSettings | None = None

    def load(self) -> AppSettings:
        """Load settings, falling back to defaults when the file is missing.

        Raises:
            SettingsError: If the file is not valid YAML, not a mapping, or
                holds invalid values.
        """
        if self._settings is not None:
            return self._settings

        if not self.path.exists():
            logger.debug(f"No settings file at {self.path}")
            self._settings = self._DEFAULTS
            return self._settings

        try:
            with open(self.path, encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Invalid YAML in {self.path}: {e}")
            raise SettingsError(f"Invalid YAML in {self.path}: {e}") from e

        if raw is None:
            self._settings = self._DEFAULTS
            return self._settings

        if not isinstance(raw, dict):
            raise SettingsError(
                f"{self.path.name} must be a mapping, got {type(raw).__name__}"
            )

        try:
            self._settings = AppSettings.model_validate(raw)
        except ValidationError as e:
            raise SettingsError(f"Invalid settings in {self.path}: {e}") from e
        logger.info(f"Settings loaded from {self.path}")
        return self._settings

    def reload(self) -> AppSettings:
        """Force reload settings from disk."""
        self._settings = None
        return self.load()

    def save(self, settings: AppSettings) -> None:
        """Write settings back to disk and cache them."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data: dict[str, Any] = settings.model_dump()
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
        self._settings = settings
        logger.info(f"Settings saved to {self.path}")

    @property
    def exists(self) -> bool:
        return self.path.exists()

    def __repr__(self) -> str:
        return f"SettingsLoader({self.path})"


# Default instance
_settings_loader: SettingsLoader | None = None


def get_settings_loader() -> SettingsLoader:
    """Get or create the default settings loader."""
    global _settings_loader
    if _settings_loader is None:
        _settings_loader = SettingsLoader()
    return _settings_loader


def set_settings_loader(loader: SettingsLoader | None) -> None:
    """Set the default settings loader (for testing)."""
    global _settings_loader
    _settings_loader = loader
