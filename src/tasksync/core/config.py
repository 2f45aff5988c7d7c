"""Configuration management for tasksync core."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def get_env(key: str, default: str | None = None) -> str | None:
    """Get environment variable with optional default."""
    return os.getenv(key, default)


def get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def get_env_float(key: str, default: float) -> float:
    """Get environment variable as float."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get environment variable as boolean."""
    value = os.getenv(key, "").lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    return default


# tasksync data directory (XDG-style, defaults to ~/.tasksync)
TASKSYNC_DATA_DIR = Path(
    get_env("TASKSYNC_DATA_DIR", os.path.expanduser("~/.tasksync"))
    or os.path.expanduser("~/.tasksync")
).expanduser()

# Local copy of tasks, tags and links
DATABASE_PATH = TASKSYNC_DATA_DIR / "tasksync.db"

# App settings (folder paths, daily note options)
SETTINGS_FILE = TASKSYNC_DATA_DIR / "settings.yaml"

# Optional vault root, overrides settings.vault_path
TASKSYNC_VAULT = get_env("TASKSYNC_VAULT")

# Cache key of the vault capability handle
VAULT_HANDLE_KEY = "vault"

# Logging
LOG_LEVEL = get_env("LOG_LEVEL", "INFO")
TASKSYNC_DEBUG = get_env_bool("TASKSYNC_DEBUG")

# Sync timing
SYNC_DEBOUNCE_SECONDS = get_env_float("TASKSYNC_SYNC_DEBOUNCE_SECONDS", 0.1)
RECENCY_WINDOW_SECONDS = get_env_int("TASKSYNC_RECENCY_WINDOW_SECONDS", 60)


def resolve_log_level(level: str | None = None) -> int:
    """An explicit level wins, then TASKSYNC_DEBUG, then LOG_LEVEL."""
    if level is None and TASKSYNC_DEBUG:
        level = "DEBUG"
    return getattr(logging, (level or LOG_LEVEL or "INFO").upper(), logging.INFO)


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure and return logger."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=resolve_log_level(level),
    )
    return logging.getLogger(__name__)


def validate_vault_path(path: str | Path | None) -> tuple[bool, str]:
    """
    Validate a vault root before a capability handle is built for it.

    Returns:
        (is_valid, message) - If not valid, message explains what's missing.
    """
    if not path:
        return (
            False,
            "No vault selected - pass --vault, set TASKSYNC_VAULT or run `tasksync init`",
        )

    vault = Path(path).expanduser()
    if not vault.exists():
        return False, f"Vault not found: {vault}"
    if not vault.is_dir():
        return False, f"Vault is not a directory: {vault}"

    return True, ""
