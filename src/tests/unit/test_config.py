"""Tests for tasksync.core.config module."""

import logging
from datetime import timedelta

import pytest

import tasksync.core.config as config
from tasksync.core import merge


class TestEnvHelpers:
    """Tests for environment variable helpers."""

    def test_get_env_returns_value(self, monkeypatch):
        """get_env returns environment variable value."""
        monkeypatch.setenv("TEST_VAR", "test_value")

        assert config.get_env("TEST_VAR") == "test_value"

    def test_get_env_returns_default(self, monkeypatch):
        """get_env returns default when var not set."""
        monkeypatch.delenv("NONEXISTENT_VAR", raising=False)

        assert config.get_env("NONEXISTENT_VAR", "default") == "default"

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("42", 42),
            ("not_a_number", 99),
            (None, 123),
        ],
    )
    def test_get_env_int(self, monkeypatch, value, expected):
        """get_env_int parses or falls back to default."""
        if value is None:
            monkeypatch.delenv("INT_VAR", raising=False)
        else:
            monkeypatch.setenv("INT_VAR", value)

        assert config.get_env_int("INT_VAR", expected) == expected

    def test_get_env_float(self, monkeypatch):
        """get_env_float parses or falls back to default."""
        monkeypatch.setenv("FLOAT_VAR", "0.25")
        assert config.get_env_float("FLOAT_VAR", 1.0) == 0.25

        monkeypatch.setenv("FLOAT_VAR", "fast")
        assert config.get_env_float("FLOAT_VAR", 1.0) == 1.0

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("true", True),
            ("True", True),
            ("1", True),
            ("yes", True),
            ("false", False),
            ("0", False),
            ("no", False),
        ],
    )
    def test_get_env_bool_parses_known_values(self, monkeypatch, value, expected):
        """get_env_bool parses known values."""
        monkeypatch.setenv("BOOL_VAR", value)

        assert config.get_env_bool("BOOL_VAR") is expected

    @pytest.mark.parametrize("default", [True, False])
    def test_get_env_bool_default(self, monkeypatch, default):
        """get_env_bool returns default for unknown values."""
        monkeypatch.setenv("BOOL_VAR", "maybe")

        assert config.get_env_bool("BOOL_VAR", default) is default


class TestValidateVaultPath:
    """Tests for validate_vault_path."""

    def test_missing_path(self):
        is_valid, message = config.validate_vault_path(None)

        assert is_valid is False
        assert "No vault selected" in message

    def test_nonexistent_path(self, tmp_path):
        is_valid, message = config.validate_vault_path(tmp_path / "nope")

        assert is_valid is False
        assert "not found" in message

    def test_file_is_not_a_vault(self, tmp_path):
        path = tmp_path / "file.md"
        path.write_text("")

        assert config.validate_vault_path(path)[0] is False

    def test_directory_is_valid(self, tmp_path):
        assert config.validate_vault_path(tmp_path) == (True, "")


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_returns_logger(self):
        logger = config.setup_logging()

        assert isinstance(logger, logging.Logger)
        assert logger.name == "tasksync.core.config"

    def test_explicit_level_wins(self, monkeypatch):
        monkeypatch.setattr(config, "TASKSYNC_DEBUG", True)

        assert config.resolve_log_level("WARNING") == logging.WARNING

    def test_debug_flag_overrides_log_level(self, monkeypatch):
        """TASKSYNC_DEBUG turns on debug logging when no level is passed."""
        monkeypatch.setattr(config, "TASKSYNC_DEBUG", True)
        monkeypatch.setattr(config, "LOG_LEVEL", "ERROR")

        assert config.resolve_log_level() == logging.DEBUG

    def test_log_level_default(self, monkeypatch):
        monkeypatch.setattr(config, "TASKSYNC_DEBUG", False)
        monkeypatch.setattr(config, "LOG_LEVEL", "warning")

        assert config.resolve_log_level() == logging.WARNING


class TestSyncTiming:
    """Tests for sync timing constants."""

    def test_recency_window_feeds_merge(self):
        """The merge window is read from TASKSYNC_RECENCY_WINDOW_SECONDS."""
        assert merge.RECENCY_WINDOW == timedelta(seconds=config.RECENCY_WINDOW_SECONDS)
        assert isinstance(config.RECENCY_WINDOW_SECONDS, int)
