"""Tests for tasksync.core.settings module."""

import pytest
from pydantic import ValidationError

from tasksync.core.settings import (
    AppSettings,
    SettingsError,
    SettingsLoader,
    get_settings_loader,
    set_settings_loader,
)


class TestAppSettings:
    """Tests for AppSettings validation."""

    def test_defaults(self):
        """Defaults match the vault layout."""
        settings = AppSettings()

        assert settings.task_folder_path == "Obsidian-Sync-Tasks"
        assert settings.note_folder_path == "Obsidian-Sync-Notes"
        assert settings.daily_note_task_section == "## Tasks"
        assert settings.sync_all_tasks_to_daily_note is False

    def test_folder_slashes_stripped(self):
        assert AppSettings(task_folder_path="/Tasks/").task_folder_path == "Tasks"

    def test_blank_folder_rejected(self):
        with pytest.raises(ValidationError):
            AppSettings(note_folder_path=" / ")

    @pytest.mark.parametrize("section", ["Tasks", "####### Tasks", "##Tasks", "## "])
    def test_section_must_be_heading(self, section):
        """The task section must be a 1-6 level markdown heading."""
        with pytest.raises(ValidationError):
            AppSettings(daily_note_task_section=section)

    def test_negative_interval_rejected(self):
        with pytest.raises(ValidationError):
            AppSettings(sync_interval=-1)

    def test_unknown_field_rejected(self):
        """Typos in field names are errors."""
        with pytest.raises(ValidationError):
            AppSettings(task_folder="Tasks")

    def test_frozen(self):
        settings = AppSettings()

        with pytest.raises(ValidationError):
            settings.auto_sync = False

    def test_blank_vault_path_is_none(self):
        assert AppSettings(vault_path="  ").vault_path is None


class TestSettingsLoader:
    """Tests for SettingsLoader."""

    def test_missing_file_gives_defaults(self, tmp_path):
        loader = SettingsLoader(tmp_path / "settings.yaml")

        assert loader.load() == AppSettings()
        assert loader.exists is False

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("")

        assert SettingsLoader(path).load() == AppSettings()

    def test_load_values(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("task_folder_path: Tasks\nsync_all_tasks_to_daily_note: true\n")

        settings = SettingsLoader(path).load()

        assert settings.task_folder_path == "Tasks"
        assert settings.sync_all_tasks_to_daily_note is True

    @pytest.mark.parametrize(
        "content",
        ["task_folder_path: [unclosed\n", "- just\n- a list\n", "sync_interval: soon\n"],
    )
    def test_invalid_files_raise(self, tmp_path, content):
        """Bad YAML, non-mappings and bad values raise SettingsError."""
        path = tmp_path / "settings.yaml"
        path.write_text(content)

        with pytest.raises(SettingsError):
            SettingsLoader(path).load()

    def test_save_and_reload(self, tmp_path):
        """Saved settings load back equal."""
        path = tmp_path / "nested" / "settings.yaml"
        loader = SettingsLoader(path)
        settings = AppSettings(vault_path="/vault", daily_note_format="DD-MM-YYYY")

        loader.save(settings)

        assert SettingsLoader(path).load() == settings

    def test_load_is_cached_until_reload(self, tmp_path):
        path = tmp_path / "settings.yaml"
        loader = SettingsLoader(path)
        loader.load()
        path.write_text("auto_sync: false\n")

        assert loader.load().auto_sync is True
        assert loader.reload().auto_sync is False

    def test_default_loader_can_be_replaced(self, tmp_path):
        loader = SettingsLoader(tmp_path / "settings.yaml")
        set_settings_loader(loader)
        try:
            assert get_settings_loader() is loader
        finally:
            set_settings_loader(None)
