"""Shared test fixtures and configuration."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from tasksync.core.settings import AppSettings
from tasksync.core.state import StateManager
from tasksync.core.types import Tag, Task, TaskStatus, TaskTag
from tasksync.storage.capability import HandleCache
from tasksync.storage.handles import LocalDirectoryHandle

# Fixed reference time for merge tests
NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed 'now' used by merge and digest tests."""
    return NOW


@pytest.fixture
def vault_dir(tmp_path):
    """Provide an empty vault directory."""
    path = tmp_path / "vault"
    path.mkdir()
    return path


@pytest.fixture
def vault_handle(vault_dir):
    """Directory handle for the temporary vault."""
    return LocalDirectoryHandle(vault_dir)


@pytest.fixture
def make_handles(vault_handle):
    """Factory for a HandleCache holding the vault handle (await it in the test)."""

    async def _make() -> HandleCache:
        cache = HandleCache()
        assert await cache.cache("vault", vault_handle)
        return cache

    return _make


@pytest.fixture
def state_manager(tmp_path):
    """Create a StateManager with a temp database."""
    manager = StateManager(db_path=tmp_path / "test.db")
    yield manager
    manager.close()


@pytest.fixture
def settings():
    """Default settings with the daily note listing all open tasks."""
    return AppSettings(sync_all_tasks_to_daily_note=True)


@pytest.fixture
def make_task():
    """Factory for tasks with explicit timestamps."""

    def _make(
        task_id: str = "task-1",
        title: str = "Buy milk",
        status: TaskStatus = TaskStatus.NOT_STARTED,
        updated: datetime | None = None,
        created: datetime | None = None,
        due_date: date | None = None,
        linked_note: str | None = None,
        completed_at: datetime | None = None,
    ) -> Task:
        updated = updated or NOW - timedelta(hours=1)
        created = created or min(updated, NOW - timedelta(days=1))
        if status == TaskStatus.COMPLETED and completed_at is None:
            completed_at = updated
        return Task(
            id=task_id,
            title=title,
            status=status,
            due_date=due_date,
            linked_note=linked_note,
            created_at=created,
            updated_at=updated,
            completed_at=completed_at,
        )

    return _make


@pytest.fixture
def make_tag():
    """Factory for tags with explicit timestamps."""

    def _make(
        tag_id: str = "tag-1",
        name: str = "Work",
        updated: datetime | None = None,
        color: str = "#336699",
    ) -> Tag:
        updated = updated or NOW - timedelta(hours=1)
        return Tag(
            id=tag_id,
            name=name,
            color=color,
            created_at=updated - timedelta(days=1),
            updated_at=updated,
        )

    return _make


@pytest.fixture
def make_link():
    """Factory for task-tag links."""

    def _make(
        link_id: str = "tasktag-1", task_id: str = "task-1", tag_id: str = "tag-1"
    ) -> TaskTag:
        return TaskTag(
            id=link_id,
            task_id=task_id,
            tag_id=tag_id,
            created_at=NOW - timedelta(days=1),
        )

    return _make
