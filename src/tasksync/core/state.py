"""SQLite-backed local copy of tasks, tags and links."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from threading import Lock
from typing import Generator

from tasksync.core.config import DATABASE_PATH
from tasksync.core.types import (
    Tag,
    Task,
    TaskStatus,
    TaskTag,
    format_timestamp,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

# Collections that can carry pending deletions
COLLECTIONS = ("tasks", "tags", "task_tags")


class StateManager:
    """Persists the session's local collections and sync bookkeeping."""

    def __init__(self, db_path: Path | str | None = None):
        """
        Initialize state manager.

        Args:
            db_path: Path to SQLite database (defaults to ~/.tasksync/tasksync.db)
        """
        self.db_path = Path(db_path) if db_path else DATABASE_PATH
        self._connection: sqlite3.Connection | None = None
        self._connection_lock = Lock()
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        """Create database schema if not exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._get_connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS tasks (
                    position INTEGER NOT NULL,
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    status INTEGER NOT NULL,
                    due_date TEXT,
                    linked_note TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    completed_at TEXT
                );

                CREATE TABLE IF NOT EXISTS tags (
                    position INTEGER NOT NULL,
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    color TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS task_tags (
                    position INTEGER NOT NULL,
                    id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL,
                    tag_id TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_task_tags_task_id
                ON task_tags(task_id);

                CREATE TABLE IF NOT EXISTS tombstones (
                    collection TEXT NOT NULL,
                    record_id TEXT NOT NULL,
                    PRIMARY KEY (collection, record_id)
                );

                CREATE TABLE IF NOT EXISTS sync_state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
            """)

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection with row factory."""
        with self._connection_lock:
            if self._connection is None:
                self._connection = sqlite3.connect(
                    self.db_path, check_same_thread=False
                )
                self._connection.row_factory = sqlite3.Row
            try:
                yield self._connection
                self._connection.commit()
            except Exception:
                self._connection.rollback()
                raise

    def close(self) -> None:
        """Close the shared database connection."""
        with self._connection_lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    # Tasks

    async def load_tasks(self) -> list[Task]:
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM tasks ORDER BY position").fetchall()
        return [
            Task(
                id=row["id"],
                title=row["title"],
                status=TaskStatus(row["status"]),
                due_date=date.fromisoformat(row["due_date"]) if row["due_date"] else None,
                linked_note=row["linked_note"],
                created_at=parse_timestamp(row["created_at"]),
                updated_at=parse_timestamp(row["updated_at"]),
                completed_at=(
                    parse_timestamp(row["completed_at"]) if row["completed_at"] else None
                ),
            )
            for row in rows
        ]

    async def save_tasks(self, tasks: list[Task]) -> None:
        """Replace the stored tasks in one transaction."""
        with self._get_connection() as conn:
            conn.execute("DELETE FROM tasks")
            conn.executemany(
                """
                INSERT INTO tasks
                (position, id, title, status, due_date, linked_note,
                 created_at, updated_at, completed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        position,
                        task.id,
                        task.title,
                        int(task.status),
                        task.due_date.isoformat() if task.due_date else None,
                        task.linked_note,
                        format_timestamp(task.created_at),
                        format_timestamp(task.updated_at),
                        format_timestamp(task.completed_at) if task.completed_at else None,
                    )
                    for position, task in enumerate(tasks)
                ],
            )
        logger.debug("Saved %d tasks locally", len(tasks))

    # Tags

    async def load_tags(self) -> list[Tag]:
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM tags ORDER BY position").fetchall()
        return [
            Tag(
                id=row["id"],
                name=row["name"],
                color=row["color"],
                created_at=parse_timestamp(row["created_at"]),
                updated_at=parse_timestamp(row["updated_at"]),
            )
            for row in rows
        ]

    async def save_tags(self, tags: list[Tag]) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM tags")
            conn.executemany(
                """
                INSERT INTO tags (position, id, name, color, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        position,
                        tag.id,
                        tag.name,
                        tag.color,
                        format_timestamp(tag.created_at),
                        format_timestamp(tag.updated_at),
                    )
                    for position, tag in enumerate(tags)
                ],
            )

    # Task-tag links

    async def load_task_tags(self) -> list[TaskTag]:
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM task_tags ORDER BY position").fetchall()
        return [
            TaskTag(
                id=row["id"],
                task_id=row["task_id"],
                tag_id=row["tag_id"],
                created_at=parse_timestamp(row["created_at"]),
            )
            for row in rows
        ]

    async def save_task_tags(self, task_tags: list[TaskTag]) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM task_tags")
            conn.executemany(
                """
                INSERT INTO task_tags (position, id, task_id, tag_id, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (
                        position,
                        link.id,
                        link.task_id,
                        link.tag_id,
                        format_timestamp(link.created_at),
                    )
                    for position, link in enumerate(task_tags)
                ],
            )

    # Pending deletions

    async def add_tombstones(self, collection: str, record_ids: list[str]) -> None:
        """Remember ids deleted locally until a sync drops them from the vault."""
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection}")
        with self._get_connection() as conn:
            conn.executemany(
                "INSERT OR IGNORE INTO tombstones (collection, record_id) VALUES (?, ?)",
                [(collection, record_id) for record_id in record_ids],
            )

    async def get_tombstones(self, collection: str) -> set[str]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT record_id FROM tombstones WHERE collection = ?",
                (collection,),
            ).fetchall()
        return {row["record_id"] for row in rows}

    async def clear_tombstones(self, collection: str, record_ids: set[str]) -> None:
        with self._get_connection() as conn:
            conn.executemany(
                "DELETE FROM tombstones WHERE collection = ? AND record_id = ?",
                [(collection, record_id) for record_id in record_ids],
            )

    # Sync bookkeeping

    def _get_value(self, key: str) -> str | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT value FROM sync_state WHERE key = ?", (key,)
            ).fetchone()
        return row["value"] if row else None

    def _set_value(self, key: str, value: str) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO sync_state (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )

    async def is_first_sync(self) -> bool:
        """True until a sync pass has completed against the vault."""
        return self._get_value("first_sync_done") != "1"

    async def set_first_sync(self, first: bool) -> None:
        self._set_value("first_sync_done", "0" if first else "1")

    async def get_last_synced(self) -> datetime | None:
        value = self._get_value("last_synced")
        return parse_timestamp(value) if value else None

    async def set_last_synced(self, when: datetime) -> None:
        self._set_value("last_synced", format_timestamp(when))

    async def get_rendered_statuses(self, day: date) -> dict[str, TaskStatus]:
        """
        Statuses of the tasks last written into the digest for day.

        Returns an empty dict if the last render was for another day.
        """
        value = self._get_value("digest_render")
        if not value:
            return {}
        record = json.loads(value)
        if record.get("day") != day.isoformat():
            return {}
        return {
            task_id: TaskStatus(status)
            for task_id, status in record.get("statuses", {}).items()
        }

    async def set_rendered_statuses(
        self, day: date, statuses: dict[str, TaskStatus]
    ) -> None:
        record = {
            "day": day.isoformat(),
            "statuses": {task_id: int(status) for task_id, status in statuses.items()},
        }
        self._set_value("digest_render", json.dumps(record))


# Default instance
_state_manager: StateManager | None = None
_state_manager_lock = Lock()


def get_state_manager() -> StateManager:
    """Get or create the default state manager instance."""
    global _state_manager
    if _state_manager is None:
        with _state_manager_lock:
            if _state_manager is None:
                _state_manager = StateManager()
    return _state_manager


def set_state_manager(manager: StateManager | None) -> None:
    """Set the default state manager instance (for testing)."""
    global _state_manager
    _state_manager = manager
