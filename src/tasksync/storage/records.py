"""Record store - durable task, tag and link collections inside the vault.

Each collection lives in a fixed file in the task folder. Despite the .md
extension the files hold quoted CSV with a header row, see
tasksync.storage.codec.
"""

import logging
from collections.abc import Callable, Sequence
from datetime import date
from typing import TypeVar

from pydantic import ValidationError

from tasksync.core.config import VAULT_HANDLE_KEY
from tasksync.core.errors import MalformedRecordError, NotFoundError
from tasksync.core.tags import random_color
from tasksync.core.types import (
    Tag,
    Task,
    TaskStatus,
    TaskTag,
    format_timestamp,
    parse_timestamp,
)
from tasksync.storage import codec
from tasksync.storage.capability import HandleCache, ensure_directory, read_text, write_text

logger = logging.getLogger(__name__)

TASKS_FILE = "tasks.md"
TAGS_FILE = "tags.md"
TASK_TAGS_FILE = "tasks-tags.md"

TASK_HEADER = [
    "id",
    "title",
    "status",
    "dueDate",
    "linkedNote",
    "createdAt",
    "updatedAt",
    "completedAt",
]
TAG_HEADER = ["id", "name", "color", "createdAt", "updatedAt"]
TASK_TAG_HEADER = ["id", "taskId", "tagId", "createdAt"]

R = TypeVar("R")


def _pad(row: Sequence[str], size: int) -> list[str]:
    return list(row) + [""] * (size - len(row))


def task_to_row(task: Task) -> list[str]:
    return [
        task.id,
        task.title,
        str(int(task.status)),
        task.due_date.isoformat() if task.due_date else "",
        task.linked_note or "",
        format_timestamp(task.created_at),
        format_timestamp(task.updated_at),
        format_timestamp(task.completed_at) if task.completed_at else "",
    ]


def task_from_row(row: Sequence[str]) -> Task:
    """
    Build a Task from a decoded row.

    Raises:
        MalformedRecordError: If required fields are missing or invalid
    """
    if len(row) < 7:
        raise MalformedRecordError(f"Task row has {len(row)} fields, expected 8", list(row))
    task_id, title, status, due, note, created, updated, completed = _pad(row, 8)[:8]
    try:
        return Task(
            id=task_id,
            title=title,
            status=TaskStatus(int(status)),
            due_date=date.fromisoformat(due.strip()) if due.strip() else None,
            linked_note=note or None,
            created_at=parse_timestamp(created),
            updated_at=parse_timestamp(updated),
            completed_at=parse_timestamp(completed) if completed.strip() else None,
        )
    except (ValueError, ValidationError) as e:
        raise MalformedRecordError(f"Invalid task row {task_id!r}: {e}", list(row)) from e


def tag_to_row(tag: Tag) -> list[str]:
    return [
        tag.id,
        tag.name,
        tag.color,
        format_timestamp(tag.created_at),
        format_timestamp(tag.updated_at),
    ]


def tag_from_row(row: Sequence[str]) -> Tag:
    """Build a Tag; a missing color is randomized and updatedAt falls back to createdAt."""
    if len(row) < 4:
        raise MalformedRecordError(f"Tag row has {len(row)} fields, expected 5", list(row))
    tag_id, name, color, created, updated = _pad(row, 5)[:5]
    try:
        created_at = parse_timestamp(created)
        return Tag(
            id=tag_id,
            name=name,
            color=color or random_color(),
            created_at=created_at,
            updated_at=parse_timestamp(updated) if updated.strip() else created_at,
        )
    except (ValueError, ValidationError) as e:
        raise MalformedRecordError(f"Invalid tag row {tag_id!r}: {e}", list(row)) from e


def task_tag_to_row(link: TaskTag) -> list[str]:
    return [link.id, link.task_id, link.tag_id, format_timestamp(link.created_at)]


def task_tag_from_row(row: Sequence[str]) -> TaskTag:
    if len(row) < 4:
        raise MalformedRecordError(f"Task-tag row has {len(row)} fields, expected 4", list(row))
    link_id, task_id, tag_id, created = row[:4]
    try:
        return TaskTag(
            id=link_id,
            task_id=task_id,
            tag_id=tag_id,
            created_at=parse_timestamp(created),
        )
    except (ValueError, ValidationError) as e:
        raise MalformedRecordError(f"Invalid task-tag row {link_id!r}: {e}", list(row)) from e


def parse_records(text: str, parse_row: Callable[[Sequence[str]], R]) -> list[R]:
    """Decode text and parse each row, skipping malformed ones."""
    records: list[R] = []
    for row in codec.decode(text, header="id"):
        try:
            records.append(parse_row(row))
        except MalformedRecordError as e:
            logger.warning("Skipping malformed record: %s", e)
    return records


def format_records(header: list[str], rows: list[list[str]]) -> str:
    return codec.encode([header, *rows])


class RecordStore:
    """Reads and writes the three durable collections through a cached handle."""

    def __init__(
        self,
        handles: HandleCache,
        task_folder: str,
        key: str = VAULT_HANDLE_KEY,
    ):
        """
        Initialize record store.

        Args:
            handles: Handle cache holding the vault capability
            task_folder: Folder inside the vault for the record files
            key: Cache key of the vault handle
        """
        self.handles = handles
        self.task_folder = task_folder
        self.key = key

    async def _read(self, file_name: str) -> str | None:
        root = await self.handles.require(self.key)
        folder = await ensure_directory(root, self.task_folder)
        try:
            return await read_text(folder, file_name)
        except NotFoundError:
            logger.debug("%s/%s does not exist yet", self.task_folder, file_name)
            return None

    async def _write(self, file_name: str, content: str) -> None:
        root = await self.handles.require(self.key)
        folder = await ensure_directory(root, self.task_folder)
        await write_text(folder, file_name, content)

    async def read_tasks(self) -> list[Task]:
        text = await self._read(TASKS_FILE)
        return parse_records(text, task_from_row) if text else []

    async def write_tasks(self, tasks: list[Task]) -> None:
        await self._write(
            TASKS_FILE, format_records(TASK_HEADER, [task_to_row(t) for t in tasks])
        )

    async def read_tags(self) -> list[Tag]:
        text = await self._read(TAGS_FILE)
        return parse_records(text, tag_from_row) if text else []

    async def write_tags(self, tags: list[Tag]) -> None:
        await self._write(
            TAGS_FILE, format_records(TAG_HEADER, [tag_to_row(t) for t in tags])
        )

    async def read_task_tags(self) -> list[TaskTag]:
        text = await self._read(TASK_TAGS_FILE)
        return parse_records(text, task_tag_from_row) if text else []

    async def write_task_tags(self, task_tags: list[TaskTag]) -> None:
        await self._write(
            TASK_TAGS_FILE,
            format_records(TASK_TAG_HEADER, [task_tag_to_row(link) for link in task_tags]),
        )

    def __repr__(self) -> str:
        return f"RecordStore({self.task_folder!r})"
