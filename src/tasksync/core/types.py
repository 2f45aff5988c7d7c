"""Shared types and data structures for tasksync."""

from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import IntEnum, StrEnum
from typing import Generic, TypeVar

from pydantic import BaseModel, field_validator, model_validator

__all__ = [
    "AccessMode",
    "AccessState",
    "MergeResult",
    "StatusChange",
    "SyncStatus",
    "Tag",
    "Task",
    "TaskStatus",
    "TaskTag",
    "format_timestamp",
    "generate_id",
    "parse_timestamp",
    "utc_now",
]

_ID_ALPHABET = string.ascii_lowercase + string.digits


def utc_now() -> datetime:
    """Current UTC time, truncated to milliseconds so it survives the file format."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def format_timestamp(value: datetime) -> str:
    """Format a timestamp as ISO 8601 UTC with milliseconds and a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def parse_timestamp(text: str) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    value = datetime.fromisoformat(text.strip().replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_ID_ALPHABET[26 + rem] if rem < 10 else _ID_ALPHABET[rem - 10])
    return "".join(reversed(digits)) or "0"


def generate_id(prefix: str) -> str:
    """Generate an id like ``task-lx3k9a0c-4fz81q``."""
    stamp = _to_base36(time.time_ns() // 1_000_000)
    random_part = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"{prefix}-{stamp}-{random_part}"


class TaskStatus(IntEnum):
    """Task lifecycle status, stored as its ordinal."""

    NOT_STARTED = 1
    IN_PROGRESS = 2
    COMPLETED = 3

    @property
    def mark(self) -> str:
        """Checkbox mark used in the daily note."""
        return {
            TaskStatus.NOT_STARTED: " ",
            TaskStatus.IN_PROGRESS: "/",
            TaskStatus.COMPLETED: "x",
        }[self]

    @classmethod
    def from_mark(cls, mark: str) -> TaskStatus | None:
        """Map a checkbox mark back to a status, or None if unknown."""
        if mark in ("x", "X"):
            return cls.COMPLETED
        if mark in ("/", "-"):
            return cls.IN_PROGRESS
        if mark == " ":
            return cls.NOT_STARTED
        return None


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Task(BaseModel, frozen=True):
    """A task record, identical in the local and durable copies."""

    id: str
    title: str
    status: TaskStatus = TaskStatus.NOT_STARTED
    due_date: date | None = None
    linked_note: str | None = None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None

    @field_validator("id")
    @classmethod
    def _validate_id(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("id must not be empty")
        return value.strip()

    @field_validator("title")
    @classmethod
    def _validate_title(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("title must not be empty")
        return value.strip()

    @field_validator("linked_note")
    @classmethod
    def _blank_note_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    @field_validator("created_at", "updated_at", "completed_at")
    @classmethod
    def _normalize_timestamp(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @model_validator(mode="after")
    def _check_timestamps(self) -> Task:
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not be earlier than created_at")
        return self

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED


class Tag(BaseModel, frozen=True):
    """A tag; names are unique case-insensitively."""

    id: str
    name: str
    color: str
    created_at: datetime
    updated_at: datetime

    @field_validator("id", "name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @field_validator("created_at", "updated_at")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return _as_utc(value)


class TaskTag(BaseModel, frozen=True):
    """Link between a task and a tag. Immutable once created."""

    id: str
    task_id: str
    tag_id: str
    created_at: datetime

    @field_validator("id", "task_id", "tag_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @field_validator("created_at")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return _as_utc(value)


class AccessMode(StrEnum):
    """Access requested from a capability handle."""

    READ = "read"
    READWRITE = "readwrite"


class AccessState(StrEnum):
    """Answer of a capability handle to an access check."""

    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"


T = TypeVar("T")


@dataclass(frozen=True)
class MergeResult(Generic[T]):
    """Outcome of reconciling a local collection with the durable one.

    ``changed`` means the local view must be refreshed; the durable file is
    rewritten from ``merged`` either way.
    """

    merged: list[T] = field(default_factory=list)
    changed: bool = False


@dataclass(frozen=True)
class StatusChange:
    """A status edit read back from the daily note."""

    task_id: str
    title: str
    old_status: TaskStatus
    new_status: TaskStatus


class SyncStatus(BaseModel, frozen=True):
    """Observable state of the sync loop.

    ``is_syncing`` (pending) and ``error`` (failed) are tracked separately.
    """

    is_syncing: bool = False
    last_synced: datetime | None = None
    error: str | None = None
    needs_reselection: bool = False
