"""Task operations on immutable collections.

Every function returns new objects; callers own persistence and sync.
"""

from datetime import date, datetime
from typing import Any

from tasksync.core.types import Task, TaskStatus, generate_id, utc_now

_UPDATABLE_FIELDS = frozenset({"title", "status", "due_date", "linked_note"})


def create_task(
    title: str,
    status: TaskStatus = TaskStatus.NOT_STARTED,
    due_date: date | None = None,
    linked_note: str | None = None,
    now: datetime | None = None,
) -> Task:
    """
    Create a new task stamped with created_at == updated_at == now.

    Raises:
        pydantic.ValidationError: If the title is blank
    """
    now = now or utc_now()
    return Task(
        id=generate_id("task"),
        title=title,
        status=status,
        due_date=due_date,
        linked_note=linked_note,
        created_at=now,
        updated_at=now,
        completed_at=now if status == TaskStatus.COMPLETED else None,
    )


def update_task_item(task: Task, now: datetime | None = None, **updates: Any) -> Task:
    """
    Apply updates to a single task and restamp updated_at.

    completed_at is set when the status moves into COMPLETED and cleared when
    it moves out of it.

    Raises:
        ValueError: If an unknown or immutable field is passed
    """
    unknown = set(updates) - _UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update task fields: {', '.join(sorted(unknown))}")

    now = now or utc_now()
    # Keep updated_at >= created_at even if the clock went backwards
    values = task.model_dump()
    values.update(updates, updated_at=max(now, task.created_at))

    new_status = updates.get("status")
    if new_status is not None:
        new_status = TaskStatus(new_status)
        values["status"] = new_status
        if new_status == TaskStatus.COMPLETED and task.status != TaskStatus.COMPLETED:
            values["completed_at"] = values["updated_at"]
        elif task.status == TaskStatus.COMPLETED and new_status != TaskStatus.COMPLETED:
            values["completed_at"] = None

    return Task.model_validate(values)


def update_task(
    tasks: list[Task], task_id: str, now: datetime | None = None, **updates: Any
) -> list[Task]:
    """Return tasks with the matching task updated; other tasks are untouched."""
    return [
        update_task_item(task, now=now, **updates) if task.id == task_id else task
        for task in tasks
    ]


def delete_task(tasks: list[Task], task_id: str) -> list[Task]:
    """Remove a task. Links to it are left alone and resolve to no tag."""
    return [task for task in tasks if task.id != task_id]


def find_task(tasks: list[Task], task_id: str) -> Task | None:
    return next((task for task in tasks if task.id == task_id), None)


def get_uncompleted_tasks(tasks: list[Task]) -> list[Task]:
    return [task for task in tasks if task.status != TaskStatus.COMPLETED]


def filter_tasks_by_status(tasks: list[Task], status: TaskStatus | None) -> list[Task]:
    """Filter by status; None means all."""
    if status is None:
        return list(tasks)
    return [task for task in tasks if task.status == status]


def filter_tasks_by_date(tasks: list[Task], day: date | None) -> list[Task]:
    """Tasks due on the given day; None means all."""
    if day is None:
        return list(tasks)
    return [task for task in tasks if task.due_date == day]
