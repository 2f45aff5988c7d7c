"""Tag and task-tag link operations."""

import random
from datetime import datetime

from tasksync.core.types import Tag, Task, TaskTag, generate_id, utc_now


def normalize_tag_name(name: str) -> str:
    return name.strip().lower()


def random_color() -> str:
    """Random display color like #3fa2c1."""
    return f"#{random.randint(0, 0xFFFFFF):06x}"


def find_tag_by_name(tags: list[Tag], name: str) -> Tag | None:
    """Case-insensitive lookup by name."""
    normalized = normalize_tag_name(name)
    return next((tag for tag in tags if tag.name.lower() == normalized), None)


def find_tag(tags: list[Tag], tag_id: str) -> Tag | None:
    return next((tag for tag in tags if tag.id == tag_id), None)


def filter_tags_by_name(tags: list[Tag], query: str) -> list[Tag]:
    """Tags whose name contains query, case-insensitively; blank query returns all."""
    if not query or not query.strip():
        return list(tags)
    normalized = normalize_tag_name(query)
    return [tag for tag in tags if normalized in tag.name.lower()]


def create_tag(
    tags: list[Tag], name: str, color: str | None = None, now: datetime | None = None
) -> tuple[list[Tag], Tag]:
    """
    Create a tag unless one with the same name exists.

    Args:
        tags: Current tags
        name: Display name; compared case-insensitively
        color: Display color (random if omitted)
        now: Creation time

    Returns:
        (tags, tag) where tag is the new tag or the existing match

    Raises:
        ValueError: If the name is blank
    """
    if not name or not name.strip():
        raise ValueError("Tag name must not be empty")

    existing = find_tag_by_name(tags, name)
    if existing is not None:
        return list(tags), existing

    now = now or utc_now()
    tag = Tag(
        id=generate_id("tag"),
        name=name.strip(),
        color=color or random_color(),
        created_at=now,
        updated_at=now,
    )
    return [*tags, tag], tag


def update_tag(
    tags: list[Tag],
    tag_id: str,
    name: str | None = None,
    color: str | None = None,
    now: datetime | None = None,
) -> list[Tag]:
    """
    Rename or recolor a tag and restamp updated_at.

    Raises:
        ValueError: If the new name is blank or taken by another tag
    """
    if name is not None:
        if not name.strip():
            raise ValueError("Tag name must not be empty")
        clash = find_tag_by_name(tags, name)
        if clash is not None and clash.id != tag_id:
            raise ValueError(f"Tag {clash.name!r} already exists")

    now = now or utc_now()
    updated = []
    for tag in tags:
        if tag.id == tag_id:
            changes = {"updated_at": max(now, tag.created_at)}
            if name is not None:
                changes["name"] = name.strip()
            if color is not None:
                changes["color"] = color
            tag = Tag.model_validate({**tag.model_dump(), **changes})
        updated.append(tag)
    return updated


def delete_tag(
    tags: list[Tag], task_tags: list[TaskTag], tag_id: str
) -> tuple[list[Tag], list[TaskTag]]:
    """Remove a tag and every link that references it."""
    return (
        [tag for tag in tags if tag.id != tag_id],
        [link for link in task_tags if link.tag_id != tag_id],
    )


def add_tag_to_task(
    task_tags: list[TaskTag], task_id: str, tag_id: str, now: datetime | None = None
) -> list[TaskTag]:
    """Link a tag to a task; linking an already linked pair is a no-op."""
    if any(link.task_id == task_id and link.tag_id == tag_id for link in task_tags):
        return list(task_tags)
    link = TaskTag(
        id=generate_id("tasktag"),
        task_id=task_id,
        tag_id=tag_id,
        created_at=now or utc_now(),
    )
    return [*task_tags, link]


def remove_tag_from_task(
    task_tags: list[TaskTag], task_id: str, tag_id: str
) -> list[TaskTag]:
    return [
        link
        for link in task_tags
        if not (link.task_id == task_id and link.tag_id == tag_id)
    ]


def links_between(task_tags: list[TaskTag], task_id: str, tag_id: str) -> list[TaskTag]:
    return [link for link in task_tags if link.task_id == task_id and link.tag_id == tag_id]


def tags_for_task(tags: list[Tag], task_tags: list[TaskTag], task_id: str) -> list[Tag]:
    """Resolve the tags of a task, skipping links to unknown tags."""
    by_id = {tag.id: tag for tag in tags}
    result: list[Tag] = []
    seen: set[str] = set()
    for link in task_tags:
        if link.task_id != task_id or link.tag_id in seen:
            continue
        tag = by_id.get(link.tag_id)
        if tag is not None:
            seen.add(tag.id)
            result.append(tag)
    return result


def tasks_for_tag(tasks: list[Task], task_tags: list[TaskTag], tag_id: str) -> list[Task]:
    linked = {link.task_id for link in task_tags if link.tag_id == tag_id}
    return [task for task in tasks if task.id in linked]


def prune_orphan_task_tags(
    task_tags: list[TaskTag], tasks: list[Task], tags: list[Tag] | None = None
) -> tuple[list[TaskTag], list[TaskTag]]:
    """
    Split links into (kept, removed), removing those whose task is gone.

    When tags is given, links to unknown tags are removed too.
    """
    task_ids = {task.id for task in tasks}
    tag_ids = {tag.id for tag in tags} if tags is not None else None
    kept: list[TaskTag] = []
    removed: list[TaskTag] = []
    for link in task_tags:
        orphan = link.task_id not in task_ids or (
            tag_ids is not None and link.tag_id not in tag_ids
        )
        (removed if orphan else kept).append(link)
    return kept, removed
