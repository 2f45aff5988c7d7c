"""Reconcile local collections with the copies read back from the vault.

All merges join by id. The merged order is local records first, followed by
records that only exist in the vault, in vault order.
"""

import logging
from datetime import datetime, timedelta

from tasksync.core.config import RECENCY_WINDOW_SECONDS
from tasksync.core.types import MergeResult, Tag, Task, TaskStatus, TaskTag, utc_now

logger = logging.getLogger(__name__)

RECENCY_WINDOW = timedelta(seconds=RECENCY_WINDOW_SECONDS)


def _resolve_conflict(local: Task, durable: Task, now: datetime) -> Task:
    """Pick the winning copy of a task present on both sides."""
    # A just-edited local copy must not be clobbered by a stale vault read
    if now - local.updated_at < RECENCY_WINDOW:
        return local

    if local.updated_at > durable.updated_at:
        return local

    if durable.updated_at > local.updated_at:
        local_done = local.status == TaskStatus.COMPLETED
        durable_done = durable.status == TaskStatus.COMPLETED
        use_durable_status = (durable_done and not local_done) or (
            not local_done and not durable_done
        )
        if use_durable_status:
            return durable
        return durable.model_copy(
            update={"status": local.status, "completed_at": local.completed_at}
        )

    if local == durable:
        return local
    # Equal timestamps: vault fields, local status
    return durable.model_copy(
        update={"status": local.status, "completed_at": local.completed_at}
    )


def merge_tasks(
    local: list[Task],
    durable: list[Task],
    now: datetime | None = None,
) -> MergeResult[Task]:
    """
    Merge local tasks with the tasks read from the vault.

    Args:
        local: In-memory tasks
        durable: Tasks read from the vault
        now: Reference time for the recency window (defaults to utc_now())

    Returns:
        MergeResult whose changed flag means the local view must be refreshed
    """
    now = now or utc_now()
    merged: dict[str, Task] = {task.id: task for task in local}

    for task in durable:
        current = merged.get(task.id)
        merged[task.id] = task if current is None else _resolve_conflict(current, task, now)

    changed = len(local) != len(merged) or any(
        merged[task.id].updated_at != task.updated_at for task in local
    )
    return MergeResult(list(merged.values()), changed)


def merge_first_sync(local: list[Task], durable: list[Task]) -> MergeResult[Task]:
    """
    Bootstrap a new session against the vault.

    A non-empty vault replaces the local tasks outright; otherwise the local
    tasks seed the vault.
    """
    if durable:
        logger.info("First sync: adopting %d tasks from the vault", len(durable))
        return MergeResult(list(durable), True)
    logger.info("First sync: vault is empty, seeding it with %d local tasks", len(local))
    return MergeResult(list(local), True)


def merge_tags(local: list[Tag], durable: list[Tag]) -> MergeResult[Tag]:
    """Merge tags; on conflict the later updated_at wins outright."""
    merged: dict[str, Tag] = {tag.id: tag for tag in local}
    for tag in durable:
        current = merged.get(tag.id)
        if current is None or tag.updated_at > current.updated_at:
            merged[tag.id] = tag

    changed = len(local) != len(merged) or any(
        merged[tag.id].updated_at != tag.updated_at for tag in local
    )
    return MergeResult(list(merged.values()), changed)


def merge_task_tags(local: list[TaskTag], durable: list[TaskTag]) -> MergeResult[TaskTag]:
    """Union links by id; links are immutable so nothing is overwritten."""
    merged: dict[str, TaskTag] = {link.id: link for link in local}
    for link in durable:
        merged.setdefault(link.id, link)
    return MergeResult(list(merged.values()), len(merged) != len(local))
