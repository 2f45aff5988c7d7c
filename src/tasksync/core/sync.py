"""Sync passes against the vault and the debounced scheduler that runs them."""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable, Collection
from typing import Any

from tasksync.core.config import SYNC_DEBOUNCE_SECONDS
from tasksync.core.merge import merge_first_sync, merge_tags, merge_task_tags, merge_tasks
from tasksync.core.types import MergeResult, Tag, Task, TaskTag
from tasksync.storage.records import RecordStore

logger = logging.getLogger(__name__)


async def sync_tasks_with_vault(
    store: RecordStore,
    local: list[Task],
    is_first_sync: bool = False,
    deleted: Collection[str] = (),
) -> MergeResult[Task]:
    """
    Run one task pass: read the vault, merge, write the merged set back.

    Args:
        store: Record store for the vault
        local: In-memory tasks
        is_first_sync: Bootstrap mode, the vault wins if it has any tasks
        deleted: Ids deleted locally since the last pass; dropped from the vault

    Returns:
        MergeResult; changed means the local view must be refreshed

    Raises:
        CapabilityError: If the vault must be selected again
        WriteFailureError: If writing the merged set failed
    """
    durable = await store.read_tasks()
    if deleted:
        durable = [task for task in durable if task.id not in deleted]
    logger.info(f"Task sync: local={len(local)}, vault={len(durable)}")

    if is_first_sync:
        result = merge_first_sync(local, durable)
    else:
        result = merge_tasks(local, durable)

    await store.write_tasks(result.merged)
    logger.info(f"Task sync merged {len(result.merged)} tasks (changed={result.changed})")

    changed = result.changed or len(local) != len(result.merged)
    return MergeResult(result.merged, changed)


async def sync_tags_with_vault(
    store: RecordStore,
    tags: list[Tag],
    task_tags: list[TaskTag],
    deleted_tags: Collection[str] = (),
    deleted_links: Collection[str] = (),
) -> tuple[MergeResult[Tag], MergeResult[TaskTag]]:
    """
    Run one tag pass over tags and task-tag links.

    Returns:
        (tag result, link result)
    """
    durable_tags = [tag for tag in await store.read_tags() if tag.id not in deleted_tags]
    durable_links = [
        link
        for link in await store.read_task_tags()
        if link.id not in deleted_links and link.tag_id not in deleted_tags
    ]
    logger.info(
        f"Tag sync: local={len(tags)}/{len(task_tags)}, "
        f"vault={len(durable_tags)}/{len(durable_links)}"
    )

    tag_result = merge_tags(tags, durable_tags)
    link_result = merge_task_tags(task_tags, durable_links)

    await store.write_tags(tag_result.merged)
    await store.write_task_tags(link_result.merged)
    logger.info(
        f"Tag sync merged {len(tag_result.merged)} tags, "
        f"{len(link_result.merged)} links"
    )
    return tag_result, link_result


class SyncScheduler:
    """Serializes sync passes and debounces sync requests.

    ``lock(collection)`` gives one asyncio.Lock per collection key so two
    passes over the same collection never overlap. ``request()`` arms a
    delayed run of the callback; a new request before the delay elapses
    replaces the pending one. A run that has started is never cancelled.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[Any]],
        delay: float = SYNC_DEBOUNCE_SECONDS,
    ):
        self._callback = callback
        self.delay = delay
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._pending: asyncio.Task | None = None
        self._active: set[asyncio.Task] = set()

    def lock(self, collection: str) -> asyncio.Lock:
        return self._locks[collection]

    @property
    def pending(self) -> bool:
        """True while a requested run is waiting or running."""
        return bool(self._active)

    def request(self) -> None:
        """Arm a debounced run; must be called from a running event loop."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        task = asyncio.get_running_loop().create_task(self._run())
        self._pending = task
        self._active.add(task)
        task.add_done_callback(self._active.discard)

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        if self._pending is asyncio.current_task():
            self._pending = None
        try:
            await self._callback()
        except Exception:
            logger.error("Scheduled sync failed", exc_info=True)

    async def flush(self) -> None:
        """Wait for every requested run to finish."""
        while self._active:
            await asyncio.gather(*list(self._active), return_exceptions=True)

    async def close(self) -> None:
        """Drop a run that has not started and wait for a running one."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        await self.flush()
