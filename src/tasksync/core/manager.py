"""Task manager - the session's in-memory collections and their sync loop."""

import logging
from datetime import date
from typing import Any

from tasksync.core import tags as tag_ops
from tasksync.core import tasks as task_ops
from tasksync.core.config import SYNC_DEBOUNCE_SECONDS, VAULT_HANDLE_KEY
from tasksync.core.errors import CapabilityError, TaskSyncError
from tasksync.core.settings import AppSettings
from tasksync.core.state import StateManager
from tasksync.core.sync import SyncScheduler, sync_tags_with_vault, sync_tasks_with_vault
from tasksync.core.types import StatusChange, SyncStatus, Tag, Task, TaskStatus, TaskTag, utc_now
from tasksync.storage.capability import HandleCache
from tasksync.storage.records import RecordStore
from tasksync.vault.daily import DailyDigest
from tasksync.vault.notes import create_linked_note

logger = logging.getLogger(__name__)


class TaskManager:
    """Owns tasks, tags and links for one session.

    Mutations are applied in memory, saved to the local database and, when
    auto_sync is on, followed by a debounced sync with the vault. A sync pass
    works on each collection under its own lock; a collection's in-memory
    state only changes after its merged set has been written to the vault.

    Example:
        manager = TaskManager(state, handles, settings)
        await manager.load()
        await manager.add_task("Write report", due_date=date.today())
        await manager.sync()
    """

    def __init__(
        self,
        state: StateManager,
        handles: HandleCache,
        settings: AppSettings,
        key: str = VAULT_HANDLE_KEY,
        debounce: float = SYNC_DEBOUNCE_SECONDS,
    ):
        self.state = state
        self.handles = handles
        self.settings = settings
        self.key = key
        self.store = RecordStore(handles, settings.task_folder_path, key)
        self.digest = DailyDigest(handles, settings, key)
        self.scheduler = SyncScheduler(self.sync, debounce)

        self.tasks: list[Task] = []
        self.tags: list[Tag] = []
        self.task_tags: list[TaskTag] = []
        self.status = SyncStatus()

    async def load(self) -> None:
        """Load the local copy from the database."""
        self.tasks = await self.state.load_tasks()
        self.tags = await self.state.load_tags()
        self.task_tags = await self.state.load_task_tags()
        self.status = SyncStatus(last_synced=await self.state.get_last_synced())
        logger.debug(
            f"Loaded {len(self.tasks)} tasks, {len(self.tags)} tags, "
            f"{len(self.task_tags)} links"
        )

    def _after_mutation(self) -> None:
        if self.settings.auto_sync:
            self.scheduler.request()

    # Tasks

    def get_task(self, task_id: str) -> Task:
        task = task_ops.find_task(self.tasks, task_id)
        if task is None:
            raise ValueError(f"Unknown task: {task_id}")
        return task

    async def add_task(
        self,
        title: str,
        status: TaskStatus = TaskStatus.NOT_STARTED,
        due_date: date | None = None,
        linked_note: str | None = None,
    ) -> Task:
        """Create a task and its linked note, if any."""
        async with self.scheduler.lock("tasks"):
            task = task_ops.create_task(title, status, due_date, linked_note)
            self.tasks = [*self.tasks, task]
            await self.state.save_tasks(self.tasks)

        if task.linked_note:
            try:
                await create_linked_note(
                    self.handles,
                    self.settings.note_folder_path,
                    task.linked_note,
                    template=self.settings.note_template,
                    task=task,
                    key=self.key,
                )
            except TaskSyncError as e:
                logger.warning(f"Could not create linked note {task.linked_note!r}: {e}")

        self._after_mutation()
        return task

    async def update_task(self, task_id: str, **updates: Any) -> Task:
        async with self.scheduler.lock("tasks"):
            self.get_task(task_id)
            self.tasks = task_ops.update_task(self.tasks, task_id, **updates)
            await self.state.save_tasks(self.tasks)
        self._after_mutation()
        return self.get_task(task_id)

    async def set_status(self, task_id: str, status: TaskStatus) -> Task:
        return await self.update_task(task_id, status=status)

    async def delete_task(self, task_id: str) -> None:
        """Delete a task; its links stay and resolve to no tag."""
        async with self.scheduler.lock("tasks"):
            self.get_task(task_id)
            self.tasks = task_ops.delete_task(self.tasks, task_id)
            await self.state.save_tasks(self.tasks)
            await self.state.add_tombstones("tasks", [task_id])
        self._after_mutation()

    # Tags

    def get_tag(self, tag_id: str) -> Tag:
        tag = tag_ops.find_tag(self.tags, tag_id)
        if tag is None:
            raise ValueError(f"Unknown tag: {tag_id}")
        return tag

    def find_tag_by_name(self, name: str) -> Tag | None:
        return tag_ops.find_tag_by_name(self.tags, name)

    async def add_tag(self, name: str, color: str | None = None) -> Tag:
        """Create a tag, or return the existing one with the same name."""
        async with self.scheduler.lock("tags"):
            self.tags, tag = tag_ops.create_tag(self.tags, name, color)
            await self.state.save_tags(self.tags)
        self._after_mutation()
        return tag

    async def update_tag(
        self, tag_id: str, name: str | None = None, color: str | None = None
    ) -> Tag:
        async with self.scheduler.lock("tags"):
            self.get_tag(tag_id)
            self.tags = tag_ops.update_tag(self.tags, tag_id, name=name, color=color)
            await self.state.save_tags(self.tags)
        self._after_mutation()
        return self.get_tag(tag_id)

    async def delete_tag(self, tag_id: str) -> None:
        """Delete a tag and every link to it."""
        async with self.scheduler.lock("tags"):
            self.get_tag(tag_id)
            removed = [link.id for link in self.task_tags if link.tag_id == tag_id]
            self.tags, self.task_tags = tag_ops.delete_tag(self.tags, self.task_tags, tag_id)
            await self.state.save_tags(self.tags)
            await self.state.save_task_tags(self.task_tags)
            await self.state.add_tombstones("tags", [tag_id])
            await self.state.add_tombstones("task_tags", removed)
        self._after_mutation()

    async def add_tag_to_task(self, task_id: str, tag_id: str) -> None:
        self.get_task(task_id)
        async with self.scheduler.lock("tags"):
            self.get_tag(tag_id)
            self.task_tags = tag_ops.add_tag_to_task(self.task_tags, task_id, tag_id)
            await self.state.save_task_tags(self.task_tags)
        self._after_mutation()

    async def remove_tag_from_task(self, task_id: str, tag_id: str) -> None:
        async with self.scheduler.lock("tags"):
            removed = [link.id for link in tag_ops.links_between(self.task_tags, task_id, tag_id)]
            if not removed:
                return
            self.task_tags = tag_ops.remove_tag_from_task(self.task_tags, task_id, tag_id)
            await self.state.save_task_tags(self.task_tags)
            await self.state.add_tombstones("task_tags", removed)
        self._after_mutation()

    def tags_for_task(self, task_id: str) -> list[Tag]:
        return tag_ops.tags_for_task(self.tags, self.task_tags, task_id)

    async def prune_orphans(self) -> list[TaskTag]:
        """Remove links whose task or tag no longer exists."""
        async with self.scheduler.lock("tags"):
            kept, removed = tag_ops.prune_orphan_task_tags(self.task_tags, self.tasks, self.tags)
            if removed:
                self.task_tags = kept
                await self.state.save_task_tags(self.task_tags)
                await self.state.add_tombstones("task_tags", [link.id for link in removed])
                logger.info(f"Pruned {len(removed)} orphaned links")
        if removed:
            self._after_mutation()
        return removed

    # Sync

    async def pending_status_changes(self) -> list[StatusChange]:
        """Status edits in today's note that have not been synced yet."""
        if not self.digest.enabled:
            return []
        day = date.today()
        rendered = await self.state.get_rendered_statuses(day)
        return await self.digest.changes(self.tasks, day, rendered)

    async def sync(self) -> SyncStatus:
        """
        Run a full pass: daily note edits, tasks, tags, then the daily note.

        Returns:
            The new SyncStatus

        Raises:
            CapabilityError: The vault must be selected again
            TaskSyncError: Reading or writing the vault failed
        """
        self.status = self.status.model_copy(update={"is_syncing": True, "error": None})
        day = date.today()
        try:
            await self._sync_tasks(day)
            await self._sync_tags()
            if self.digest.enabled:
                await self._update_digest(day)
        except CapabilityError as e:
            logger.warning(f"Sync needs the vault selected again: {e}")
            self.status = self.status.model_copy(
                update={"is_syncing": False, "error": str(e), "needs_reselection": True}
            )
            raise
        except TaskSyncError as e:
            logger.error(f"Sync failed: {e}", exc_info=True)
            self.status = self.status.model_copy(
                update={"is_syncing": False, "error": str(e)}
            )
            raise
        except Exception as e:
            logger.error(f"Unexpected sync failure: {e}", exc_info=True)
            self.status = self.status.model_copy(
                update={"is_syncing": False, "error": str(e)}
            )
            raise

        now = utc_now()
        await self.state.set_last_synced(now)
        self.status = SyncStatus(last_synced=now)
        return self.status

    async def _sync_tasks(self, day: date) -> None:
        async with self.scheduler.lock("tasks"):
            first = await self.state.is_first_sync()
            candidate = self.tasks
            if self.digest.enabled and not first:
                rendered = await self.state.get_rendered_statuses(day)
                edited = await self.digest.detect(candidate, day, rendered=rendered)
                detected = {task.id: task for task in edited}
                candidate = [detected.get(task.id, task) for task in candidate]

            deleted = await self.state.get_tombstones("tasks")
            result = await sync_tasks_with_vault(self.store, candidate, first, deleted)

            self.tasks = result.merged
            await self.state.save_tasks(self.tasks)
            await self.state.clear_tombstones("tasks", deleted)
            if first:
                await self.state.set_first_sync(False)

    async def _update_digest(self, day: date) -> None:
        """Write the digest and remember the statuses it shows."""
        async with self.scheduler.lock("tasks"):
            await self.digest.update(self.tasks, day)
            rendered = {task.id: task.status for task in self.digest.select(self.tasks, day)}
            await self.state.set_rendered_statuses(day, rendered)

    async def _sync_tags(self) -> None:
        async with self.scheduler.lock("tags"):
            deleted_tags = await self.state.get_tombstones("tags")
            deleted_links = await self.state.get_tombstones("task_tags")
            tag_result, link_result = await sync_tags_with_vault(
                self.store, self.tags, self.task_tags, deleted_tags, deleted_links
            )

            self.tags = tag_result.merged
            self.task_tags = link_result.merged
            await self.state.save_tags(self.tags)
            await self.state.save_task_tags(self.task_tags)
            await self.state.clear_tombstones("tags", deleted_tags)
            await self.state.clear_tombstones("task_tags", deleted_links)

    async def close(self) -> None:
        """Finish or drop pending scheduled syncs."""
        await self.scheduler.close()
