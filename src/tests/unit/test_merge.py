"""Tests for tasksync.core.merge module."""

from datetime import timedelta

from tasksync.core.merge import merge_first_sync, merge_tags, merge_task_tags, merge_tasks
from tasksync.core.types import TaskStatus


class TestMergeTasks:
    """Tests for merge_tasks."""

    def test_merge_with_itself_is_unchanged(self, make_task, now):
        """Merging a collection with an identical copy changes nothing."""
        tasks = [make_task("task-1"), make_task("task-2", title="Walk dog")]

        result = merge_tasks(tasks, list(tasks), now=now)

        assert result.merged == tasks
        assert result.changed is False

    def test_local_only_task_is_kept(self, make_task, now):
        """Tasks only present locally survive."""
        local = [make_task("task-1")]

        result = merge_tasks(local, [], now=now)

        assert result.merged == local
        assert result.changed is False

    def test_durable_only_task_is_adopted(self, make_task, now):
        """Tasks only present in the vault are added after local ones."""
        local = [make_task("task-1")]
        durable = [make_task("task-2", title="From vault")]

        result = merge_tasks(local, durable, now=now)

        assert [t.id for t in result.merged] == ["task-1", "task-2"]
        assert result.changed is True

    def test_recent_local_edit_wins(self, make_task, now):
        """A local task touched within 60s wins over a newer vault copy."""
        local = make_task(title="Local", updated=now - timedelta(seconds=30))
        durable = make_task(
            title="Vault", status=TaskStatus.COMPLETED, updated=now - timedelta(seconds=5)
        )

        result = merge_tasks([local], [durable], now=now)

        assert result.merged == [local]
        assert result.changed is False

    def test_newer_local_wins(self, make_task, now):
        """Outside the window, the newer local copy wins."""
        local = make_task(title="Local", updated=now - timedelta(minutes=5))
        durable = make_task(title="Vault", updated=now - timedelta(minutes=10))

        result = merge_tasks([local], [durable], now=now)

        assert result.merged == [local]

    def test_newer_durable_wins(self, make_task, now):
        """Outside the window, the newer vault copy wins."""
        local = make_task(title="Local", updated=now - timedelta(minutes=10))
        durable = make_task(
            title="Vault", status=TaskStatus.IN_PROGRESS, updated=now - timedelta(minutes=5)
        )

        result = merge_tasks([local], [durable], now=now)

        assert result.merged == [durable]
        assert result.changed is True

    def test_durable_completed_is_adopted(self, make_task, now):
        """Local NotStarted at T-120s, vault Completed at T-10s -> Completed."""
        local = make_task(updated=now - timedelta(seconds=120))
        completed_at = now - timedelta(seconds=10)
        durable = make_task(
            status=TaskStatus.COMPLETED,
            updated=now - timedelta(seconds=10),
            completed_at=completed_at,
        )

        result = merge_tasks([local], [durable], now=now)

        merged = result.merged[0]
        assert merged.status == TaskStatus.COMPLETED
        assert merged.completed_at == completed_at

    def test_local_completed_is_sticky(self, make_task, now):
        """A newer non-completed vault copy cannot revert local Completed."""
        done_at = now - timedelta(minutes=20)
        local = make_task(
            status=TaskStatus.COMPLETED,
            updated=now - timedelta(minutes=20),
            completed_at=done_at,
        )
        durable = make_task(title="Renamed", updated=now - timedelta(minutes=5))

        result = merge_tasks([local], [durable], now=now)

        merged = result.merged[0]
        assert merged.title == "Renamed"
        assert merged.status == TaskStatus.COMPLETED
        assert merged.completed_at == done_at

    def test_equal_timestamps_local_status_wins(self, make_task, now):
        """Equal timestamps: vault fields, local status."""
        stamp = now - timedelta(minutes=5)
        local = make_task(title="Local", status=TaskStatus.IN_PROGRESS, updated=stamp)
        durable = make_task(title="Vault", updated=stamp)

        result = merge_tasks([local], [durable], now=now)

        merged = result.merged[0]
        assert merged.title == "Vault"
        assert merged.status == TaskStatus.IN_PROGRESS

    def test_equal_timestamps_never_revert_completed(self, make_task, now):
        """An equal-timestamp vault copy cannot revert local Completed."""
        stamp = now - timedelta(minutes=5)
        local = make_task(status=TaskStatus.COMPLETED, updated=stamp)
        durable = make_task(status=TaskStatus.NOT_STARTED, updated=stamp)

        result = merge_tasks([local], [durable], now=now)

        assert result.merged[0].status == TaskStatus.COMPLETED
        assert result.merged[0].completed_at == local.completed_at

    def test_defaults_to_current_time(self, make_task):
        """Without now, the recency window uses the current time."""
        old = make_task(title="Local")
        newer = make_task(title="Vault", updated=old.updated_at + timedelta(minutes=1))

        result = merge_tasks([old], [newer])

        assert result.merged[0].title == "Vault"


class TestMergeFirstSync:
    """Tests for merge_first_sync."""

    def test_vault_replaces_local(self, make_task):
        """A non-empty vault wins outright."""
        local = [make_task("task-1", title="Local")]
        durable = [make_task("task-9", title="Vault")]

        result = merge_first_sync(local, durable)

        assert result.merged == durable
        assert result.changed is True

    def test_empty_vault_is_seeded(self, make_task):
        """An empty vault takes the local tasks."""
        local = [make_task("task-1"), make_task("task-2", title="Walk dog")]

        result = merge_first_sync(local, [])

        assert result.merged == local
        assert result.changed is True


class TestMergeTags:
    """Tests for merge_tags and merge_task_tags."""

    def test_newer_tag_wins(self, make_tag, now):
        """The tag with the later updated_at wins outright."""
        local = make_tag(name="Work", updated=now - timedelta(hours=2))
        durable = make_tag(name="Office", updated=now - timedelta(hours=1))

        result = merge_tags([local], [durable])

        assert result.merged == [durable]
        assert result.changed is True

    def test_older_durable_tag_loses(self, make_tag, now):
        """An older vault tag does not overwrite the local one."""
        local = make_tag(name="Work", updated=now - timedelta(seconds=1))
        durable = make_tag(name="Office", updated=now - timedelta(hours=1))

        result = merge_tags([local], [durable])

        assert result.merged == [local]
        assert result.changed is False

    def test_links_are_unioned(self, make_link):
        """Links from both sides are kept, never overwritten."""
        local = [make_link("tasktag-1", "task-1", "tag-1")]
        durable = [
            make_link("tasktag-1", "task-1", "tag-2"),
            make_link("tasktag-2", "task-2", "tag-1"),
        ]

        result = merge_task_tags(local, durable)

        assert result.merged == [local[0], durable[1]]
        assert result.changed is True
