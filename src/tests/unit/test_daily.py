"""Tests for the daily digest note."""

from datetime import date

import pytest

from tasksync.core.settings import DEFAULT_DAILY_NOTE_TEMPLATE
from tasksync.core.types import TaskStatus
from tasksync.vault.daily import (
    DailyDigest,
    daily_note_path,
    digest_tasks,
    expand_template,
    find_status_changes,
    format_date,
    parse_task_line,
    render_document,
    render_section,
    render_task_line,
)

DAY = date(2024, 5, 1)
HEADING = "## Tasks"


class TestDates:
    """Tests for date formatting and templates."""

    @pytest.mark.parametrize(
        "pattern,expected",
        [
            ("YYYY-MM-DD", "2024-05-07"),
            ("D/M/YYYY", "7/5/2024"),
            ("DD.MM", "07.05"),
            ("YYYY", "2024"),
        ],
    )
    def test_format_date(self, pattern, expected):
        """Tokens are substituted without touching each other's output."""
        assert format_date(date(2024, 5, 7), pattern) == expected

    def test_daily_note_path(self):
        """Folder slashes are normalized."""
        assert daily_note_path("/Daily/", DAY, "YYYY-MM-DD") == "Daily/2024-05-01.md"

    def test_expand_template(self):
        """{{date}} uses the note pattern, {{date:FMT}} its own."""
        text = expand_template("{{date}} / {{date:D.M}}", date(2024, 5, 7), "YYYY-MM-DD")

        assert text == "2024-05-07 / 7.5"


class TestRendering:
    """Tests for rendering the managed section."""

    def test_task_line_with_markers(self, make_task):
        """Due date and note markers are appended when present."""
        task = make_task(title="Write report", due_date=DAY, linked_note="Plan")

        assert render_task_line(task) == "- [ ] Write report 📅 2024-05-01 📎 [[Plan]]"

    def test_task_line_status_marks(self, make_task):
        """In-progress renders as [/]."""
        assert render_task_line(make_task(status=TaskStatus.IN_PROGRESS)) == "- [/] Buy milk"

    def test_empty_section(self):
        """No tasks renders a placeholder line."""
        assert render_section(HEADING, []) == "## Tasks\n\nNo tasks for today.\n"

    def test_new_note_from_template(self, make_task):
        """A missing note is created from the template with the section filled in."""
        document = render_document(
            None, [make_task()], HEADING, DEFAULT_DAILY_NOTE_TEMPLATE, DAY, "YYYY-MM-DD"
        )

        assert document == "# 2024-05-01\n\n## Tasks\n\n- [ ] Buy milk\n\n## Notes\n\n"

    def test_rerender_is_idempotent(self, make_task):
        """Rendering the same tasks into the result changes nothing."""
        tasks = [make_task("task-1"), make_task("task-2", title="Walk dog", due_date=DAY)]
        first = render_document(
            None, tasks, HEADING, DEFAULT_DAILY_NOTE_TEMPLATE, DAY, "YYYY-MM-DD"
        )

        second = render_document(
            first, tasks, HEADING, DEFAULT_DAILY_NOTE_TEMPLATE, DAY, "YYYY-MM-DD"
        )

        assert second == first

    def test_section_appended_when_missing(self, make_task):
        """User text is kept and the section is appended after a blank line."""
        existing = "# My day\n\nSome text\n"

        document = render_document(existing, [make_task()], HEADING, "", DAY, "YYYY-MM-DD")

        assert document == "# My day\n\nSome text\n\n## Tasks\n\n- [ ] Buy milk\n"

    def test_only_section_is_replaced(self, make_task):
        """Text before and after the section survives byte for byte."""
        existing = "intro\n## Tasks\n\n- [ ] Old task\n\n## Journal\nDear diary\n"

        document = render_document(existing, [make_task()], HEADING, "", DAY, "YYYY-MM-DD")

        assert document == "intro\n## Tasks\n\n- [ ] Buy milk\n\n## Journal\nDear diary\n"


class TestStatusDetection:
    """Tests for reading checkbox edits back."""

    def test_parse_task_line_strips_markers(self):
        """The title ends at the first marker."""
        assert parse_task_line("- [x] Write report 📅 2024-05-01 📎 [[Plan]]") == (
            "x",
            "Write report",
        )
        assert parse_task_line("Not a task") is None

    def test_checked_box_completes_task(self, make_task):
        """'- [x] Buy milk' marks the open task Buy milk completed."""
        document = "## Tasks\n\n- [x] Buy milk\n"

        changes = find_status_changes(document, HEADING, [make_task()])

        assert len(changes) == 1
        assert changes[0].old_status == TaskStatus.NOT_STARTED
        assert changes[0].new_status == TaskStatus.COMPLETED

    def test_exact_match_beats_containment(self, make_task):
        """A task whose title is a prefix of another matches its own line."""
        tasks = [
            make_task("task-1", title="Buy milk"),
            make_task("task-2", title="Buy milk and eggs"),
        ]
        document = "## Tasks\n\n- [ ] Buy milk and eggs\n- [x] Buy milk\n"

        changes = find_status_changes(document, HEADING, tasks)

        assert [c.task_id for c in changes] == ["task-1"]

    def test_containment_fallback(self, make_task):
        """A line with extra text still matches by containment."""
        document = "## Tasks\n\n- [/] Buy milk (2 litres)\n"

        changes = find_status_changes(document, HEADING, [make_task()])

        assert changes[0].new_status == TaskStatus.IN_PROGRESS

    def test_lines_outside_section_ignored(self, make_task):
        """Checkboxes under other headings are not read."""
        document = "## Tasks\n\n- [ ] Buy milk\n\n## Shopping\n- [x] Buy milk\n"

        assert find_status_changes(document, HEADING, [make_task()]) == []

    def test_unknown_mark_ignored(self, make_task):
        """Marks other than ' ', '/', '-', 'x' are skipped."""
        document = "## Tasks\n\n- [?] Buy milk\n"

        assert find_status_changes(document, HEADING, [make_task()]) == []

    def test_app_edit_since_render_is_kept(self, make_task):
        """A line still showing the rendered mark is not an edit."""
        task = make_task(status=TaskStatus.COMPLETED)
        document = "## Tasks\n\n- [ ] Buy milk\n"
        rendered = {task.id: TaskStatus.NOT_STARTED}

        assert find_status_changes(document, HEADING, [task], rendered) == []

    def test_mark_changed_since_render_is_an_edit(self, make_task):
        """A mark that differs from the rendered one is read back."""
        task = make_task(status=TaskStatus.IN_PROGRESS)
        document = "## Tasks\n\n- [x] Buy milk\n"
        rendered = {task.id: TaskStatus.NOT_STARTED}

        [change] = find_status_changes(document, HEADING, [task], rendered)

        assert change.old_status == TaskStatus.IN_PROGRESS
        assert change.new_status == TaskStatus.COMPLETED

    def test_unrendered_task_is_not_an_edit(self, make_task):
        """With a render record, lines for tasks it never listed are skipped."""
        document = "## Tasks\n\n- [x] Buy milk\n"

        assert find_status_changes(document, HEADING, [make_task()], {}) == []

    def test_digest_filter(self, make_task):
        """Completed tasks are never listed; include_all widens beyond today."""
        tasks = [
            make_task("task-1", due_date=DAY),
            make_task("task-2"),
            make_task("task-3", status=TaskStatus.COMPLETED, due_date=DAY),
        ]

        assert [t.id for t in digest_tasks(tasks, DAY, False)] == ["task-1"]
        assert [t.id for t in digest_tasks(tasks, DAY, True)] == ["task-1", "task-2"]


class TestDailyDigest:
    """Tests for DailyDigest against a temporary vault."""

    @pytest.mark.asyncio
    async def test_update_writes_note(self, make_handles, settings, make_task, vault_dir):
        """The note is written under the daily folder."""
        digest = DailyDigest(await make_handles(), settings)

        await digest.update([make_task()], day=DAY)

        text = (vault_dir / "Daily" / "2024-05-01.md").read_text()
        assert "- [ ] Buy milk\n" in text

    @pytest.mark.asyncio
    async def test_update_twice_is_stable(self, make_handles, settings, make_task):
        """A second update with the same tasks yields the same note."""
        digest = DailyDigest(await make_handles(), settings)
        tasks = [make_task()]

        first = await digest.update(tasks, day=DAY)
        second = await digest.update(tasks, day=DAY)

        assert first == second

    @pytest.mark.asyncio
    async def test_detect_hand_edit(self, make_handles, settings, make_task, vault_dir, now):
        """Ticking a box in the note is returned as an updated task."""
        digest = DailyDigest(await make_handles(), settings)
        task = make_task()
        await digest.update([task], day=DAY)
        path = vault_dir / "Daily" / "2024-05-01.md"
        path.write_text(path.read_text().replace("- [ ] Buy milk", "- [x] Buy milk"))

        [updated] = await digest.detect([task], day=DAY, now=now)

        assert updated.status == TaskStatus.COMPLETED
        assert updated.completed_at == now

    @pytest.mark.asyncio
    async def test_detect_keeps_status_set_after_render(
        self, make_handles, settings, make_task, now
    ):
        """Completing the task in the app after rendering is not undone."""
        digest = DailyDigest(await make_handles(), settings)
        task = make_task()
        await digest.update([task], day=DAY)
        rendered = {t.id: t.status for t in digest.select([task], day=DAY)}
        completed = task.model_copy(update={"status": TaskStatus.COMPLETED})

        assert await digest.detect([completed], day=DAY, now=now, rendered=rendered) == []

    @pytest.mark.asyncio
    async def test_missing_note_detects_nothing(self, make_handles, settings, make_task):
        """No note means no changes."""
        digest = DailyDigest(await make_handles(), settings)

        assert await digest.detect([make_task()], day=DAY) == []
        assert await digest.changes([make_task()], day=DAY) == []
