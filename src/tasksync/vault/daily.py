"""Daily digest note - a checklist of open tasks inside the day's note.

The digest owns one section of the note: from the configured heading line up
to the next markdown heading (or the end of the note). Everything outside
that range belongs to the user and is preserved verbatim. Re-rendering the
same tasks reproduces the section byte for byte, and checkbox edits made by
hand are read back as status changes.

Example of a rendered section:

    ## Tasks

    - [ ] Write report 📅 2024-05-01 📎 [[Quarterly Report]]
    - [/] Review PR
"""

import logging
import re
from datetime import date, datetime

from tasksync.core.config import VAULT_HANDLE_KEY
from tasksync.core.errors import NotFoundError
from tasksync.core.settings import AppSettings
from tasksync.core.tasks import get_uncompleted_tasks, update_task_item
from tasksync.core.types import StatusChange, Task, TaskStatus
from tasksync.storage.capability import HandleCache, read_text, write_text
from tasksync.vault.links import to_wiki_link

logger = logging.getLogger(__name__)

EMPTY_SECTION_TEXT = "No tasks for today."
DUE_MARKER = "📅"
NOTE_MARKER = "📎"

_DATE_TOKENS = re.compile(r"YYYY|MM|DD|M|D")
_DATE_PLACEHOLDER = re.compile(r"\{\{date(?::([^}]*))?\}\}")
_HEADING = re.compile(r"^#{1,6}\s")
_TASK_LINE = re.compile(r"^\s*[-*]\s+\[(.)\]\s?(.*)$")


def format_date(day: date, pattern: str) -> str:
    """Substitute YYYY, MM, DD, M and D in a single pass."""
    values = {
        "YYYY": f"{day.year:04d}",
        "MM": f"{day.month:02d}",
        "DD": f"{day.day:02d}",
        "M": str(day.month),
        "D": str(day.day),
    }
    return _DATE_TOKENS.sub(lambda m: values[m.group(0)], pattern)


def daily_note_name(day: date, pattern: str) -> str:
    return f"{format_date(day, pattern)}.md"


def daily_note_path(folder: str, day: date, pattern: str) -> str:
    """Vault-relative path of the day's note."""
    folder = folder.strip().strip("/")
    name = daily_note_name(day, pattern)
    return f"{folder}/{name}" if folder else name


def expand_template(template: str, day: date, pattern: str) -> str:
    """Replace {{date:FORMAT}} with the formatted day; bare {{date}} uses pattern."""
    return _DATE_PLACEHOLDER.sub(
        lambda m: format_date(day, m.group(1) if m.group(1) is not None else pattern),
        template,
    )


def render_task_line(task: Task) -> str:
    """Render '- [mark] Title 📅 due 📎 [[note]]', omitting absent markers."""
    parts = ["-", f"[{task.status.mark}]", task.title]
    if task.due_date:
        parts.append(f"{DUE_MARKER} {task.due_date.isoformat()}")
    if task.linked_note:
        parts.append(f"{NOTE_MARKER} {to_wiki_link(task.linked_note)}")
    return " ".join(parts)


def render_section(heading: str, tasks: list[Task]) -> str:
    lines = [render_task_line(task) for task in tasks] or [EMPTY_SECTION_TEXT]
    return f"{heading}\n\n" + "".join(f"{line}\n" for line in lines)


def find_section(document: str, heading: str) -> tuple[int, int] | None:
    """
    Locate the managed section.

    Returns:
        (start, end) offsets from the heading line up to the next heading
        or the end of the document, or None if the heading is absent
    """
    target = heading.strip()
    start: int | None = None
    offset = 0
    for line in document.splitlines(keepends=True):
        if start is None:
            if line.strip() == target:
                start = offset
        elif _HEADING.match(line):
            return start, offset
        offset += len(line)
    if start is None:
        return None
    return start, len(document)


def replace_section(document: str, heading: str, section: str) -> str:
    """Swap the managed section for section, or append it if missing."""
    span = find_section(document, heading)
    if span is None:
        base = document.rstrip("\n")
        return f"{base}\n\n{section}" if base else section
    start, end = span
    tail = document[end:]
    # Keep one blank line before the heading that follows
    return document[:start] + section + ("\n" if tail else "") + tail


def render_document(
    existing: str | None,
    tasks: list[Task],
    heading: str,
    template: str,
    day: date,
    pattern: str,
) -> str:
    """
    Produce the full note text.

    Args:
        existing: Current note text, or None if the note does not exist yet
        tasks: Tasks to list in the section
        heading: Section heading line, e.g. "## Tasks"
        template: Template for new notes
        day: Day the note is for
        pattern: Date pattern used for {{date}}
    """
    if existing is None:
        document = expand_template(template, day, pattern)
    else:
        document = existing
    return replace_section(document, heading, render_section(heading, tasks))


def parse_section(document: str, heading: str) -> list[str]:
    """Return the list-item lines inside the managed section."""
    span = find_section(document, heading)
    if span is None:
        return []
    start, end = span
    body = document[start:end].splitlines()[1:]
    return [line for line in body if line.strip().startswith(("- ", "* "))]


def parse_task_line(line: str) -> tuple[str, str] | None:
    """
    Split a checklist line into (mark, title).

    The title is the text after the checkbox up to the first marker.
    """
    match = _TASK_LINE.match(line)
    if not match:
        return None
    mark, rest = match.groups()
    for marker in (f" {DUE_MARKER}", f" {NOTE_MARKER}"):
        rest = rest.split(marker, 1)[0]
    return mark, rest.strip()


def find_status_changes(
    document: str,
    heading: str,
    tasks: list[Task],
    rendered: dict[str, TaskStatus] | None = None,
) -> list[StatusChange]:
    """
    Compare checkbox marks in the section with the tasks' statuses.

    A line matching a task title exactly is preferred; otherwise the first
    unclaimed line containing the title is used. Lines with unknown marks
    and unchanged statuses are skipped.

    Args:
        document: Note text
        heading: Section heading line
        tasks: Current tasks
        rendered: Statuses as last written into the section. When given,
            only lines whose mark differs from the written one count as
            edits, so a status changed in the app since then is kept.
    """
    entries: list[tuple[str, str]] = []
    for line in parse_section(document, heading):
        parsed = parse_task_line(line)
        if parsed is not None:
            entries.append(parsed)

    claimed: set[int] = set()
    matches: dict[str, int] = {}

    for task in tasks:
        for index, (_, title) in enumerate(entries):
            if index not in claimed and title == task.title:
                matches[task.id] = index
                claimed.add(index)
                break

    for task in tasks:
        if task.id in matches:
            continue
        for index, (_, title) in enumerate(entries):
            if index not in claimed and task.title in title:
                matches[task.id] = index
                claimed.add(index)
                break

    changes: list[StatusChange] = []
    for task in tasks:
        index = matches.get(task.id)
        if index is None:
            continue
        new_status = TaskStatus.from_mark(entries[index][0])
        if new_status is None or new_status == task.status:
            continue
        if rendered is not None and rendered.get(task.id, new_status) == new_status:
            continue
        changes.append(StatusChange(task.id, task.title, task.status, new_status))
    return changes


def detect_status_changes(
    document: str,
    heading: str,
    tasks: list[Task],
    now: datetime | None = None,
    rendered: dict[str, TaskStatus] | None = None,
) -> list[Task]:
    """Return updated copies of the tasks whose checkbox was edited."""
    by_id = {task.id: task for task in tasks}
    return [
        update_task_item(by_id[change.task_id], now=now, status=change.new_status)
        for change in find_status_changes(document, heading, tasks, rendered)
    ]


def digest_tasks(tasks: list[Task], day: date, include_all: bool) -> list[Task]:
    """Open tasks for the digest; only those due on day unless include_all."""
    open_tasks = get_uncompleted_tasks(tasks)
    if include_all:
        return open_tasks
    return [task for task in open_tasks if task.due_date == day]


class DailyDigest:
    """Renders and reads the daily digest through the vault capability.

    Example:
        digest = DailyDigest(handles, settings)
        await digest.update(tasks)
        rendered = {task.id: task.status for task in digest.select(tasks)}
        updated = await digest.detect(tasks, rendered=rendered)
    """

    def __init__(
        self,
        handles: HandleCache,
        settings: AppSettings,
        key: str = VAULT_HANDLE_KEY,
    ):
        self.handles = handles
        self.settings = settings
        self.key = key

    @property
    def enabled(self) -> bool:
        return self.settings.daily_note_enabled

    def path_for(self, day: date) -> str:
        return daily_note_path(
            self.settings.daily_note_folder_path, day, self.settings.daily_note_format
        )

    def select(self, tasks: list[Task], day: date | None = None) -> list[Task]:
        """Tasks the digest lists for day."""
        return digest_tasks(
            tasks, day or date.today(), self.settings.sync_all_tasks_to_daily_note
        )

    async def read(self, day: date | None = None) -> str | None:
        """Read the day's note, or None if it does not exist."""
        root = await self.handles.require(self.key)
        path = self.path_for(day or date.today())
        try:
            return await read_text(root, path)
        except NotFoundError:
            logger.debug("No daily note at %s", path)
            return None

    async def update(self, tasks: list[Task], day: date | None = None) -> str:
        """
        Render the digest section into the day's note.

        Args:
            tasks: All tasks; the digest filters them
            day: Note date (defaults to today)

        Returns:
            The note text as written
        """
        day = day or date.today()
        root = await self.handles.require(self.key)
        existing = await self.read(day)
        selected = self.select(tasks, day)
        document = render_document(
            existing,
            selected,
            self.settings.daily_note_task_section,
            self.settings.daily_note_template,
            day,
            self.settings.daily_note_format,
        )
        if document != existing:
            await write_text(root, self.path_for(day), document)
            logger.info("Daily note updated with %d tasks: %s", len(selected), self.path_for(day))
        return document

    async def changes(
        self,
        tasks: list[Task],
        day: date | None = None,
        rendered: dict[str, TaskStatus] | None = None,
    ) -> list[StatusChange]:
        document = await self.read(day)
        if document is None:
            return []
        return find_status_changes(
            document, self.settings.daily_note_task_section, tasks, rendered
        )

    async def detect(
        self,
        tasks: list[Task],
        day: date | None = None,
        now: datetime | None = None,
        rendered: dict[str, TaskStatus] | None = None,
    ) -> list[Task]:
        """Return tasks whose status was changed by hand in the day's note."""
        document = await self.read(day)
        if document is None:
            return []
        updated = detect_status_changes(
            document, self.settings.daily_note_task_section, tasks, now=now, rendered=rendered
        )
        if updated:
            logger.info("Detected %d status changes in the daily note", len(updated))
        return updated
