"""Linked notes - the note a task points to via its linked_note field."""

import logging
from datetime import date

from tasksync.core.config import VAULT_HANDLE_KEY
from tasksync.core.settings import DEFAULT_NOTE_TEMPLATE
from tasksync.core.types import Task
from tasksync.storage.capability import HandleCache, file_exists, write_text
from tasksync.vault.links import extract_note_name, note_path

logger = logging.getLogger(__name__)


def render_note(
    template: str,
    title: str,
    task_id: str = "",
    day: date | None = None,
) -> str:
    """Fill {{title}}, {{date}} and {{taskId}} in a note template."""
    day = day or date.today()
    return (
        template.replace("{{title}}", title)
        .replace("{{date}}", day.isoformat())
        .replace("{{taskId}}", task_id)
    )


async def create_linked_note(
    handles: HandleCache,
    note_folder: str,
    note_name: str,
    content: str | None = None,
    template: str | None = None,
    task: Task | None = None,
    key: str = VAULT_HANDLE_KEY,
) -> str | None:
    """
    Create the note a task links to, leaving an existing note untouched.

    Args:
        handles: Handle cache holding the vault capability
        note_folder: Folder for linked notes inside the vault
        note_name: Note name or [[wiki link]]
        content: Explicit content for a new note
        template: Note template used when content is not given
        task: Task the note belongs to, for {{taskId}}

    Returns:
        Vault-relative path of the note, or None if the name is empty
    """
    path = note_path(note_name, note_folder)
    if not path:
        logger.debug("Empty note name %r, nothing to create", note_name)
        return None

    root = await handles.require(key)
    if await file_exists(root, path):
        logger.debug("Linked note already exists: %s", path)
        return path

    if content is None:
        content = render_note(
            template or DEFAULT_NOTE_TEMPLATE,
            extract_note_name(note_name) or note_name,
            task_id=task.id if task else "",
        )
    await write_text(root, path, content)
    logger.info("Created linked note: %s", path)
    return path
