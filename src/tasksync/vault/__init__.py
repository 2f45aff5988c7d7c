"""Vault documents written for people: the daily digest and linked notes.

Both are plain Markdown that stays editable in Obsidian or any text editor.
The digest section is regenerated on every sync; checkbox edits made there
by hand flow back into task statuses.
"""

from tasksync.vault.daily import DailyDigest, render_document
from tasksync.vault.links import extract_note_name, sanitize_file_name, to_wiki_link
from tasksync.vault.notes import create_linked_note

__all__ = [
    "DailyDigest",
    "create_linked_note",
    "extract_note_name",
    "render_document",
    "sanitize_file_name",
    "to_wiki_link",
]
