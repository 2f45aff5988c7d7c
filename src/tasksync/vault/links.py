"""Wiki-link and note path helpers."""

import re

_WIKI_LINK = re.compile(r"\[\[(.+?)\]\]")
_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|]')
_WHITESPACE = re.compile(r"\s+")


def is_wiki_link(text: str | None) -> bool:
    """Check whether text contains a [[wiki link]]."""
    if not text:
        return False
    return _WIKI_LINK.search(text) is not None


def extract_note_name(link: str | None) -> str | None:
    """
    Get the note name out of a link.

    "[[Project Plan]]" -> "Project Plan"; plain text is returned stripped.
    """
    if not link:
        return None
    match = _WIKI_LINK.search(link)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return link.strip() or None


def to_wiki_link(text: str | None) -> str:
    """Wrap text in [[...]] unless it already is a wiki link."""
    if not text:
        return ""
    if is_wiki_link(text):
        return text
    return f"[[{text.strip()}]]"


def sanitize_file_name(name: str | None) -> str:
    """Remove characters not allowed in file names and collapse whitespace."""
    if not name:
        return ""
    return _WHITESPACE.sub(" ", _UNSAFE_CHARS.sub("", name)).strip()


def note_file_name(link: str | None) -> str:
    """File name (without .md) for a linked note, or "" if there is none."""
    return sanitize_file_name(extract_note_name(link))


def note_path(link: str | None, folder: str) -> str:
    """
    Vault-relative path of a linked note.

    Args:
        link: Note name or [[wiki link]]
        folder: Note folder inside the vault

    Returns:
        Path like "Notes/Project Plan.md", or "" if link is empty
    """
    file_name = note_file_name(link)
    if not file_name:
        return ""
    folder = folder.strip().strip("/")
    return f"{folder}/{file_name}.md" if folder else f"{file_name}.md"
