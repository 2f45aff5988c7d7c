"""Storage layer for tasksync - capability handles and the vault record files."""

from tasksync.storage.capability import HandleCache, ensure_directory, read_text, write_text
from tasksync.storage.handles import (
    DirectoryHandle,
    FileHandle,
    LocalDirectoryHandle,
    LocalFileHandle,
)
from tasksync.storage.records import RecordStore

__all__ = [
    "DirectoryHandle",
    "FileHandle",
    "HandleCache",
    "LocalDirectoryHandle",
    "LocalFileHandle",
    "RecordStore",
    "ensure_directory",
    "read_text",
    "write_text",
]
