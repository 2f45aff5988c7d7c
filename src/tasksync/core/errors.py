"""Error kinds raised by the storage and sync engine.

Capability errors mean the vault has to be selected again. Everything else
ends a single sync attempt and leaves the in-memory state as it was.
"""


class TaskSyncError(Exception):
    """Base class for tasksync errors."""


class CapabilityError(TaskSyncError):
    """The vault capability is unusable and must be re-acquired."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message)
        self.key = key


class CapabilityMissingError(CapabilityError):
    """No handle is cached for the requested key."""


class InvalidHandleError(CapabilityMissingError):
    """A cached object failed the structural checks of a directory handle."""


class PermissionDeniedError(CapabilityError):
    """The handle exists but read-write access was refused."""


class NotFoundError(TaskSyncError):
    """An expected file or directory does not exist."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class MalformedRecordError(TaskSyncError):
    """A decoded row is missing required fields or has invalid values."""

    def __init__(self, message: str, row: list[str] | None = None):
        super().__init__(message)
        self.row = row


class WriteFailureError(TaskSyncError):
    """The storage backend rejected a write."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class DecodeFailureError(TaskSyncError):
    """A file's bytes are not valid UTF-8 text."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path
