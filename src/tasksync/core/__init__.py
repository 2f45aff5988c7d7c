"""tasksync core - task model, merge engine and sync orchestration."""

from tasksync.core.errors import (
    CapabilityError,
    CapabilityMissingError,
    DecodeFailureError,
    InvalidHandleError,
    MalformedRecordError,
    NotFoundError,
    PermissionDeniedError,
    TaskSyncError,
    WriteFailureError,
)
from tasksync.core.types import (
    MergeResult,
    StatusChange,
    SyncStatus,
    Tag,
    Task,
    TaskStatus,
    TaskTag,
)

__all__ = [
    # Errors
    "CapabilityError",
    "CapabilityMissingError",
    "DecodeFailureError",
    "InvalidHandleError",
    "MalformedRecordError",
    "NotFoundError",
    "PermissionDeniedError",
    "TaskSyncError",
    "WriteFailureError",
    # Types
    "MergeResult",
    "StatusChange",
    "SyncStatus",
    "Tag",
    "Task",
    "TaskStatus",
    "TaskTag",
]
