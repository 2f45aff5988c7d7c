"""Handle cache and path-addressed operations on a capability handle."""

import logging
from typing import Any

from tasksync.core.errors import (
    CapabilityError,
    CapabilityMissingError,
    InvalidHandleError,
    NotFoundError,
    PermissionDeniedError,
)
from tasksync.core.types import AccessMode, AccessState
from tasksync.storage.handles import DirectoryHandle

logger = logging.getLogger(__name__)

_REQUIRED_METHODS = ("check_access", "get_directory_handle", "get_file_handle")


def validate_handle(handle: Any) -> None:
    """
    Check that an object looks like a directory handle.

    Raises:
        InvalidHandleError: If a required method or the directory kind is missing
    """
    if handle is None:
        raise InvalidHandleError("Handle is None")
    for method in _REQUIRED_METHODS:
        if not callable(getattr(handle, method, None)):
            raise InvalidHandleError(
                f"Handle {handle!r} has no {method}() - select the vault again"
            )
    if getattr(handle, "kind", None) != "directory":
        raise InvalidHandleError(f"Handle {handle!r} is not a directory handle")


class HandleCache:
    """Process-wide cache of directory handles keyed by name.

    A handle stays cached until a permission re-check fails; then it is
    evicted and must be acquired again from outside (e.g. the CLI --vault
    option). Pass one instance to every collaborator that needs the vault.
    """

    def __init__(self):
        self._handles: dict[str, DirectoryHandle] = {}

    async def _check(self, handle: Any) -> None:
        validate_handle(handle)
        try:
            state = await handle.check_access(AccessMode.READWRITE)
        except CapabilityError:
            raise
        except Exception as e:
            raise PermissionDeniedError(f"Access check failed: {e}") from e
        if state != AccessState.GRANTED:
            raise PermissionDeniedError(f"Read-write access not granted ({state})")

    async def cache(self, key: str, handle: DirectoryHandle) -> bool:
        """
        Validate and store a handle.

        Returns:
            True if cached, False if validation failed (nothing is stored)
        """
        try:
            await self._check(handle)
        except CapabilityError as e:
            logger.warning("Not caching handle for %s: %s", key, e)
            return False
        self._handles[key] = handle
        logger.info("Cached directory handle: %s", key)
        return True

    async def require(self, key: str) -> DirectoryHandle:
        """
        Return the cached handle after re-validating it.

        Raises:
            CapabilityMissingError: Nothing cached for key
            InvalidHandleError: Cached object is not a usable handle (evicted)
            PermissionDeniedError: Access was refused (evicted)
        """
        handle = self._handles.get(key)
        if handle is None:
            raise CapabilityMissingError(f"No handle cached for {key}", key)
        try:
            await self._check(handle)
        except CapabilityError as e:
            logger.warning("Evicting handle %s: %s", key, e)
            self.evict(key)
            e.key = key
            raise
        return handle

    async def resolve(self, key: str) -> DirectoryHandle | None:
        """Return the re-validated handle, or None if it must be re-acquired."""
        try:
            return await self.require(key)
        except CapabilityError:
            return None

    def evict(self, key: str) -> None:
        """Drop the handle for key, if any."""
        if self._handles.pop(key, None) is not None:
            logger.info("Cleared handle cache: %s", key)

    def clear(self) -> None:
        """Drop all cached handles."""
        self._handles.clear()

    def keys(self) -> list[str]:
        return list(self._handles)

    def __contains__(self, key: object) -> bool:
        return key in self._handles


def _split(path: str) -> list[str]:
    return [part for part in path.replace("\\", "/").split("/") if part.strip()]


async def ensure_directory(root: DirectoryHandle, path: str) -> DirectoryHandle:
    """
    Create every missing segment of a slash-separated path under root.

    Args:
        root: Directory handle to start from
        path: Relative path such as "Projects/Tasks"; empty means root

    Returns:
        Handle to the deepest directory
    """
    current = root
    for part in _split(path):
        current = await current.get_directory_handle(part, create=True)
    return current


async def _open_parent(
    root: DirectoryHandle, path: str, *, create: bool
) -> tuple[DirectoryHandle, str]:
    parts = _split(path)
    if not parts:
        raise ValueError("File path is empty")
    current = root
    for part in parts[:-1]:
        current = await current.get_directory_handle(part, create=create)
    return current, parts[-1]


async def read_text(root: DirectoryHandle, path: str) -> str:
    """
    Read a whole file relative to root.

    Raises:
        NotFoundError: If the file or a parent directory does not exist
    """
    directory, name = await _open_parent(root, path, create=False)
    handle = await directory.get_file_handle(name, create=False)
    return await handle.read_text()


async def write_text(root: DirectoryHandle, path: str, content: str) -> None:
    """Replace a whole file relative to root, creating parents as needed."""
    directory, name = await _open_parent(root, path, create=True)
    handle = await directory.get_file_handle(name, create=True)
    await handle.write_text(content)
    logger.debug("Wrote %s (%d chars)", path, len(content))


async def file_exists(root: DirectoryHandle, path: str) -> bool:
    """Check whether a file exists relative to root."""
    try:
        directory, name = await _open_parent(root, path, create=False)
        await directory.get_file_handle(name, create=False)
    except NotFoundError:
        return False
    return True
