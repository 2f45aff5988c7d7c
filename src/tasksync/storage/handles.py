"""Capability handles for a hierarchical storage root.

A handle is an opaque, revocable token: callers never see raw paths, they
ask the handle for children and for an access check. ``LocalDirectoryHandle``
implements the protocol over the local filesystem; every handle derived from
a root shares that root's grant, so revoking the root revokes them all.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Literal, Protocol, runtime_checkable

from tasksync.core.errors import (
    DecodeFailureError,
    NotFoundError,
    PermissionDeniedError,
    WriteFailureError,
)
from tasksync.core.types import AccessMode, AccessState

logger = logging.getLogger(__name__)


@runtime_checkable
class FileHandle(Protocol):
    """Whole-file access to a single file."""

    name: str
    kind: Literal["file"]

    async def read_text(self) -> str: ...

    async def write_text(self, content: str) -> None: ...


@runtime_checkable
class DirectoryHandle(Protocol):
    """Access to a directory and everything below it."""

    name: str
    kind: Literal["directory"]

    async def check_access(
        self, mode: AccessMode = AccessMode.READWRITE
    ) -> AccessState: ...

    async def get_directory_handle(
        self, name: str, *, create: bool = False
    ) -> DirectoryHandle: ...

    async def get_file_handle(self, name: str, *, create: bool = False) -> FileHandle: ...


class Grant:
    """Mutable access state shared by a root handle and its children."""

    def __init__(self, state: AccessState = AccessState.GRANTED):
        self.state = state

    def revoke(self) -> None:
        self.state = AccessState.DENIED

    def restore(self) -> None:
        self.state = AccessState.GRANTED


def _check_segment(name: str) -> str:
    if not name or name in (".", "..") or "/" in name or "\\" in name:
        raise ValueError(f"Invalid path segment: {name!r}")
    return name


class LocalFileHandle:
    """File handle backed by a local path."""

    kind: Literal["file"] = "file"

    def __init__(self, path: Path, grant: Grant):
        self._path = path
        self._grant = grant
        self.name = path.name

    def _ensure_granted(self) -> None:
        if self._grant.state != AccessState.GRANTED:
            raise PermissionDeniedError(f"Access to {self.name} was revoked")

    async def read_text(self) -> str:
        self._ensure_granted()
        try:
            return await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        except FileNotFoundError as e:
            raise NotFoundError(f"File not found: {self.name}", str(self._path)) from e
        except PermissionError as e:
            raise PermissionDeniedError(f"Cannot read {self.name}: {e}") from e
        except UnicodeDecodeError as e:
            raise DecodeFailureError(f"{self.name} is not valid UTF-8: {e}", str(self._path)) from e

    async def write_text(self, content: str) -> None:
        self._ensure_granted()
        try:
            await asyncio.to_thread(self._path.write_text, content, encoding="utf-8")
        except PermissionError as e:
            raise PermissionDeniedError(f"Cannot write {self.name}: {e}") from e
        except OSError as e:
            raise WriteFailureError(f"Failed to write {self.name}: {e}", str(self._path)) from e

    def __repr__(self) -> str:
        return f"LocalFileHandle({self.name!r})"


class LocalDirectoryHandle:
    """Directory handle backed by a local path.

    Example:
        handle = LocalDirectoryHandle("~/Documents/Vault")
        await handle_cache.cache("vault", handle)
    """

    kind: Literal["directory"] = "directory"

    def __init__(self, path: Path | str, grant: Grant | None = None):
        self._path = Path(path).expanduser()
        self._grant = grant or Grant()
        self.name = self._path.name

    async def check_access(
        self, mode: AccessMode = AccessMode.READWRITE
    ) -> AccessState:
        if self._grant.state != AccessState.GRANTED:
            return self._grant.state
        if not await asyncio.to_thread(self._path.is_dir):
            logger.warning("Directory behind handle is gone: %s", self._path)
            return AccessState.DENIED
        return AccessState.GRANTED

    def _ensure_granted(self) -> None:
        if self._grant.state != AccessState.GRANTED:
            raise PermissionDeniedError(f"Access to {self.name} was revoked")

    async def get_directory_handle(
        self, name: str, *, create: bool = False
    ) -> LocalDirectoryHandle:
        self._ensure_granted()
        child = self._path / _check_segment(name)
        if create:
            try:
                await asyncio.to_thread(child.mkdir, parents=False, exist_ok=True)
            except FileExistsError as e:
                raise WriteFailureError(f"{name} exists and is not a directory", str(child)) from e
            except PermissionError as e:
                raise PermissionDeniedError(f"Cannot create directory {name}: {e}") from e
            except OSError as e:
                raise WriteFailureError(f"Failed to create directory {name}: {e}", str(child)) from e
        elif not await asyncio.to_thread(child.is_dir):
            raise NotFoundError(f"Directory not found: {name}", str(child))
        return LocalDirectoryHandle(child, self._grant)

    async def get_file_handle(self, name: str, *, create: bool = False) -> LocalFileHandle:
        self._ensure_granted()
        child = self._path / _check_segment(name)
        if create:
            try:
                await asyncio.to_thread(child.touch, exist_ok=True)
            except PermissionError as e:
                raise PermissionDeniedError(f"Cannot create file {name}: {e}") from e
            except OSError as e:
                raise WriteFailureError(f"Failed to create file {name}: {e}", str(child)) from e
        elif not await asyncio.to_thread(child.is_file):
            raise NotFoundError(f"File not found: {name}", str(child))
        return LocalFileHandle(child, self._grant)

    def revoke(self) -> None:
        """Withdraw access for this handle and every handle derived from it."""
        self._grant.revoke()

    def __repr__(self) -> str:
        return f"LocalDirectoryHandle({self.name!r})"
