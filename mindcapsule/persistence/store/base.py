"""Environment primitives consumed by the persistence engine.

The engine never touches the disk directly.  It talks to three narrow
collaborators so that tests (and other hosts) can swap them out:

- ``FileSystem``: directory listing and file read/write/delete.
- ``KeyValueStore``: the process-wide store holding the workspace catalog
  and the legacy flat ``ws-*`` / ``vert-*`` records.
- ``DirectoryPicker``: an opaque prompt returning a folder path or ``None``.

Both protocols are async so local and remote backends share one interface.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

DirectoryPicker = Callable[[], Awaitable[str | None]]


@dataclass(frozen=True)
class DirEntry:
    """One entry returned by ``FileSystem.read_dir``."""

    name: str
    is_dir: bool
    is_file: bool


@runtime_checkable
class FileSystem(Protocol):
    """Async protocol for the filesystem operations the engine needs."""

    async def read_dir(self, path: str) -> list[DirEntry]:
        """List entries of a directory.  Raises ``FileNotFoundError`` if missing."""
        ...

    async def read_text(self, path: str) -> str:
        """Read a UTF-8 file.  Raises ``FileNotFoundError`` if missing."""
        ...

    async def read_bytes(self, path: str) -> bytes:
        """Read a binary file.  Raises ``FileNotFoundError`` if missing."""
        ...

    async def write_text(self, path: str, data: str) -> None:
        """Write a UTF-8 file atomically, creating parent directories."""
        ...

    async def write_bytes(self, path: str, data: bytes) -> None:
        """Write a binary file atomically, creating parent directories."""
        ...

    async def remove_file(self, path: str) -> None:
        """Delete a file.  No-op if not found."""
        ...

    async def make_dir(self, path: str) -> None:
        """Create a directory and its parents.  No-op if it exists."""
        ...

    async def remove_dir(self, path: str) -> None:
        """Delete a directory tree.  No-op if not found."""
        ...

    async def exists(self, path: str) -> bool:
        ...


@runtime_checkable
class KeyValueStore(Protocol):
    """Async protocol for the shared key/value store.

    Mutations are buffered in memory until ``save`` flushes them.
    """

    async def get(self, key: str) -> Any | None:
        """Return the value stored under ``key`` or ``None``."""
        ...

    async def set(self, key: str, value: Any) -> None:
        ...

    async def delete(self, key: str) -> bool:
        """Remove ``key``.  Returns ``False`` if it was absent."""
        ...

    async def keys(self) -> list[str]:
        ...

    async def save(self) -> None:
        """Flush buffered mutations to durable storage."""
        ...
