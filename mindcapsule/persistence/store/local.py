"""Local filesystem implementation of the ``FileSystem`` protocol.

Uses ``anyio.to_thread.run_sync`` for non-blocking file I/O.

Writes are atomic: data is written to a temporary file in the same directory,
then renamed to the target path.  This prevents corrupt reads if the process
crashes mid-write.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
from functools import partial
from pathlib import Path

from anyio import to_thread

from mindcapsule.persistence.store.base import DirEntry


class LocalFileSystem:
    """Host filesystem, addressed with plain path strings."""

    # -- Read ------------------------------------------------------------------

    async def read_dir(self, path: str) -> list[DirEntry]:
        return await to_thread.run_sync(partial(_list_dir, Path(path)))

    async def read_text(self, path: str) -> str:
        return await to_thread.run_sync(partial(Path(path).read_text, encoding="utf-8"))

    async def read_bytes(self, path: str) -> bytes:
        return await to_thread.run_sync(Path(path).read_bytes)

    # -- Write -----------------------------------------------------------------

    async def write_text(self, path: str, data: str) -> None:
        await to_thread.run_sync(partial(_atomic_write, Path(path), data.encode("utf-8")))

    async def write_bytes(self, path: str, data: bytes) -> None:
        await to_thread.run_sync(partial(_atomic_write, Path(path), data))

    async def make_dir(self, path: str) -> None:
        await to_thread.run_sync(partial(Path(path).mkdir, parents=True, exist_ok=True))

    # -- Delete ----------------------------------------------------------------

    async def remove_file(self, path: str) -> None:
        await to_thread.run_sync(partial(Path(path).unlink, missing_ok=True))

    async def remove_dir(self, path: str) -> None:
        await to_thread.run_sync(partial(_rmtree, Path(path)))

    # -- Utilities -------------------------------------------------------------

    async def exists(self, path: str) -> bool:
        return await to_thread.run_sync(Path(path).exists)


# -- Sync helpers (run in thread pool) -----------------------------------------


def _list_dir(path: Path) -> list[DirEntry]:
    """List a directory.  Raises ``FileNotFoundError`` / ``NotADirectoryError``."""
    with os.scandir(path) as entries:
        return [DirEntry(name=e.name, is_dir=e.is_dir(), is_file=e.is_file()) for e in entries]


def _atomic_write(path: Path, data: bytes) -> None:
    """Write data atomically: temp file + rename.

    The temp file is created in the same directory so ``os.replace`` is
    atomic on POSIX.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up temp file on any failure.
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise


def _rmtree(path: Path) -> None:
    """Remove directory tree.  No-op if path doesn't exist."""
    if path.exists():
        shutil.rmtree(path)
