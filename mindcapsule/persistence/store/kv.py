"""JSON-file key/value store.

The whole store is a single JSON object on disk::

    {
      "workspace-catalog": [...],
      "ws-<id>.json": {...},        # legacy, migrated away
      "vert-<id>.json": {...}       # legacy, migrated away
    }

The document is read lazily on first access and kept in memory; ``set`` and
``delete`` only touch the in-memory copy until ``save`` writes it back
atomically.  A missing or unparsable file starts an empty store.
"""

from __future__ import annotations

import asyncio
import copy
import json
from typing import Any

from loguru import logger

from mindcapsule.persistence.store.base import FileSystem
from mindcapsule.persistence.store.local import LocalFileSystem


class JsonFileStore:
    """``KeyValueStore`` backed by one JSON document."""

    def __init__(self, path: str, fs: FileSystem | None = None) -> None:
        self._path = path
        self._fs = fs or LocalFileSystem()
        self._data: dict[str, Any] | None = None
        self._load_lock = asyncio.Lock()

    @property
    def path(self) -> str:
        return self._path

    async def _entries(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data
        async with self._load_lock:
            if self._data is None:
                self._data = await self._read()
        return self._data

    async def _read(self) -> dict[str, Any]:
        try:
            raw = await self._fs.read_text(self._path)
        except FileNotFoundError:
            return {}
        except UnicodeDecodeError as exc:
            logger.warning("Key/value store {} is not UTF-8, starting empty: {}", self._path, exc)
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Key/value store {} is unreadable, starting empty: {}", self._path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Key/value store {} is not a JSON object, starting empty", self._path)
            return {}
        return data

    # -- KeyValueStore ---------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        value = (await self._entries()).get(key)
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any) -> None:
        (await self._entries())[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> bool:
        entries = await self._entries()
        if key not in entries:
            return False
        del entries[key]
        return True

    async def keys(self) -> list[str]:
        return list((await self._entries()).keys())

    async def save(self) -> None:
        data = json.dumps(await self._entries(), indent=2, ensure_ascii=False)
        await self._fs.write_text(self._path, data)
