"""Legacy flat-key adapter.

Before per-workspace data files existed, every workspace and vertex lived as
its own record in the shared key/value store (``ws-<id>.json`` and
``vert-<id>.json``).  This module reads those records so the catalog and the
per-workspace files can be bootstrapped from them, and deletes a workspace's
records once its data file has been written.

Records are read when a workspace has no data file yet (or there is no
catalog at all) and purged once the workspace has one.  This module can be
removed once no install still carries flat keys.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from loguru import logger
from pydantic import ValidationError

from mindcapsule.persistence.models.vertex import Vertex
from mindcapsule.persistence.paths import (
    VERTEX_KEY_PREFIX,
    WORKSPACE_KEY_PREFIX,
    parse_storage_key,
    vertex_storage_key,
    workspace_storage_key,
)
from mindcapsule.persistence.resolver import resolve_workspace_id
from mindcapsule.persistence.store.base import KeyValueStore


class LegacyFlatKeyStore:
    """Read-and-purge view over the legacy flat records of a key/value store."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    async def _scan(self, prefix: str) -> dict[str, Any]:
        records: dict[str, Any] = {}
        for key in await self._store.keys():
            entity_id = parse_storage_key(key, prefix)
            if entity_id is None:
                continue
            value = await self._store.get(key)
            if not isinstance(value, dict):
                logger.warning("Ignoring legacy record {}: not an object", key)
                continue
            value.setdefault("id", entity_id)
            records[entity_id] = value
        return records

    async def scan_workspaces(self) -> list[dict[str, Any]]:
        """Raw legacy workspace records (normalized later by the catalog)."""
        return list((await self._scan(WORKSPACE_KEY_PREFIX)).values())

    async def scan_vertices(self) -> dict[str, Vertex]:
        """Legacy vertices keyed by id; invalid records are skipped."""
        vertices: dict[str, Vertex] = {}
        for entity_id, record in (await self._scan(VERTEX_KEY_PREFIX)).items():
            try:
                vertex = Vertex.model_validate(record)
            except ValidationError as exc:
                logger.warning("Ignoring legacy vertex {}: {}", entity_id, exc.errors()[0]["msg"])
                continue
            vertices[vertex.id] = vertex
        return vertices

    @staticmethod
    def vertices_for_workspace(workspace_id: str, vertices: dict[str, Vertex]) -> dict[str, Vertex]:
        """Legacy vertices that resolve to ``workspace_id``, directly or via an ancestor."""
        return {
            vertex_id: vertex
            for vertex_id, vertex in vertices.items()
            if resolve_workspace_id(vertex, vertices) == workspace_id
        }

    async def has_records(self) -> bool:
        """Whether any flat workspace or vertex record is left."""
        return any(
            parse_storage_key(key, prefix) is not None
            for key in await self._store.keys()
            for prefix in (WORKSPACE_KEY_PREFIX, VERTEX_KEY_PREFIX)
        )

    async def purge(self, workspace_id: str, vertex_ids: Iterable[str]) -> int:
        """Delete a migrated workspace's flat records.  Returns the number removed."""
        removed = 0
        keys = [workspace_storage_key(workspace_id), *(vertex_storage_key(v) for v in vertex_ids)]
        for key in keys:
            if await self._store.delete(key):
                removed += 1
        if removed:
            await self._store.save()
            logger.info("Removed {} legacy records of workspace {}", removed, workspace_id)
        return removed
