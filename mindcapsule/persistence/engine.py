"""Persistence engine -- owns the workspace catalog and every vertex in memory.

The engine is a process-level object constructed once and handed to callers.
It coordinates three backends:

- **Key/value store**: the workspace catalog (and, for old installs, legacy
  flat ``ws-*`` / ``vert-*`` records that get migrated away).
- **Workspace data files**: ``{workspace_path}/workspace.json`` holding the
  stored vertices of one workspace.
- **Asset directories**: ``{workspace_path}/{vertex_id}/``, created with an
  empty links list when a vertex is created.

Lifecycle of a workspace::

    Uncataloged -> Cataloged -> Loaded (migrated?) -> [mutated] -> Persisted

Bootstrap runs once: concurrent callers of ``ensure_loaded`` await the same
in-flight future.  After that, every mutation touches the in-memory maps plus
the single affected workspace's data file, and the catalog when workspace
metadata changes.  Writes to one workspace's data file are serialized.
"""

from __future__ import annotations

import asyncio
import re
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from mindcapsule.persistence.catalog import WorkspaceCatalog
from mindcapsule.persistence.errors import (
    DuplicateVertexError,
    DuplicateWorkspaceError,
    MissingLinkError,
    VertexNotFoundError,
    WorkspaceNotFoundError,
)
from mindcapsule.persistence.hydrator import dehydrate, hydrate, hydrate_vertex, rebase
from mindcapsule.persistence.legacy import LegacyFlatKeyStore
from mindcapsule.persistence.managers.links import ensure_links_file
from mindcapsule.persistence.migration import WorkspaceData, read_workspace_data, write_workspace_data
from mindcapsule.persistence.models.common import utc_now
from mindcapsule.persistence.models.enums import DataFormat
from mindcapsule.persistence.models.vertex import DERIVED_FIELDS, StoredVertex, Vertex
from mindcapsule.persistence.models.workspace import Workspace
from mindcapsule.persistence.paths import asset_directory, join_path
from mindcapsule.persistence.resolver import resolve_workspace_id
from mindcapsule.persistence.store.kv import JsonFileStore
from mindcapsule.persistence.store.local import LocalFileSystem

if TYPE_CHECKING:
    from collections.abc import Mapping

    from mindcapsule.persistence.settings import MindCapsuleSettings
    from mindcapsule.persistence.store.base import DirectoryPicker, FileSystem, KeyValueStore

_SLUG_UNSAFE = re.compile(r"[^A-Za-z0-9_-]+")


@dataclass(frozen=True)
class PruneResult:
    """Counts returned by ``PersistenceEngine.prune_missing_workspaces``."""

    workspaces_removed: int = 0
    vertices_removed: int = 0


class PersistenceEngine:
    """Catalog, hydration and CRUD for workspaces and vertices."""

    def __init__(
        self,
        fs: FileSystem,
        store: KeyValueStore,
        *,
        picker: DirectoryPicker | None = None,
        default_workspace_root: str | None = None,
    ) -> None:
        self._fs = fs
        self._legacy = LegacyFlatKeyStore(store)
        self._catalog = WorkspaceCatalog(store, self._legacy)
        self._picker = picker
        self._default_root = default_workspace_root

        self._workspaces: dict[str, Workspace] = {}
        self._vertices: dict[str, Vertex] = {}
        self._write_locks: dict[str, asyncio.Lock] = {}
        self._loading: asyncio.Future[None] | None = None
        self._loaded = False

    @classmethod
    def from_settings(
        cls,
        settings: MindCapsuleSettings,
        *,
        picker: DirectoryPicker | None = None,
    ) -> PersistenceEngine:
        fs = LocalFileSystem()
        return cls(
            fs,
            JsonFileStore(settings.store_path, fs=fs),
            picker=picker,
            default_workspace_root=settings.default_workspace_root,
        )

    @property
    def fs(self) -> FileSystem:
        """Filesystem primitive, shared with the asset managers."""
        return self._fs

    # -- Bootstrap -------------------------------------------------------------

    async def ensure_loaded(self) -> None:
        """Load the catalog and every cataloged workspace exactly once.

        Concurrent callers share one in-flight load.  If it fails, the error
        propagates to every waiter and the next call starts over.
        """
        if self._loaded:
            return
        if self._loading is None:
            self._loading = asyncio.ensure_future(self._bootstrap())
        loading = self._loading
        try:
            await asyncio.shield(loading)
        except Exception:
            if self._loading is loading and loading.done():
                self._loading = None
            raise

    async def _bootstrap(self) -> None:
        self._workspaces.clear()
        self._vertices.clear()
        entries = await self._catalog.load()
        legacy_vertices: dict[str, Vertex] | None = None
        has_legacy = await self._legacy.has_records()

        for entry in entries:
            workspace = entry.to_workspace()
            self._workspaces[workspace.id] = workspace

            found = await read_workspace_data(self._fs, workspace.path)
            if found is not None:
                data, source_format = found
                self._adopt(workspace, data.vertices)
                if source_format is not DataFormat.CURRENT:
                    await self._persist_workspace(workspace.id)
                if has_legacy:
                    if legacy_vertices is None:
                        legacy_vertices = await self._legacy.scan_vertices()
                    owned = LegacyFlatKeyStore.vertices_for_workspace(workspace.id, legacy_vertices)
                    await self._legacy.purge(workspace.id, owned)
                continue

            # No data file yet: fall back to the legacy flat records.
            if legacy_vertices is None:
                legacy_vertices = await self._legacy.scan_vertices()
            owned = LegacyFlatKeyStore.vertices_for_workspace(workspace.id, legacy_vertices)
            self._adopt(workspace, {vertex_id: dehydrate(vertex) for vertex_id, vertex in owned.items()})

            if not await self._fs.exists(workspace.path):
                logger.warning("Workspace {} folder is missing: {}", workspace.id, workspace.path)
                continue
            if owned:
                await self._persist_workspace(workspace.id)
            await self._legacy.purge(workspace.id, owned)

        self._loaded = True
        logger.info("Catalog loaded: {} workspaces, {} vertices", len(self._workspaces), len(self._vertices))

    def _adopt(self, workspace: Workspace, stored: Mapping[str, StoredVertex]) -> None:
        """Hydrate a workspace's stored vertices into the in-memory map."""
        for vertex_id, vertex in hydrate(workspace, stored).items():
            existing = self._vertices.get(vertex_id)
            if existing is not None and existing.workspace_id != workspace.id:
                logger.warning(
                    "Vertex {} of workspace {} already belongs to workspace {}, skipping",
                    vertex_id,
                    workspace.id,
                    existing.workspace_id,
                )
                continue
            self._vertices[vertex_id] = vertex

    # -- Internal helpers ------------------------------------------------------

    def _owner(self, vertex: Vertex) -> str | None:
        return resolve_workspace_id(vertex, self._vertices)

    def _vertices_of(self, workspace_id: str) -> list[Vertex]:
        return [v for v in self._vertices.values() if self._owner(v) == workspace_id]

    async def _persist_workspace(self, workspace_id: str) -> None:
        workspace = self._workspaces[workspace_id]
        lock = self._write_locks.setdefault(workspace_id, asyncio.Lock())
        async with lock:
            stored = {v.id: dehydrate(v) for v in self._vertices_of(workspace_id)}
            await write_workspace_data(self._fs, workspace.path, WorkspaceData(vertices=stored))
        logger.debug("Workspace {} persisted ({} vertices)", workspace_id, len(stored))

    async def _save_catalog(self) -> None:
        await self._catalog.save([ws.to_catalog_entry() for ws in self._workspaces.values()])

    def _drop_workspace(self, workspace_id: str) -> int:
        """Remove a workspace and its vertices from memory.  Returns the vertex count."""
        doomed = [v.id for v in self._vertices_of(workspace_id)]
        for vertex_id in doomed:
            del self._vertices[vertex_id]
        del self._workspaces[workspace_id]
        self._write_locks.pop(workspace_id, None)
        return len(doomed)

    async def _is_reachable(self, path: str) -> bool:
        try:
            await self._fs.read_dir(path)
        except OSError:
            return False
        return True

    # -- Workspaces ------------------------------------------------------------

    async def create_workspace(self, workspace: Workspace) -> Workspace:
        """Catalog a workspace, adopting any data file already in its folder.

        Raises ``DuplicateWorkspaceError`` if the id is already cataloged.
        """
        await self.ensure_loaded()
        if workspace.id in self._workspaces:
            raise DuplicateWorkspaceError(workspace.id)

        now = utc_now()
        workspace = workspace.model_copy(
            update={"created_at": workspace.created_at or now, "updated_at": workspace.updated_at or now},
            deep=True,
        )
        await self._fs.make_dir(workspace.path)
        found = await read_workspace_data(self._fs, workspace.path)

        self._workspaces[workspace.id] = workspace
        try:
            if found is None:
                await self._persist_workspace(workspace.id)
            else:
                data, source_format = found
                self._adopt(workspace, data.vertices)
                logger.info("Workspace {} attached to existing folder ({} vertices)", workspace.id, len(data.vertices))
                if source_format is not DataFormat.CURRENT:
                    await self._persist_workspace(workspace.id)
            await self._save_catalog()
        except Exception:
            self._drop_workspace(workspace.id)
            raise

        logger.info("Workspace created: {} ({})", workspace.id, workspace.path)
        return workspace.model_copy(deep=True)

    async def get_workspaces(self) -> list[Workspace]:
        await self.ensure_loaded()
        return [ws.model_copy(deep=True) for ws in self._workspaces.values()]

    async def get_workspace(self, workspace_id: str) -> Workspace | None:
        await self.ensure_loaded()
        workspace = self._workspaces.get(workspace_id)
        return workspace.model_copy(deep=True) if workspace else None

    async def update_workspace(self, workspace: Workspace) -> Workspace:
        """Merge explicitly set fields over the cataloged record.

        A changed ``path`` re-derives the asset directory of every vertex in
        the workspace; no files are moved.  Raises ``WorkspaceNotFoundError``.
        """
        await self.ensure_loaded()
        previous = self._workspaces.get(workspace.id)
        if previous is None:
            raise WorkspaceNotFoundError(workspace.id)

        changes = workspace.model_dump(exclude_unset=True, exclude={"id"})
        changes["created_at"] = changes.get("created_at") or previous.created_at
        changes["updated_at"] = utc_now()
        updated = previous.model_copy(update=changes, deep=True)
        members = self._vertices_of(updated.id)
        self._workspaces[updated.id] = updated
        if updated.path != previous.path:
            for vertex in rebase(members, updated):
                self._vertices[vertex.id] = vertex

        try:
            await self._persist_workspace(updated.id)
            await self._save_catalog()
        except Exception:
            self._workspaces[previous.id] = previous
            self._vertices.update((vertex.id, vertex) for vertex in members)
            raise

        if updated.path != previous.path:
            logger.info("Workspace {} relocated: {} -> {}", updated.id, previous.path, updated.path)
        return updated.model_copy(deep=True)

    async def remove_workspace(self, workspace_id: str) -> int:
        """Uncatalog a workspace and forget its vertices.

        On-disk content is left untouched.  Returns the number of vertices
        removed.  Raises ``WorkspaceNotFoundError``.
        """
        await self.ensure_loaded()
        if workspace_id not in self._workspaces:
            raise WorkspaceNotFoundError(workspace_id)

        removed = self._drop_workspace(workspace_id)
        await self._save_catalog()
        logger.info("Workspace removed: {} ({} vertices)", workspace_id, removed)
        return removed

    async def prune_missing_workspaces(self) -> PruneResult:
        """Remove every workspace whose root folder can no longer be listed."""
        await self.ensure_loaded()
        workspaces_removed = 0
        vertices_removed = 0
        for workspace in list(self._workspaces.values()):
            if await self._is_reachable(workspace.path):
                continue
            vertices_removed += self._drop_workspace(workspace.id)
            workspaces_removed += 1
            logger.warning("Pruned missing workspace {} ({})", workspace.id, workspace.path)

        if workspaces_removed:
            await self._save_catalog()
        return PruneResult(workspaces_removed=workspaces_removed, vertices_removed=vertices_removed)

    async def select_workspace_directory(self) -> str | None:
        """Ask the injected picker for a folder; ``None`` if cancelled or it fails."""
        if self._picker is None:
            return None
        try:
            return await self._picker()
        except Exception as exc:
            logger.warning("Directory picker failed: {}", exc)
            return None

    async def create_default_workspace(self, name: str = "My Workspace") -> Workspace:
        """Create a workspace in a fresh folder under the configured default root."""
        if not self._default_root:
            msg = "No default workspace root configured"
            raise ValueError(msg)
        await self.ensure_loaded()

        workspace_id = uuid.uuid4().hex
        folder = _SLUG_UNSAFE.sub("-", name).strip("-").lower() or workspace_id
        path = join_path(self._default_root, folder)
        if any(ws.path == path for ws in self._workspaces.values()) or await self._fs.exists(path):
            path = join_path(self._default_root, f"{folder}-{workspace_id[:8]}")
        return await self.create_workspace(Workspace(id=workspace_id, name=name, path=path))

    # -- Vertices --------------------------------------------------------------

    def _require_workspace(self, vertex: Vertex, workspace_id: str | None) -> Workspace:
        if workspace_id is None:
            raise MissingLinkError(vertex.id)
        workspace = self._workspaces.get(workspace_id)
        if workspace is None:
            raise MissingLinkError(vertex.id, f"workspace '{workspace_id}' is not cataloged")
        return workspace

    async def resolve_workspace_id(self, vertex: Vertex) -> str | None:
        """Owning workspace id via the vertex or its ancestors; ``None`` if unresolved."""
        await self.ensure_loaded()
        return self._owner(vertex)

    async def create_vertex(self, vertex: Vertex) -> Vertex:
        """Add a vertex to its workspace and prepare its asset directory.

        Raises ``DuplicateVertexError`` for a known id and ``MissingLinkError``
        when no cataloged workspace resolves.
        """
        await self.ensure_loaded()
        if vertex.id in self._vertices:
            raise DuplicateVertexError(vertex.id)
        workspace = self._require_workspace(vertex, self._owner(vertex))

        now = utc_now()
        stored = dehydrate(vertex).model_copy(
            update={"created_at": vertex.created_at or now, "updated_at": vertex.updated_at or now}
        )
        created = hydrate_vertex(workspace, stored)

        self._vertices[created.id] = created
        try:
            await self._persist_workspace(workspace.id)
        except Exception:
            del self._vertices[created.id]
            raise

        if created.asset_directory:
            try:
                await self._fs.make_dir(created.asset_directory)
            except OSError as exc:
                logger.warning("Could not create asset directory {}: {}", created.asset_directory, exc)
            else:
                await ensure_links_file(self._fs, created.asset_directory)

        logger.debug("Vertex created: {} (workspace={})", created.id, workspace.id)
        return created.model_copy(deep=True)

    async def get_vertex(self, vertex_id: str) -> Vertex | None:
        await self.ensure_loaded()
        vertex = self._vertices.get(vertex_id)
        return vertex.model_copy(deep=True) if vertex else None

    async def get_vertices(self, parent_id: str) -> list[Vertex]:
        """Direct children of ``parent_id``."""
        await self.ensure_loaded()
        return [v.model_copy(deep=True) for v in self._vertices.values() if v.parent_id == parent_id]

    async def get_all_vertices(self) -> list[Vertex]:
        await self.ensure_loaded()
        return [v.model_copy(deep=True) for v in self._vertices.values()]

    async def get_workspace_root_vertices(self, workspace_id: str) -> list[Vertex]:
        """Vertices without a parent that resolve to ``workspace_id``."""
        await self.ensure_loaded()
        return [
            v.model_copy(deep=True)
            for v in self._vertices.values()
            if not v.parent_id and self._owner(v) == workspace_id
        ]

    async def update_vertex(self, vertex: Vertex) -> Vertex:
        """Replace a vertex, keeping its derived fields consistent.

        Asset directory precedence: the caller's non-empty value, then the
        previous value (while the owner is unchanged), then a fresh one from
        the workspace path.  Raises ``VertexNotFoundError`` /
        ``MissingLinkError``.
        """
        await self.ensure_loaded()
        previous = self._vertices.get(vertex.id)
        if previous is None:
            raise VertexNotFoundError(vertex.id)

        workspace = self._require_workspace(vertex, self._owner(vertex) or previous.workspace_id)
        directory = vertex.asset_directory
        if not directory and workspace.id == previous.workspace_id:
            directory = previous.asset_directory
        if not directory:
            directory = asset_directory(workspace.path, vertex.id)

        data = vertex.model_dump(exclude=DERIVED_FIELDS)
        data.update(
            workspace_id=workspace.id,
            asset_directory=directory,
            is_corrupt=True if not directory else vertex.is_corrupt,
            created_at=vertex.created_at or previous.created_at,
            updated_at=utc_now(),
        )
        updated = Vertex.model_validate(data)

        self._vertices[updated.id] = updated
        try:
            await self._persist_workspace(workspace.id)
            if previous.workspace_id != workspace.id and previous.workspace_id in self._workspaces:
                await self._persist_workspace(previous.workspace_id)
        except Exception:
            self._vertices[previous.id] = previous
            raise

        logger.debug("Vertex updated: {} (workspace={})", updated.id, workspace.id)
        return updated.model_copy(deep=True)

    async def remove_vertex(self, vertex: Vertex) -> None:
        """Forget a vertex and persist its workspace.

        The asset directory stays on disk; see ``purge_vertex_directory``.
        Raises ``MissingLinkError`` / ``VertexNotFoundError``.
        """
        await self.ensure_loaded()
        # The stored record decides the owner; the caller's copy may be stale.
        previous = self._vertices.get(vertex.id)
        workspace = self._require_workspace(vertex, self._owner(previous or vertex))
        if previous is None:
            raise VertexNotFoundError(vertex.id)
        del self._vertices[previous.id]

        try:
            await self._persist_workspace(workspace.id)
        except Exception:
            self._vertices[previous.id] = previous
            raise
        logger.debug("Vertex removed: {} (workspace={})", vertex.id, workspace.id)

    async def purge_vertex_directory(self, vertex: Vertex) -> bool:
        """Delete a vertex's asset directory from disk.  Returns ``False`` if it has none."""
        await self.ensure_loaded()
        known = self._vertices.get(vertex.id, vertex)
        if not known.asset_directory:
            return False
        await self._fs.remove_dir(known.asset_directory)
        logger.info("Asset directory purged: {}", known.asset_directory)
        return True
