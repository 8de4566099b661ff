"""Vertex hydration: stored records -> live vertices with derived fields.

``asset_directory`` and ``workspace_id`` are computed from the owning
workspace's *current* path on every load, never trusted from stored data.
Relocating a workspace therefore only needs a catalog update; every vertex
follows on the next hydration (or immediately via ``rebase``).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from mindcapsule.persistence.models.vertex import DERIVED_FIELDS, StoredVertex, Vertex
from mindcapsule.persistence.models.workspace import Workspace
from mindcapsule.persistence.paths import asset_directory


def hydrate_vertex(workspace: Workspace, stored: StoredVertex) -> Vertex:
    directory = asset_directory(workspace.path, stored.id)
    data = stored.model_dump(exclude=DERIVED_FIELDS)
    data["workspace_id"] = workspace.id
    data["asset_directory"] = directory
    data["is_corrupt"] = True if not directory else stored.is_corrupt
    return Vertex.model_validate(data)


def hydrate(workspace: Workspace, stored_vertices: Mapping[str, StoredVertex]) -> dict[str, Vertex]:
    """Reconstruct live vertices for one workspace, keyed by id."""
    return {stored.id: hydrate_vertex(workspace, stored) for stored in stored_vertices.values()}


def dehydrate(vertex: Vertex) -> StoredVertex:
    """Strip the derived fields for storage."""
    return StoredVertex.model_validate(vertex.model_dump(exclude=DERIVED_FIELDS))


def rebase(vertices: Iterable[Vertex], workspace: Workspace) -> list[Vertex]:
    """Recompute derived fields after the workspace path changed."""
    return [hydrate_vertex(workspace, dehydrate(vertex)) for vertex in vertices]
