"""Workspace resolution through the vertex ancestry chain.

A vertex belongs to the workspace named by its own ``workspace_id`` or, if
that is omitted, by the nearest ancestor that carries one.  The walk is a
bounded loop over an id -> vertex map and returns ``None`` rather than
raising when the chain ends without an owner, hits a missing parent, or
loops back on itself.
"""

from __future__ import annotations

from collections.abc import Mapping

from mindcapsule.persistence.models.vertex import Vertex


def resolve_workspace_id(vertex: Vertex, vertices: Mapping[str, Vertex]) -> str | None:
    current: Vertex | None = vertex
    visited: set[str] = set()

    # One step per known vertex plus the starting one is enough to reach any root.
    for _ in range(len(vertices) + 1):
        if current is None:
            return None
        if current.workspace_id:
            return current.workspace_id
        if not current.parent_id or current.parent_id in visited:
            return None
        visited.add(current.id)
        current = vertices.get(current.parent_id)
    return None
