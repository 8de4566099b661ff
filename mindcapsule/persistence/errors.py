"""Domain exceptions raised by the persistence engine.

Integrity errors (conflicts, missing links, unknown ids on update/delete)
propagate to the caller.  Data-presence problems (missing or corrupt files)
never raise: read accessors return ``None`` or an empty collection instead.
"""

from __future__ import annotations


class MindCapsuleError(Exception):
    """Mixin base for every error raised by this package."""


class DuplicateWorkspaceError(MindCapsuleError, ValueError):
    """Raised when a workspace with the given ID is already cataloged."""

    def __init__(self, workspace_id: str) -> None:
        super().__init__(f"Workspace '{workspace_id}' already exists")
        self.workspace_id = workspace_id


class WorkspaceNotFoundError(MindCapsuleError, LookupError):
    """Raised when updating or removing a workspace that is not cataloged."""

    def __init__(self, workspace_id: str) -> None:
        super().__init__(f"Workspace '{workspace_id}' does not exist")
        self.workspace_id = workspace_id


class DuplicateVertexError(MindCapsuleError, ValueError):
    """Raised when a vertex with the given ID already exists."""

    def __init__(self, vertex_id: str) -> None:
        super().__init__(f"Vertex '{vertex_id}' already exists")
        self.vertex_id = vertex_id


class VertexNotFoundError(MindCapsuleError, LookupError):
    """Raised when updating or removing an unknown vertex."""

    def __init__(self, vertex_id: str) -> None:
        super().__init__(f"Vertex '{vertex_id}' does not exist")
        self.vertex_id = vertex_id


class MissingLinkError(MindCapsuleError, LookupError):
    """Raised when a vertex cannot be resolved to any cataloged workspace."""

    def __init__(self, vertex_id: str, detail: str = "no workspace could be resolved") -> None:
        super().__init__(f"Vertex '{vertex_id}': {detail}")
        self.vertex_id = vertex_id


class MissingAssetDirectoryError(MindCapsuleError, ValueError):
    """Raised when writing an asset for a vertex without an asset directory."""

    def __init__(self, vertex_id: str) -> None:
        super().__init__(f"Vertex '{vertex_id}' has no asset directory")
        self.vertex_id = vertex_id


class UnsupportedImageError(MindCapsuleError, ValueError):
    """Raised when an uploaded image has an extension outside the accepted set."""
