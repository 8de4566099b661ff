"""Workspace data models.

A workspace is a user-chosen root folder plus metadata.  The catalog entry is
a denormalized projection of it, persisted as one array in the shared
key/value store so workspaces can be enumerated without touching any
workspace folder.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class Workspace(BaseModel):
    """Live workspace record owned by the persistence engine."""

    id: str
    name: str
    path: str = Field(description="Authoritative filesystem root of the workspace")
    purpose: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    root_vertex_ids: list[str] | None = None

    def to_catalog_entry(self) -> WorkspaceCatalogEntry:
        return WorkspaceCatalogEntry(
            id=self.id,
            name=self.name,
            path=self.path,
            purpose=self.purpose,
            created_at=self.created_at,
            updated_at=self.updated_at,
            tags=list(self.tags),
            root_vertex_ids=None if self.root_vertex_ids is None else list(self.root_vertex_ids),
        )


class WorkspaceCatalogEntry(BaseModel):
    """One element of the persisted catalog array."""

    id: str
    name: str
    path: str
    purpose: str | None = None
    created_at: datetime
    updated_at: datetime
    tags: list[str] = Field(default_factory=list)
    root_vertex_ids: list[str] | None = None

    def to_workspace(self) -> Workspace:
        return Workspace(
            id=self.id,
            name=self.name,
            path=self.path,
            purpose=self.purpose,
            created_at=self.created_at,
            updated_at=self.updated_at,
            tags=list(self.tags),
            root_vertex_ids=None if self.root_vertex_ids is None else list(self.root_vertex_ids),
        )
