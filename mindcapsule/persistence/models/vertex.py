"""Vertex data models.

A vertex is one node of a per-workspace forest.  Two shapes exist:

- ``StoredVertex`` is what the workspace data file holds.
- ``Vertex`` adds the derived ``workspace_id`` and ``asset_directory``, which
  are recomputed on every hydration and never serialized.

Fields written by older clients that this version does not model
(``description``, ``thumbnail``, ``children_ids``, ...) are kept as extras so
that a load/save cycle never drops them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

DERIVED_FIELDS = frozenset({"workspace_id", "asset_directory"})

# -- References --------------------------------------------------------------


class VertexReference(BaseModel):
    type: Literal["vertex"] = "vertex"
    vertex_id: str


class UrlReference(BaseModel):
    type: Literal["url"] = "url"
    url: str
    title: str | None = None


class ImageReference(BaseModel):
    type: Literal["image"] = "image"
    path: str
    alt: str | None = None


class CommentReference(BaseModel):
    type: Literal["comment"] = "comment"
    text: str
    created_at: datetime | None = None


Reference = Annotated[
    VertexReference | UrlReference | ImageReference | CommentReference,
    Field(discriminator="type"),
]

# -- Vertex ------------------------------------------------------------------


class ChildrenBehavior(BaseModel):
    """How children of a vertex are created and displayed."""

    model_config = ConfigDict(extra="allow")

    child_kind: str = "item"
    display: str = "grid"


class StoredVertex(BaseModel):
    """On-disk vertex: everything except the derived location fields."""

    model_config = ConfigDict(extra="allow")

    id: str
    title: str = ""
    parent_id: str | None = None
    kind: str = "item"
    tags: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    children_behavior: ChildrenBehavior | None = None
    children_layout: dict | None = None
    references: list[Reference] | None = None
    is_corrupt: bool = False


class Vertex(StoredVertex):
    """Live vertex with derived fields filled in by the hydrator."""

    workspace_id: str | None = Field(
        default=None, description="Explicit owner; omitted on children that inherit it from an ancestor"
    )
    asset_directory: str | None = Field(default=None, description="Derived from the owning workspace's path")
