"""Data models for the persistence engine."""

from mindcapsule.persistence.models.assets import Image, ImageMetadata, ImageMetadataFile, Link, Note
from mindcapsule.persistence.models.common import utc_now
from mindcapsule.persistence.models.enums import DataFormat
from mindcapsule.persistence.models.vertex import (
    DERIVED_FIELDS,
    ChildrenBehavior,
    CommentReference,
    ImageReference,
    Reference,
    StoredVertex,
    UrlReference,
    Vertex,
    VertexReference,
)
from mindcapsule.persistence.models.workspace import Workspace, WorkspaceCatalogEntry

__all__ = [
    "DERIVED_FIELDS",
    "ChildrenBehavior",
    "CommentReference",
    # Enums
    "DataFormat",
    # Assets
    "Image",
    "ImageMetadata",
    "ImageMetadataFile",
    "ImageReference",
    "Link",
    "Note",
    "Reference",
    # Vertex
    "StoredVertex",
    "UrlReference",
    "Vertex",
    "VertexReference",
    # Workspace
    "Workspace",
    "WorkspaceCatalogEntry",
    "utc_now",
]
