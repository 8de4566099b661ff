"""Per-vertex asset models (images, notes, links)."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ImageMetadata(BaseModel):
    alt: str | None = None
    description: str | None = None


class ImageMetadataFile(BaseModel):
    """``images.json`` sidecar: filename -> metadata."""

    images: dict[str, ImageMetadata] = Field(default_factory=dict)


class Image(BaseModel):
    name: str
    path: str = Field(description="Absolute path of the image file")
    mime_type: str = "application/octet-stream"
    data_url: str = Field(default="", description="Self-contained base64 ``data:`` URL for display")
    alt: str | None = None
    description: str | None = None


class Note(BaseModel):
    name: str
    text: str = ""


class Link(BaseModel):
    id: str
    url: str
    title: str | None = None
