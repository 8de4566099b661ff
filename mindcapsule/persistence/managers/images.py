"""Image CRUD operations.

Images are plain files in the vertex's asset directory, recognized by
extension.  Optional ``alt`` / ``description`` text lives in the
``images.json`` sidecar keyed by file name.  A metadata entry with no
non-blank field is never stored: clearing both fields removes the entry.

Listing returns each image as a self-contained base64 ``data:`` URL so the
caller can display it without further file access.
"""

from __future__ import annotations

import base64
from pathlib import PurePosixPath

from loguru import logger
from pydantic import ValidationError

from mindcapsule.persistence.errors import UnsupportedImageError
from mindcapsule.persistence.managers.sidecar import read_json, require_directory, write_json
from mindcapsule.persistence.models.assets import Image, ImageMetadata, ImageMetadataFile
from mindcapsule.persistence.models.vertex import Vertex
from mindcapsule.persistence.paths import image_metadata_path, is_safe_name, join_path
from mindcapsule.persistence.store.base import FileSystem

MIME_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "bmp": "image/bmp",
    "tiff": "image/tiff",
    "svg": "image/svg+xml",
}
IMAGE_EXTENSIONS = frozenset(MIME_TYPES)


def image_extension(name: str) -> str:
    return PurePosixPath(name).suffix.lstrip(".").lower()


def is_image_name(name: str) -> bool:
    return image_extension(name) in IMAGE_EXTENSIONS


def _image_path(directory: str, name: str) -> str:
    if not is_safe_name(name):
        msg = f"Invalid image name: {name!r}"
        raise ValueError(msg)
    return join_path(directory, name)


def _clean_metadata(alt: str | None, description: str | None) -> ImageMetadata | None:
    """Drop blank fields; ``None`` when nothing is left."""
    alt = alt.strip() if alt else None
    description = description.strip() if description else None
    if not alt and not description:
        return None
    return ImageMetadata(alt=alt or None, description=description or None)


# -- Sidecar -----------------------------------------------------------------


async def _read_metadata(fs: FileSystem, directory: str) -> dict[str, ImageMetadata]:
    raw = await read_json(fs, image_metadata_path(directory))
    if raw is None:
        return {}
    try:
        return ImageMetadataFile.model_validate(raw).images
    except ValidationError:
        logger.warning("Image metadata in {} is malformed, treating as empty", directory)
        return {}


async def _write_metadata(fs: FileSystem, directory: str, images: dict[str, ImageMetadata]) -> None:
    kept = {}
    for name, meta in images.items():
        cleaned = _clean_metadata(meta.alt, meta.description)
        if cleaned is not None:
            kept[name] = cleaned.model_dump(exclude_none=True)
    await write_json(fs, image_metadata_path(directory), {"images": kept})


async def _load_image(fs: FileSystem, directory: str, name: str, meta: ImageMetadata | None) -> Image | None:
    path = _image_path(directory, name)
    try:
        data = await fs.read_bytes(path)
    except (FileNotFoundError, NotADirectoryError, IsADirectoryError):
        return None
    return _to_image(path, name, data, meta)


def _to_image(path: str, name: str, data: bytes, meta: ImageMetadata | None) -> Image:
    mime_type = MIME_TYPES[image_extension(name)]
    encoded = base64.b64encode(data).decode("ascii")
    return Image(
        name=name,
        path=path,
        mime_type=mime_type,
        data_url=f"data:{mime_type};base64,{encoded}",
        alt=meta.alt if meta else None,
        description=meta.description if meta else None,
    )


# -- Operations --------------------------------------------------------------


async def list_images(fs: FileSystem, vertex: Vertex) -> list[Image]:
    """All images of a vertex, sorted by file name, with their metadata merged in."""
    if not vertex.asset_directory:
        return []
    directory = vertex.asset_directory
    try:
        entries = await fs.read_dir(directory)
    except (FileNotFoundError, NotADirectoryError):
        return []

    metadata = await _read_metadata(fs, directory)
    images: list[Image] = []
    for entry in sorted(entries, key=lambda e: e.name):
        if not entry.is_file or not is_image_name(entry.name):
            continue
        image = await _load_image(fs, directory, entry.name, metadata.get(entry.name))
        if image is not None:
            images.append(image)
    return images


async def get_image(fs: FileSystem, vertex: Vertex, name: str) -> Image | None:
    if not vertex.asset_directory or not is_safe_name(name) or not is_image_name(name):
        return None
    metadata = await _read_metadata(fs, vertex.asset_directory)
    return await _load_image(fs, vertex.asset_directory, name, metadata.get(name))


async def create_image(fs: FileSystem, vertex: Vertex, name: str, data: bytes) -> Image:
    """Store an image file.  A name already in use gets a ``-N`` suffix.

    Raises ``UnsupportedImageError`` for extensions outside ``IMAGE_EXTENSIONS``.
    """
    directory = require_directory(vertex)
    if not is_image_name(name):
        msg = f"Unsupported image type: {name!r}"
        raise UnsupportedImageError(msg)

    stem = PurePosixPath(name).stem
    suffix = PurePosixPath(name).suffix
    candidate = name
    counter = 1
    while await fs.exists(_image_path(directory, candidate)):
        candidate = f"{stem}-{counter}{suffix}"
        counter += 1

    path = _image_path(directory, candidate)
    await fs.write_bytes(path, data)
    logger.debug("Image created: {} (vertex={})", candidate, vertex.id)
    return _to_image(path, candidate, data, None)


async def delete_image(fs: FileSystem, vertex: Vertex, name: str) -> bool:
    """Delete an image file and its metadata entry.  Returns ``False`` if neither existed."""
    directory = require_directory(vertex)
    path = _image_path(directory, name)
    existed = await fs.exists(path)
    if existed:
        await fs.remove_file(path)

    metadata = await _read_metadata(fs, directory)
    if name in metadata:
        del metadata[name]
        await _write_metadata(fs, directory, metadata)
        existed = True
    return existed


async def update_image_metadata(
    fs: FileSystem,
    vertex: Vertex,
    name: str,
    *,
    alt: str | None = None,
    description: str | None = None,
) -> Image | None:
    """Set the alt text and description of an image.

    Blank values are treated as absent; when both are blank the entry is
    removed.  Returns the updated image, or ``None`` if the image doesn't exist.
    """
    directory = require_directory(vertex)
    if not is_image_name(name) or not await fs.exists(_image_path(directory, name)):
        return None

    metadata = await _read_metadata(fs, directory)
    cleaned = _clean_metadata(alt, description)
    if cleaned is None:
        metadata.pop(name, None)
    else:
        metadata[name] = cleaned
    await _write_metadata(fs, directory, metadata)
    return await _load_image(fs, directory, name, cleaned)
