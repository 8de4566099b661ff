"""Link CRUD operations.

All links of a vertex live in one ordered ``links.json`` list; every change
is a read-modify-write of the whole list.
"""

from __future__ import annotations

import uuid

from loguru import logger
from pydantic import ValidationError

from mindcapsule.persistence.managers.sidecar import read_json, require_directory, write_json
from mindcapsule.persistence.models.assets import Link
from mindcapsule.persistence.models.vertex import Vertex
from mindcapsule.persistence.paths import links_path
from mindcapsule.persistence.store.base import FileSystem


async def _read_links(fs: FileSystem, directory: str) -> list[Link]:
    raw = await read_json(fs, links_path(directory))
    if not isinstance(raw, list):
        return []

    links: list[Link] = []
    for item in raw:
        try:
            links.append(Link.model_validate(item))
        except ValidationError:
            logger.warning("Skipping malformed link in {}: {!r}", directory, item)
    return links


async def _write_links(fs: FileSystem, directory: str, links: list[Link]) -> None:
    await write_json(fs, links_path(directory), [link.model_dump(exclude_none=True) for link in links])


async def ensure_links_file(fs: FileSystem, directory: str) -> None:
    """Create an empty ``links.json`` if none exists.  Best-effort: failures are logged."""
    path = links_path(directory)
    try:
        if not await fs.exists(path):
            await fs.write_text(path, "[]")
    except OSError as exc:
        logger.warning("Could not initialize {}: {}", path, exc)


async def list_links(fs: FileSystem, vertex: Vertex) -> list[Link]:
    """Links of a vertex in insertion order."""
    if not vertex.asset_directory:
        return []
    return await _read_links(fs, vertex.asset_directory)


async def create_link(fs: FileSystem, vertex: Vertex, url: str, title: str | None = None) -> Link:
    """Append a link with a generated id."""
    directory = require_directory(vertex)
    links = await _read_links(fs, directory)
    link = Link(id=uuid.uuid4().hex, url=url, title=title or None)
    links.append(link)
    await _write_links(fs, directory, links)
    return link


async def update_link(fs: FileSystem, vertex: Vertex, link: Link) -> Link | None:
    """Replace the link with the same id.  Returns ``None`` if no such link."""
    directory = require_directory(vertex)
    links = await _read_links(fs, directory)
    for index, existing in enumerate(links):
        if existing.id == link.id:
            links[index] = link
            await _write_links(fs, directory, links)
            return link
    return None


async def delete_link(fs: FileSystem, vertex: Vertex, link_id: str) -> bool:
    """Remove a link by id.  Returns ``False`` if it was not present."""
    directory = require_directory(vertex)
    links = await _read_links(fs, directory)
    remaining = [link for link in links if link.id != link_id]
    if len(remaining) == len(links):
        return False
    await _write_links(fs, directory, remaining)
    return True
