"""Storage key and path resolution.

Pure functions, no I/O.  They map ids to on-disk locations and to keys in the
shared key/value store::

    {workspace_path}/workspace.json            workspace data file
    {workspace_path}/{vertex_id}/              vertex asset directory
    {workspace_path}/{vertex_id}/links.json    links sidecar
    {workspace_path}/{vertex_id}/images.json   image metadata sidecar
    {workspace_path}/{vertex_id}/notes/        one file per note

Key/value store keys::

    workspace-catalog                          catalog array
    ws-{id}.json / vert-{id}.json              legacy flat records

Paths are plain strings (the same strings persisted in the catalog); both
``/`` and ``\\`` are accepted as separators on input, ``/`` is emitted.
"""

from __future__ import annotations

import re

WORKSPACE_DATA_FILENAME = "workspace.json"
LINKS_FILENAME = "links.json"
IMAGE_METADATA_FILENAME = "images.json"
NOTES_DIRNAME = "notes"

CATALOG_KEY = "workspace-catalog"
WORKSPACE_KEY_PREFIX = "ws-"
VERTEX_KEY_PREFIX = "vert-"
LEGACY_KEY_SUFFIX = ".json"

_SEPARATORS = "/\\"
_DUPLICATE_SEPARATORS = re.compile(r"[/\\]{2,}")


def trim_trailing_separators(path: str) -> str:
    """Strip trailing separators, keeping a bare root (``/``) intact."""
    trimmed = path.rstrip(_SEPARATORS)
    if not trimmed and path:
        return path[0]
    return trimmed


def join_path(*segments: str) -> str:
    """Join path segments with ``/``, never producing doubled separators.

    Empty segments are skipped.  The leading separator of the first segment
    is preserved so absolute paths stay absolute.
    """
    parts: list[str] = []
    for index, segment in enumerate(segments):
        if not segment:
            continue
        if index == 0 or not parts:
            parts.append(trim_trailing_separators(segment))
        else:
            parts.append(segment.strip(_SEPARATORS))
    joined = "/".join(part for part in parts if part)
    if parts and parts[0] in ("/", "\\"):
        joined = "/" + joined.lstrip(_SEPARATORS)
    return _DUPLICATE_SEPARATORS.sub("/", joined)


def last_segment(path: str) -> str:
    """Last non-empty segment of a path (``""`` for a bare root)."""
    trimmed = path.rstrip(_SEPARATORS)
    for sep in _SEPARATORS:
        trimmed = trimmed.rsplit(sep, 1)[-1]
    return trimmed


def asset_directory(workspace_path: str, vertex_id: str) -> str:
    """Asset directory of a vertex: ``{workspace_path}/{vertex_id}``.

    Returns ``""`` when either input is blank, which callers treat as
    unresolvable (the corruption flag).
    """
    if not workspace_path.strip() or not vertex_id.strip():
        return ""
    return join_path(workspace_path, vertex_id)


def workspace_data_path(workspace_path: str) -> str:
    return join_path(workspace_path, WORKSPACE_DATA_FILENAME)


def links_path(directory: str) -> str:
    return join_path(directory, LINKS_FILENAME)


def image_metadata_path(directory: str) -> str:
    return join_path(directory, IMAGE_METADATA_FILENAME)


def notes_directory(directory: str) -> str:
    return join_path(directory, NOTES_DIRNAME)


# -- Key/value store keys ----------------------------------------------------


def workspace_storage_key(workspace_id: str) -> str:
    return f"{WORKSPACE_KEY_PREFIX}{workspace_id}{LEGACY_KEY_SUFFIX}"


def vertex_storage_key(vertex_id: str) -> str:
    return f"{VERTEX_KEY_PREFIX}{vertex_id}{LEGACY_KEY_SUFFIX}"


def parse_storage_key(key: str, prefix: str) -> str | None:
    """Extract the id from ``{prefix}{id}.json``; ``None`` if the key doesn't match."""
    if not key.startswith(prefix) or not key.endswith(LEGACY_KEY_SUFFIX):
        return None
    entity_id = key[len(prefix) : -len(LEGACY_KEY_SUFFIX)]
    return entity_id or None


def is_safe_name(name: str) -> bool:
    """A single path component: non-empty, no separators, not ``.``/``..``."""
    return bool(name) and name not in (".", "..") and not any(sep in name for sep in _SEPARATORS)
