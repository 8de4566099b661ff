"""Workspace data file format detection and migration.

Three shapes have been written over time, recognized most specific first:

1. Legacy combined::

       {"workspace": {...}, "vertices": {"<id>": {...}}}

   The embedded workspace is discarded -- the catalog is now authoritative
   for workspace metadata.

2. Versioned vertices-only with a missing or outdated version::

       {"version": 1, "vertices": {...}}

3. Current::

       {"version": DATA_VERSION, "vertices": {...}}

Every shape is decoded through ``migrate``, which always emits the current
one.  The only change the version number tracks is the removal of the
embedded workspace, so migration is a single forward step: accept the
vertices and re-stamp the version.

A missing or unparsable file is "no content yet", never an error.
"""

from __future__ import annotations

import json
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from mindcapsule.persistence.models.enums import DataFormat
from mindcapsule.persistence.models.vertex import DERIVED_FIELDS, StoredVertex
from mindcapsule.persistence.paths import workspace_data_path
from mindcapsule.persistence.store.base import FileSystem

DATA_VERSION = 2


class WorkspaceData(BaseModel):
    """Normalized content of a workspace data file."""

    version: int = DATA_VERSION
    vertices: dict[str, StoredVertex] = Field(default_factory=dict)


class UnrecognizedFormatError(ValueError):
    """Raised by ``detect_format`` when a payload matches no known shape."""


def detect_format(raw: Any) -> DataFormat:
    """Classify a decoded data file by the keys it carries."""
    if not isinstance(raw, dict) or not isinstance(raw.get("vertices"), dict | list):
        msg = "Workspace data must be an object with a 'vertices' collection"
        raise UnrecognizedFormatError(msg)

    if "workspace" in raw:
        return DataFormat.LEGACY_COMBINED

    version = raw.get("version")
    if isinstance(version, int) and not isinstance(version, bool) and version >= DATA_VERSION:
        return DataFormat.CURRENT
    return DataFormat.VERSIONED


def migrate(raw: Any) -> WorkspaceData:
    """Normalize any known shape to the current one.

    Accepts a decoded JSON payload or an already-normalized ``WorkspaceData``,
    so ``migrate(migrate(x)) == migrate(x)``.  Raises
    ``UnrecognizedFormatError`` when the payload matches no shape.
    """
    if isinstance(raw, WorkspaceData):
        raw = raw.model_dump(mode="json")

    source_format = detect_format(raw)
    if source_format is DataFormat.CURRENT and raw["version"] > DATA_VERSION:
        logger.warning("Workspace data version {} is newer than {}; reading it as-is", raw["version"], DATA_VERSION)

    return WorkspaceData(version=DATA_VERSION, vertices=_parse_vertices(raw["vertices"]))


def _parse_vertices(raw_vertices: dict | list) -> dict[str, StoredVertex]:
    """Validate stored vertices one by one, skipping unusable records.

    Derived fields baked into old data are dropped; a record whose map key
    differs from its ``id`` is keyed by the ``id``.
    """
    items = raw_vertices.items() if isinstance(raw_vertices, dict) else ((None, v) for v in raw_vertices)

    vertices: dict[str, StoredVertex] = {}
    for key, value in items:
        if not isinstance(value, dict):
            logger.warning("Skipping stored vertex {!r}: not an object", key)
            continue
        record = {k: v for k, v in value.items() if k not in DERIVED_FIELDS}
        if "id" not in record and key is not None:
            record["id"] = key
        try:
            vertex = StoredVertex.model_validate(record)
        except ValidationError as exc:
            logger.warning("Skipping stored vertex {!r}: {}", key, exc.errors()[0]["msg"])
            continue
        vertices[vertex.id] = vertex
    return vertices


# -- File I/O ----------------------------------------------------------------


async def read_workspace_data(fs: FileSystem, workspace_path: str) -> tuple[WorkspaceData, DataFormat] | None:
    """Read and normalize a workspace's data file.

    Returns the normalized data and the format it was found in, or ``None``
    when the file is missing, unreadable or matches no known shape.
    """
    path = workspace_data_path(workspace_path)
    try:
        raw_text = await fs.read_text(path)
    except (FileNotFoundError, NotADirectoryError):
        return None
    except UnicodeDecodeError as exc:
        logger.warning("Workspace data {} is not UTF-8, treating as empty: {}", path, exc)
        return None
    except OSError as exc:
        logger.warning("Cannot read workspace data {}: {}", path, exc)
        return None

    try:
        raw = json.loads(raw_text)
        source_format = detect_format(raw)
        data = migrate(raw)
    except (json.JSONDecodeError, UnrecognizedFormatError) as exc:
        logger.warning("Workspace data {} is corrupt, treating as empty: {}", path, exc)
        return None

    if source_format is not DataFormat.CURRENT:
        logger.info("Workspace data {} migrated from {} format", path, source_format)
    return data, source_format


async def write_workspace_data(fs: FileSystem, workspace_path: str, data: WorkspaceData) -> None:
    """Write the current shape of a workspace's data file."""
    await fs.write_text(workspace_data_path(workspace_path), data.model_dump_json(indent=2))
