"""Helpers shared by the asset managers."""

from __future__ import annotations

import json
from typing import Any

from loguru import logger

from mindcapsule.persistence.errors import MissingAssetDirectoryError
from mindcapsule.persistence.models.vertex import Vertex
from mindcapsule.persistence.store.base import FileSystem


def require_directory(vertex: Vertex) -> str:
    """Asset directory of a vertex, or ``MissingAssetDirectoryError`` for writes."""
    if not vertex.asset_directory:
        raise MissingAssetDirectoryError(vertex.id)
    return vertex.asset_directory


async def read_json(fs: FileSystem, path: str) -> Any | None:
    """Decode a JSON sidecar.  Missing or corrupt files yield ``None``."""
    try:
        raw = await fs.read_text(path)
    except (FileNotFoundError, NotADirectoryError):
        return None
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Cannot read {}: {}", path, exc)
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("Sidecar {} is corrupt, treating as empty: {}", path, exc)
        return None


async def write_json(fs: FileSystem, path: str, payload: Any) -> None:
    await fs.write_text(path, json.dumps(payload, indent=2, ensure_ascii=False))
