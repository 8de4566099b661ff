"""Note CRUD operations.

One plain-text file per note under ``{asset_directory}/notes/``.  New notes
get a timestamp-based name restricted to ``[A-Za-z0-9_-]``.
"""

from __future__ import annotations

import re

from loguru import logger

from mindcapsule.persistence.managers.sidecar import require_directory
from mindcapsule.persistence.models.assets import Note
from mindcapsule.persistence.models.common import utc_now
from mindcapsule.persistence.models.vertex import Vertex
from mindcapsule.persistence.paths import is_safe_name, join_path, notes_directory
from mindcapsule.persistence.store.base import FileSystem

NOTE_EXTENSION = ".md"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def generate_note_name() -> str:
    stamp = _UNSAFE_CHARS.sub("_", utc_now().isoformat())
    return f"note-{stamp}{NOTE_EXTENSION}"


def _note_path(directory: str, name: str) -> str:
    if not is_safe_name(name):
        msg = f"Invalid note name: {name!r}"
        raise ValueError(msg)
    return join_path(notes_directory(directory), name)


async def list_notes(fs: FileSystem, vertex: Vertex) -> list[Note]:
    """All notes of a vertex, sorted by name."""
    if not vertex.asset_directory:
        return []
    folder = notes_directory(vertex.asset_directory)
    try:
        entries = await fs.read_dir(folder)
    except (FileNotFoundError, NotADirectoryError):
        return []

    notes: list[Note] = []
    for entry in sorted(entries, key=lambda e: e.name):
        if not entry.is_file or not entry.name.endswith(NOTE_EXTENSION):
            continue
        try:
            text = await fs.read_text(join_path(folder, entry.name))
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Skipping unreadable note {}: {}", entry.name, exc)
            continue
        notes.append(Note(name=entry.name, text=text))
    return notes


async def get_note(fs: FileSystem, vertex: Vertex, name: str) -> Note | None:
    if not vertex.asset_directory or not is_safe_name(name):
        return None
    try:
        text = await fs.read_text(_note_path(vertex.asset_directory, name))
    except (FileNotFoundError, NotADirectoryError):
        return None
    except UnicodeDecodeError as exc:
        logger.warning("Note {} is not UTF-8: {}", name, exc)
        return None
    return Note(name=name, text=text)


async def create_note(fs: FileSystem, vertex: Vertex, text: str = "") -> Note:
    directory = require_directory(vertex)
    base = generate_note_name().removesuffix(NOTE_EXTENSION)
    name = f"{base}{NOTE_EXTENSION}"
    path = _note_path(directory, name)
    suffix = 1
    while await fs.exists(path):
        name = f"{base}-{suffix}{NOTE_EXTENSION}"
        path = _note_path(directory, name)
        suffix += 1
    await fs.write_text(path, text)
    logger.debug("Note created: {} (vertex={})", name, vertex.id)
    return Note(name=name, text=text)


async def update_note(fs: FileSystem, vertex: Vertex, name: str, text: str) -> Note | None:
    """Overwrite an existing note.  Returns ``None`` if the note doesn't exist."""
    directory = require_directory(vertex)
    path = _note_path(directory, name)
    if not await fs.exists(path):
        return None
    await fs.write_text(path, text)
    return Note(name=name, text=text)


async def delete_note(fs: FileSystem, vertex: Vertex, name: str) -> bool:
    """Delete a note.  Returns ``False`` if it didn't exist."""
    directory = require_directory(vertex)
    path = _note_path(directory, name)
    if not await fs.exists(path):
        return False
    await fs.remove_file(path)
    return True
