"""Workspace catalog.

The catalog is the single authoritative list of known workspaces, stored as
one array under ``CATALOG_KEY`` in the shared key/value store.  It is the
only thing that decides which workspace folders get loaded: a folder on disk
that is not cataloged is invisible.

When the catalog key is absent (first run after an upgrade), entries are
derived from the legacy ``ws-<id>.json`` records and persisted immediately so
the derivation happens once.
"""

from __future__ import annotations

from typing import Any

from loguru import logger
from pydantic import ValidationError

from mindcapsule.persistence.legacy import LegacyFlatKeyStore
from mindcapsule.persistence.models.common import utc_now
from mindcapsule.persistence.models.workspace import WorkspaceCatalogEntry
from mindcapsule.persistence.paths import CATALOG_KEY, last_segment
from mindcapsule.persistence.store.base import KeyValueStore


def normalize_entry(raw: Any) -> WorkspaceCatalogEntry | None:
    """Validate one raw catalog record, filling in what older records lack.

    A missing name is derived from the last path segment and missing
    timestamps are backfilled with the current time.  Records without an
    ``id`` or ``path`` are unusable and yield ``None``.
    """
    if not isinstance(raw, dict) or not raw.get("id") or not raw.get("path"):
        return None

    record = dict(raw)
    if not record.get("name"):
        record["name"] = last_segment(record["path"]) or record["id"]
    now = utc_now()
    record["created_at"] = record.get("created_at") or now
    record["updated_at"] = record.get("updated_at") or now
    if record.get("tags") is None:
        record["tags"] = []

    try:
        return WorkspaceCatalogEntry.model_validate(record)
    except ValidationError:
        return None


class WorkspaceCatalog:
    """Load/save the catalog array from a key/value store."""

    def __init__(self, store: KeyValueStore, legacy: LegacyFlatKeyStore | None = None) -> None:
        self._store = store
        self._legacy = legacy or LegacyFlatKeyStore(store)

    async def load(self) -> list[WorkspaceCatalogEntry]:
        raw = await self._store.get(CATALOG_KEY)
        if raw is None:
            entries = self._normalize_all(await self._legacy.scan_workspaces())
            await self.save(entries)
            logger.info("Catalog bootstrapped from {} legacy workspace records", len(entries))
            return entries

        if not isinstance(raw, list):
            logger.warning("Catalog is not a list, ignoring it")
            return []
        return self._normalize_all(raw)

    async def save(self, entries: list[WorkspaceCatalogEntry]) -> None:
        await self._store.set(CATALOG_KEY, [entry.model_dump(mode="json") for entry in entries])
        await self._store.save()

    @staticmethod
    def _normalize_all(raw_entries: list[Any]) -> list[WorkspaceCatalogEntry]:
        entries: list[WorkspaceCatalogEntry] = []
        seen: set[str] = set()
        for raw in raw_entries:
            entry = normalize_entry(raw)
            if entry is None:
                logger.warning("Skipping unusable catalog entry: {!r}", raw)
                continue
            if entry.id in seen:
                logger.warning("Skipping duplicate catalog entry {}", entry.id)
                continue
            seen.add(entry.id)
            entries.append(entry)
        return entries
