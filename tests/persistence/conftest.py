"""Shared fixtures for persistence tests.

Everything runs against the real local filesystem under ``tmp_path``; no
mocks beyond a counting wrapper used to observe bootstrap reads.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path

import pytest

from mindcapsule.persistence.engine import PersistenceEngine
from mindcapsule.persistence.models import Workspace
from mindcapsule.persistence.store.kv import JsonFileStore
from mindcapsule.persistence.store.local import LocalFileSystem


class CountingFileSystem(LocalFileSystem):
    """LocalFileSystem that records every path passed to ``read_text``."""

    def __init__(self) -> None:
        self.text_reads: list[str] = []

    async def read_text(self, path: str) -> str:
        self.text_reads.append(path)
        return await super().read_text(path)


@pytest.fixture
def fs() -> CountingFileSystem:
    return CountingFileSystem()


@pytest.fixture
def store_path(tmp_path: Path) -> str:
    return (tmp_path / "store.json").as_posix()


@pytest.fixture
def store(fs: CountingFileSystem, store_path: str) -> JsonFileStore:
    return JsonFileStore(store_path, fs=fs)


@pytest.fixture
def engine(fs: CountingFileSystem, store: JsonFileStore, tmp_path: Path) -> PersistenceEngine:
    return PersistenceEngine(fs, store, default_workspace_root=(tmp_path / "default").as_posix())


@pytest.fixture
def fresh_engine(fs: CountingFileSystem, store_path: str) -> Callable[[], PersistenceEngine]:
    """Factory for a new engine over the same store file, simulating a restart."""

    def _make() -> PersistenceEngine:
        return PersistenceEngine(fs, JsonFileStore(store_path, fs=fs))

    return _make


@pytest.fixture
def make_workspace(engine: PersistenceEngine, tmp_path: Path) -> Callable[..., Awaitable[Workspace]]:
    """Create and catalog a workspace rooted under ``tmp_path``."""

    async def _make(workspace_id: str = "ws-1", name: str = "Research") -> Workspace:
        path = (tmp_path / "workspaces" / workspace_id).as_posix()
        return await engine.create_workspace(Workspace(id=workspace_id, name=name, path=path))

    return _make
