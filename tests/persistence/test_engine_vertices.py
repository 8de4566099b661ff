"""Engine tests: vertex CRUD, ancestry and asset directory handling."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from mindcapsule.persistence.engine import PersistenceEngine
from mindcapsule.persistence.errors import DuplicateVertexError, MissingLinkError, VertexNotFoundError
from mindcapsule.persistence.models import UrlReference, Vertex, Workspace


@pytest.fixture
async def workspace(make_workspace) -> Workspace:
    return await make_workspace()


def _stored_ids(workspace: Workspace) -> set[str]:
    return set(json.loads(Path(workspace.path, "workspace.json").read_text())["vertices"])


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


async def test_create_vertex(engine: PersistenceEngine, workspace: Workspace) -> None:
    created = await engine.create_vertex(Vertex(id="v1", title="Root", workspace_id=workspace.id))

    assert created.asset_directory == f"{workspace.path}/v1"
    assert created.created_at is not None
    assert created.updated_at is not None
    assert not created.is_corrupt

    directory = Path(created.asset_directory)
    assert directory.is_dir()
    assert json.loads((directory / "links.json").read_text()) == []
    assert _stored_ids(workspace) == {"v1"}


async def test_create_child_inherits_workspace(engine: PersistenceEngine, workspace: Workspace) -> None:
    await engine.create_vertex(Vertex(id="root", workspace_id=workspace.id))
    child = await engine.create_vertex(Vertex(id="child", parent_id="root"))
    grandchild = await engine.create_vertex(Vertex(id="grandchild", parent_id="child"))

    assert child.workspace_id == workspace.id
    assert grandchild.asset_directory == f"{workspace.path}/grandchild"
    assert _stored_ids(workspace) == {"root", "child", "grandchild"}


async def test_create_vertex_with_dangling_parent(engine: PersistenceEngine, workspace: Workspace) -> None:
    with pytest.raises(MissingLinkError):
        await engine.create_vertex(Vertex(id="orphan", parent_id="does-not-exist"))

    assert await engine.get_all_vertices() == []


async def test_create_vertex_for_uncataloged_workspace(engine: PersistenceEngine) -> None:
    with pytest.raises(MissingLinkError, match="not cataloged"):
        await engine.create_vertex(Vertex(id="v1", workspace_id="ghost"))


async def test_create_duplicate_vertex(engine: PersistenceEngine, workspace: Workspace) -> None:
    original = await engine.create_vertex(Vertex(id="v1", title="Original", workspace_id=workspace.id))

    with pytest.raises(DuplicateVertexError):
        await engine.create_vertex(Vertex(id="v1", title="Impostor", workspace_id=workspace.id))

    assert await engine.get_all_vertices() == [original]


async def test_vertex_roundtrip_across_restart(engine, workspace, fresh_engine) -> None:
    created = await engine.create_vertex(
        Vertex(
            id="v1",
            title="Reading",
            workspace_id=workspace.id,
            tags=["books"],
            references=[UrlReference(url="https://example.org", title="Example")],
            description="field from an older client",
        )
    )

    reloaded = await fresh_engine().get_vertex("v1")

    assert reloaded is not None
    assert reloaded.model_dump() == created.model_dump()
    assert reloaded.model_dump()["description"] == "field from an older client"


async def test_stored_vertices_omit_derived_fields(engine: PersistenceEngine, workspace: Workspace) -> None:
    await engine.create_vertex(Vertex(id="v1", workspace_id=workspace.id))

    stored = json.loads(Path(workspace.path, "workspace.json").read_text())["vertices"]["v1"]
    assert "workspace_id" not in stored
    assert "asset_directory" not in stored


# ---------------------------------------------------------------------------
# read
# ---------------------------------------------------------------------------


async def test_vertex_queries(engine: PersistenceEngine, make_workspace) -> None:
    ws1 = await make_workspace("ws-1")
    ws2 = await make_workspace("ws-2")
    await engine.create_vertex(Vertex(id="a", workspace_id=ws1.id))
    await engine.create_vertex(Vertex(id="a1", parent_id="a"))
    await engine.create_vertex(Vertex(id="a2", parent_id="a"))
    await engine.create_vertex(Vertex(id="b", workspace_id=ws2.id))

    assert sorted(v.id for v in await engine.get_vertices("a")) == ["a1", "a2"]
    assert [v.id for v in await engine.get_workspace_root_vertices(ws1.id)] == ["a"]
    assert [v.id for v in await engine.get_workspace_root_vertices(ws2.id)] == ["b"]
    assert len(await engine.get_all_vertices()) == 4
    assert await engine.get_vertex("missing") is None


async def test_resolve_workspace_id(engine: PersistenceEngine, workspace: Workspace) -> None:
    await engine.create_vertex(Vertex(id="root", workspace_id=workspace.id))

    assert await engine.resolve_workspace_id(Vertex(id="new", parent_id="root")) == workspace.id
    assert await engine.resolve_workspace_id(Vertex(id="new", parent_id="nowhere")) is None


# ---------------------------------------------------------------------------
# update
# ---------------------------------------------------------------------------


async def test_update_vertex(engine, workspace, fresh_engine) -> None:
    created = await engine.create_vertex(Vertex(id="v1", title="Draft", workspace_id=workspace.id))

    changed = created.model_copy(update={"title": "Final", "created_at": None, "asset_directory": None})
    updated = await engine.update_vertex(changed)

    assert updated.title == "Final"
    assert updated.created_at == created.created_at
    assert updated.updated_at >= created.updated_at
    assert updated.asset_directory == created.asset_directory
    assert (await fresh_engine().get_vertex("v1")).title == "Final"


async def test_update_vertex_explicit_asset_directory(engine: PersistenceEngine, workspace: Workspace) -> None:
    created = await engine.create_vertex(Vertex(id="v1", workspace_id=workspace.id))

    updated = await engine.update_vertex(created.model_copy(update={"asset_directory": "/elsewhere/v1"}))
    assert updated.asset_directory == "/elsewhere/v1"


async def test_update_unknown_vertex(engine: PersistenceEngine, workspace: Workspace) -> None:
    with pytest.raises(VertexNotFoundError):
        await engine.update_vertex(Vertex(id="ghost", workspace_id=workspace.id))


async def test_update_moves_vertex_between_workspaces(engine: PersistenceEngine, make_workspace) -> None:
    source = await make_workspace("ws-src")
    target = await make_workspace("ws-dst")
    created = await engine.create_vertex(Vertex(id="v1", workspace_id=source.id))

    moved = await engine.update_vertex(created.model_copy(update={"workspace_id": target.id, "asset_directory": None}))

    assert moved.workspace_id == target.id
    assert moved.asset_directory == f"{target.path}/v1"
    assert _stored_ids(source) == set()
    assert _stored_ids(target) == {"v1"}


# ---------------------------------------------------------------------------
# remove
# ---------------------------------------------------------------------------


async def test_remove_vertex(engine: PersistenceEngine, workspace: Workspace) -> None:
    created = await engine.create_vertex(Vertex(id="v1", workspace_id=workspace.id))

    await engine.remove_vertex(created)

    assert await engine.get_vertex("v1") is None
    assert _stored_ids(workspace) == set()
    # Assets stay on disk until explicitly purged.
    assert Path(created.asset_directory).is_dir()


async def test_remove_vertex_with_dangling_parent(engine: PersistenceEngine, workspace: Workspace) -> None:
    with pytest.raises(MissingLinkError):
        await engine.remove_vertex(Vertex(id="v1", parent_id="does-not-exist"))


async def test_remove_unknown_vertex(engine: PersistenceEngine, workspace: Workspace) -> None:
    with pytest.raises(VertexNotFoundError):
        await engine.remove_vertex(Vertex(id="ghost", workspace_id=workspace.id))


async def test_remove_vertex_uses_stored_workspace(engine, make_workspace, fresh_engine) -> None:
    first = await make_workspace("ws-a", "A")
    second = await make_workspace("ws-b", "B")
    stale = await engine.create_vertex(Vertex(id="v", workspace_id=first.id))
    await engine.update_vertex(stale.model_copy(update={"workspace_id": second.id, "asset_directory": None}))

    await engine.remove_vertex(stale)

    assert _stored_ids(first) == set()
    assert _stored_ids(second) == set()
    assert await fresh_engine().get_vertex("v") is None


async def test_remove_parent_keeps_children(engine: PersistenceEngine, workspace: Workspace) -> None:
    parent = await engine.create_vertex(Vertex(id="p", workspace_id=workspace.id))
    await engine.create_vertex(Vertex(id="c", parent_id="p"))

    await engine.remove_vertex(parent)

    child = await engine.get_vertex("c")
    assert child is not None
    assert child.workspace_id == workspace.id
    assert _stored_ids(workspace) == {"c"}


async def test_purge_vertex_directory(engine: PersistenceEngine, workspace: Workspace) -> None:
    created = await engine.create_vertex(Vertex(id="v1", workspace_id=workspace.id))

    assert await engine.purge_vertex_directory(created) is True
    assert not Path(created.asset_directory).exists()
    assert await engine.purge_vertex_directory(Vertex(id="unplaced")) is False
