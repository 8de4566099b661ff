import asyncio
import uuid

import click


def _engine():
    """Build the persistence engine from settings, with logging configured."""
    from mindcapsule.persistence.engine import PersistenceEngine
    from mindcapsule.persistence.log import setup_logging
    from mindcapsule.persistence.settings import get_settings

    settings = get_settings()
    setup_logging(settings.log_level)
    return PersistenceEngine.from_settings(settings)


@click.group()
def main() -> None:
    """Mind Capsule - local workspace and vertex persistence."""


# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------


@main.group()
def workspaces() -> None:
    """Manage the workspace catalog."""


@workspaces.command("list")
def list_workspaces() -> None:
    """List cataloged workspaces."""
    engine = _engine()
    for ws in asyncio.run(engine.get_workspaces()):
        click.echo(f"{ws.id}\t{ws.name}\t{ws.path}")


@workspaces.command("add")
@click.argument("path", type=click.Path(file_okay=False))
@click.option("--name", default=None, help="Display name (default: the folder name).")
def add_workspace(path: str, name: str | None) -> None:
    """Catalog PATH as a workspace, adopting any data already in it."""
    from pathlib import Path

    from mindcapsule.persistence.models import Workspace

    folder = Path(path).expanduser().resolve()
    workspace = Workspace(id=uuid.uuid4().hex, name=name or folder.name, path=folder.as_posix())
    created = asyncio.run(_engine().create_workspace(workspace))
    click.echo(f"Workspace added: {created.id} ({created.path})")


@workspaces.command("remove")
@click.argument("workspace_id")
def remove_workspace(workspace_id: str) -> None:
    """Remove a workspace from the catalog.  Files on disk are kept."""
    from mindcapsule.persistence.errors import WorkspaceNotFoundError

    try:
        removed = asyncio.run(_engine().remove_workspace(workspace_id))
    except WorkspaceNotFoundError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Workspace removed: {workspace_id} ({removed} vertices)")


@workspaces.command("prune")
def prune_workspaces() -> None:
    """Remove workspaces whose folder no longer exists."""
    result = asyncio.run(_engine().prune_missing_workspaces())
    click.echo(f"Pruned {result.workspaces_removed} workspaces ({result.vertices_removed} vertices).")


# ---------------------------------------------------------------------------
# Vertices
# ---------------------------------------------------------------------------


@main.group()
def vertices() -> None:
    """Inspect vertices."""


@vertices.command("list")
@click.argument("workspace_id")
def list_vertices(workspace_id: str) -> None:
    """List every vertex of a workspace, children indented under parents."""

    async def _collect():
        engine = _engine()
        if await engine.get_workspace(workspace_id) is None:
            return None
        items = [v for v in await engine.get_all_vertices() if v.workspace_id == workspace_id]
        return items

    items = asyncio.run(_collect())
    if items is None:
        raise click.ClickException(f"Workspace '{workspace_id}' does not exist")

    children: dict[str | None, list] = {}
    known = {v.id for v in items}
    for vertex in sorted(items, key=lambda v: (v.title, v.id)):
        parent = vertex.parent_id if vertex.parent_id in known else None
        children.setdefault(parent, []).append(vertex)

    def _echo(parent_id: str | None, depth: int) -> None:
        for vertex in children.get(parent_id, []):
            flag = " [corrupt]" if vertex.is_corrupt else ""
            click.echo(f"{'  ' * depth}{vertex.id}\t{vertex.title}{flag}")
            _echo(vertex.id, depth + 1)

    _echo(None, 0)


if __name__ == "__main__":
    main()
