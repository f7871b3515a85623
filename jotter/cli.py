from __future__ import annotations
from typing import Optional
import asyncio
import inspect
import logging
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.table import Table

from .errors import AuthRequired, NotFoundError, RemoteError
from .gateway import SqlNoteGateway
from .models import Note, NoteColor, SortOption
from .runtime import Settings, open_store
from .storage import SyncMarker
from .store import NoteStore
from .sync import SyncCoordinator

app = typer.Typer(help="Jotter: notes that follow you around")
console = Console()
err_console = Console(stderr=True)


@app.callback()
def _boot():
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def _run(action, sync: bool = True):
    """Run ``action(store)`` against the local store, saving afterwards."""
    async def main():
        async with open_store(Settings.from_env(), sync=sync) as store:
            result = action(store)
            if inspect.isawaitable(result):
                result = await result
            return result
    return asyncio.run(main())


def _pick(store: NoteStore, identifier: str) -> Note:
    n = store.find(identifier)
    if not n:
        console.print(f"[red]Not found[/]: {identifier}")
        raise typer.Exit(1)
    return n


def _label(n: Note) -> str:
    return n.title or "[dim]<untitled>[/]"


@app.command()
def add(
    title: str = typer.Option("", "--title", "-t"),
    content: str = typer.Option("", "--content", "-c"),
    tags: Optional[str] = typer.Option(None, "--tags", "-g", help="comma separated"),
):
    def action(store: NoteStore) -> Note:
        note_id = store.create_note()
        store.update_note(note_id, title=title, content=content, tags=(tags or "").split(","))
        return store.active_note()

    n = _run(action)
    console.print(f"[green]Created[/] {n.id}: {_label(n)}")


@app.command("list")
def _list(
    tag: Optional[str] = typer.Option(None, "--tag"),
    search: Optional[str] = typer.Option(None, "--search"),
    archived: bool = typer.Option(False, "--archived"),
    sort: Optional[SortOption] = typer.Option(None, "--sort", help="updated|created|title (remembered)"),
):
    def action(store: NoteStore) -> list[Note]:
        if sort is not None:
            store.set_sort_by(sort)
        store.set_filter_tag(tag)
        store.set_search_query(search or "")
        store.set_show_archived(archived)
        return store.filtered_notes()

    notes = _run(action)
    table = Table(title="Jotter")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", style="bold")
    table.add_column("Tags", style="magenta")
    table.add_column("Pinned")
    table.add_column("Color")
    table.add_column("Shared")
    table.add_column("Updated")
    for n in notes:
        table.add_row(
            n.id, _label(n), ", ".join(n.tags),
            "✓" if n.is_pinned else "", n.color.value,
            n.public_slug if n.is_public else "",
            n.updated_at.isoformat(timespec="minutes"),
        )
    console.print(table)


@app.command()
def show(identifier: str):
    n = _run(lambda store: _pick(store, identifier), sync=False)
    console.rule(f"{n.id} {n.title}")
    if n.tags:
        console.print(f"[dim]tags:[/] {', '.join(n.tags)}")
    console.print(f"[dim]color:[/] {n.color.value}")
    if n.is_public:
        console.print(f"[dim]shared as:[/] {n.public_slug}")
    console.print(Markdown(n.content or "_<empty>_"))


@app.command()
def edit(
    identifier: str,
    title: Optional[str] = typer.Option(None, "--title", "-t"),
    content: Optional[str] = typer.Option(None, "--content", "-c"),
    tags: Optional[str] = typer.Option(None, "--tags", "-g"),
):
    fields = {}
    if title is not None:
        fields["title"] = title
    if content is not None:
        fields["content"] = content
    if tags is not None:
        fields["tags"] = tags.split(",")

    def action(store: NoteStore) -> Note:
        n = _pick(store, identifier)
        store.update_note(n.id, **fields)
        return n

    n = _run(action)
    console.print(f"[green]Updated[/] {n.id}: {_label(n)}")


@app.command()
def delete(identifier: str):
    def action(store: NoteStore) -> Note:
        n = _pick(store, identifier)
        store.delete_note(n.id)
        return n

    n = _run(action)
    console.print(f"[yellow]Deleted[/] {n.id}: {_label(n)}")


@app.command()
def duplicate(identifier: str):
    def action(store: NoteStore) -> Note:
        store.duplicate_note(_pick(store, identifier).id)
        return store.active_note()

    n = _run(action)
    console.print(f"[green]Duplicated[/] as {n.id}: {_label(n)}")


@app.command()
def pin(identifier: str):
    def action(store: NoteStore) -> Note:
        n = _pick(store, identifier)
        store.toggle_pin(n.id)
        return n

    n = _run(action)
    state = "[green]Pinned[/]" if n.is_pinned else "[yellow]Unpinned[/]"
    console.print(f"{state} {n.id}: {_label(n)}")


@app.command()
def archive(identifier: str):
    def action(store: NoteStore) -> Note:
        n = _pick(store, identifier)
        store.toggle_archive(n.id)
        return n

    n = _run(action)
    state = "[yellow]Archived[/]" if n.is_archived else "[green]Unarchived[/]"
    console.print(f"{state} {n.id}: {_label(n)}")


@app.command()
def color(identifier: str, value: NoteColor):
    def action(store: NoteStore) -> Note:
        n = _pick(store, identifier)
        store.set_color(n.id, value)
        return n

    n = _run(action)
    console.print(f"[green]Colored[/] {n.id} {value.value}")


@app.command()
def tag(identifier: str, name: str):
    def action(store: NoteStore) -> Note:
        n = _pick(store, identifier)
        store.add_tag(n.id, name)
        return n

    n = _run(action)
    console.print(f"[green]Tags[/] {n.id}: {', '.join(n.tags) or '-'}")


@app.command()
def untag(identifier: str, name: str):
    def action(store: NoteStore) -> Note:
        n = _pick(store, identifier)
        store.remove_tag(n.id, name)
        return n

    n = _run(action)
    console.print(f"[green]Tags[/] {n.id}: {', '.join(n.tags) or '-'}")


@app.command()
def tags():
    for t in _run(lambda store: store.all_tags(), sync=False):
        console.print(f"[magenta]{t}[/]")


@app.command()
def share(identifier: str):
    async def action(store: NoteStore) -> Note:
        n = _pick(store, identifier)
        try:
            await store.toggle_public(n.id)
        except AuthRequired as e:
            console.print(f"[red]{e}[/]")
            raise typer.Exit(1)
        except (RemoteError, NotFoundError) as e:
            console.print(f"[red]Sharing failed[/]: {e}")
            raise typer.Exit(1)
        return n

    n = _run(action)
    if n.is_public:
        console.print(f"[green]Shared[/] {n.id} as {n.public_slug}")
    else:
        console.print(f"[yellow]Unshared[/] {n.id}")


@app.command()
def sync():
    settings = Settings.from_env()
    if not settings.user:
        console.print("[red]Set JOTTER_USER to sync[/]")
        raise typer.Exit(1)

    async def action(store: NoteStore) -> int:
        return await SyncCoordinator(store, SyncMarker(settings.marker_path)).start()

    uploaded = _run(action, sync=False)
    console.print(f"[green]Synced[/] ({uploaded} local notes uploaded)")


@app.command()
def public(slug: str):
    try:
        n = asyncio.run(SqlNoteGateway().get_public_note(slug))
    except NotFoundError:
        console.print(f"[red]Not found[/]: {slug}")
        raise typer.Exit(1)
    except RemoteError as e:
        console.print(f"[red]Notes are unavailable[/]: {e}")
        raise typer.Exit(1)
    console.rule(n.title)
    if n.tags:
        console.print(f"[dim]tags:[/] {', '.join(n.tags)}")
    console.print(Markdown(n.content or "_<empty>_"))


def main():
    app()


if __name__ == "__main__":
    main()
