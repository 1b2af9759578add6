from __future__ import annotations
from contextlib import contextmanager
from typing import Optional
import typer
import uvicorn
from rich.console import Console
from rich.table import Table
from rich.markdown import Markdown

from .config import configure_logging, load_settings
from .db import init_db, session_scope
from .errors import NotedoError
from .models import PRIORITIES
from .services import (
    create_note, list_notes, get_note, delete_note, note_todos,
    list_todos, create_todo, update_todo, edit_todo,
    note_tag_names, todo_tag_names,
)
from .tags import list_tags_with_counts

app = typer.Typer(help="Notedo: notes with TODO tracking")
console = Console()

_PRIORITY_STYLE = {"high": "red", "medium": "yellow", "low": "green"}


def _split_tags(tags: Optional[str]) -> list[str]:
    return [t for t in (tags or "").split(",") if t.strip()]


def _check_priority(priority: str) -> str:
    if priority not in PRIORITIES:
        raise typer.BadParameter(f"priority must be one of {', '.join(PRIORITIES)}")
    return priority


@contextmanager
def _store():
    try:
        with session_scope() as s:
            yield s
    except NotedoError as e:
        console.print(f"[red]Error[/]: {e}")
        raise typer.Exit(1)


def _todo_table(title: str, todos, s) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan")
    table.add_column("")
    table.add_column("Priority")
    table.add_column("Text", style="bold")
    table.add_column("Note")
    table.add_column("Tags", style="magenta")
    for t in todos:
        style = _PRIORITY_STYLE.get(t.priority, "")
        table.add_row(
            t.id, "✓" if t.completed else "",
            f"[{style}]{t.priority}[/]", t.text,
            t.note_title or "", ", ".join(todo_tag_names(s, t)),
        )
    return table


@app.callback()
def _boot():
    configure_logging(load_settings().log_level)
    init_db()


@app.command()
def add(
    title: str = typer.Option(..., "--title", "-t"),
    content: str = typer.Option("", "--content", "-c"),
    tags: Optional[str] = typer.Option(None, "--tags", "-g", help="comma separated"),
):
    with _store() as s:
        n = create_note(s, title, content, _split_tags(tags))
        found = len(note_todos(s, n.id))
    console.print(f"[green]Created[/] #{n.id}: {n.title} ({found} todos)")


@app.command("list")
def _list(search: Optional[str] = typer.Option(None, "--search", help='text, or "tag:<name>"')):
    with _store() as s:
        table = Table(title="Notes")
        table.add_column("ID", justify="right", style="cyan")
        table.add_column("Title", style="bold")
        table.add_column("Tags", style="magenta")
        table.add_column("Updated")
        for n in list_notes(s, search=search):
            table.add_row(
                str(n.id), n.title, ", ".join(note_tag_names(s, n)),
                n.updated_at.isoformat(timespec="minutes"),
            )
    console.print(table)


@app.command()
def show(note_id: int):
    with _store() as s:
        n = get_note(s, note_id)
        if not n:
            console.print(f"[red]Not found[/]: {note_id}")
            raise typer.Exit(1)
        tags = note_tag_names(s, n)
        todos = note_todos(s, n.id)
        console.rule(f"#{n.id} {n.title}")
        if tags:
            console.print(f"[dim]tags:[/] {', '.join(tags)}")
        console.print(Markdown(n.content or "_<empty>_"))
        if todos:
            console.print(_todo_table("TODOs", todos, s))


@app.command()
def delete(note_id: int):
    with _store() as s:
        delete_note(s, note_id)
    console.print(f"[yellow]Deleted[/] #{note_id}")


@app.command()
def todos(search: Optional[str] = typer.Option(None, "--search")):
    with _store() as s:
        console.print(_todo_table("TODOs", list_todos(s, search=search), s))


@app.command("todo-add")
def todo_add(
    text: str,
    priority: str = typer.Option("medium", "--priority", "-p", callback=_check_priority),
    tags: Optional[str] = typer.Option(None, "--tags", "-g", help="comma separated"),
):
    with _store() as s:
        t = create_todo(s, text, priority, _split_tags(tags))
    console.print(f"[green]Created[/] {t.id}: {t.text}")


@app.command()
def done(todo_id: str, comment: Optional[str] = typer.Option(None, "--comment", "-m")):
    with _store() as s:
        t = update_todo(s, todo_id, completed=True, completion_comment=comment)
    console.print(f"[green]Done[/] {t.id}: {t.text}")


@app.command()
def undo(todo_id: str):
    with _store() as s:
        t = update_todo(s, todo_id, completed=False)
    console.print(f"[yellow]Reopened[/] {t.id}: {t.text}")


@app.command("edit-todo")
def edit_todo_cmd(
    todo_id: str,
    text: str = typer.Option(..., "--text"),
    priority: str = typer.Option("medium", "--priority", "-p", callback=_check_priority),
):
    with _store() as s:
        t = edit_todo(s, todo_id, text, priority)
    if t is None:
        console.print(f"[yellow]Updated note[/]; {todo_id} no longer yields a TODO")
    else:
        console.print(f"[green]Updated[/] {t.id}: {t.text} ({t.priority})")


@app.command()
def tags():
    with _store() as s:
        rows = list_tags_with_counts(s)
    table = Table(title="Tags")
    table.add_column("Tag", style="magenta")
    table.add_column("Notes", justify="right")
    table.add_column("TODOs", justify="right")
    for name, notes, todos_ in rows:
        table.add_row(name, str(notes), str(todos_))
    console.print(table)


@app.command()
def migrate():
    # _boot has already applied anything pending
    console.print("[green]Schema up to date[/]")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host"),
    port: Optional[int] = typer.Option(None, "--port"),
):
    settings = load_settings()
    uvicorn.run("notedo.app:app", host=host or settings.host, port=port or settings.port)


def main():
    app()


if __name__ == "__main__":
    main()
