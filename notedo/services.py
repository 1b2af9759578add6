from __future__ import annotations
from datetime import UTC, datetime
from typing import Iterable, Optional
import logging
import uuid

from sqlalchemy import case, func
from sqlmodel import Session, select

from .errors import NotApplicableError, NotFoundError, StaleTodoError
from .extraction import locate_todo_line, rewrite_todo_line
from .models import DEFAULT_PRIORITY, PRIORITIES, Note, NoteTag, Tag, Todo
from .reconcile import reconcile_note_todos
from .tags import set_tags, tag_names

logger = logging.getLogger(__name__)

TAG_SEARCH_PREFIX = "tag:"

WELCOME_NOTE = {
    "title": "Welcome to Notedo",
    "content": (
        "This is your personal notes application with **Markdown support**!\n\n"
        "## Features\n"
        "- Create, edit, and delete notes\n"
        "- Full Markdown formatting\n"
        "- TODO tracking with priorities\n"
        "- Tags on notes and TODOs\n\n"
        "## TODO\n"
        "- Try creating a new note\n"
        "- [H] Add some TODOs to track\n"
        "- [L] Explore the TODO list"
    ),
    "tags": ["tutorial", "welcome"],
}


def _check_priority(priority: str) -> str:
    if priority not in PRIORITIES:
        raise ValueError(f"Unknown priority {priority!r}; expected one of {', '.join(PRIORITIES)}")
    return priority


# ---------- notes ----------

def create_note(
    session: Session, title: str, content: str = "", tags: Optional[Iterable[str]] = None
) -> Note:
    note = Note(title=title, content=content)
    session.add(note)
    session.flush()  # get the ID assigned
    set_tags(session, "note", note.id, tags)
    reconcile_note_todos(session, note.id, note.content, note.title)
    logger.info("created note #%s %r", note.id, note.title)
    return note


def get_note(session: Session, note_id: int) -> Optional[Note]:
    return session.get(Note, note_id)


def require_note(session: Session, note_id: int) -> Note:
    note = get_note(session, note_id)
    if note is None:
        raise NotFoundError(f"Note {note_id} not found")
    return note


def update_note(
    session: Session,
    note_id: int,
    *,
    title: Optional[str] = None,
    content: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
) -> Note:
    """
    Update fields, bump updated_at and re-extract the note's TODOs.
    Tags are replaced (not merged) when given.
    """
    note = require_note(session, note_id)
    if title is not None:
        note.title = title
    if content is not None:
        note.content = content
    note.touch()
    session.add(note)
    session.flush()
    if tags is not None:
        set_tags(session, "note", note.id, tags)
    reconcile_note_todos(session, note.id, note.content, note.title)
    return note


def delete_note(session: Session, note_id: int) -> None:
    """Remove the note together with its TODOs and all their tag links."""
    note = require_note(session, note_id)
    for todo in session.exec(select(Todo).where(Todo.note_id == note_id)).all():
        set_tags(session, "todo", todo.id, None)
        session.delete(todo)
    set_tags(session, "note", note_id, None)
    session.delete(note)
    session.flush()
    logger.info("deleted note #%s", note_id)


def list_notes(session: Session, search: Optional[str] = None) -> list[Note]:
    """
    Return notes newest first.
    - search starting with "tag:": case-insensitive substring of a tag name
    - any other search: substring in title or content
    """
    stmt = select(Note)
    if search:
        if search.startswith(TAG_SEARCH_PREFIX):
            term = search[len(TAG_SEARCH_PREFIX):].strip().lower()
            stmt = (
                stmt.join(NoteTag, NoteTag.note_id == Note.id)
                .join(Tag, Tag.id == NoteTag.tag_id)
                .where(func.lower(Tag.name).like(f"%{term}%"))
                .distinct()
            )
        else:
            like = f"%{search}%"
            stmt = stmt.where((Note.title.like(like)) | (Note.content.like(like)))
    stmt = stmt.order_by(Note.date.desc(), Note.id.desc())
    return list(session.exec(stmt))


def note_todos(session: Session, note_id: int) -> list[Todo]:
    require_note(session, note_id)
    todos = session.exec(select(Todo).where(Todo.note_id == note_id)).all()
    # ids end in the source line index
    return sorted(todos, key=lambda t: int(t.id.rsplit("-", 1)[1]))


def seed_welcome_note(session: Session) -> Optional[Note]:
    """Create the welcome note when the store holds no notes at all."""
    if session.exec(select(func.count()).select_from(Note)).one():
        return None
    return create_note(session, WELCOME_NOTE["title"], WELCOME_NOTE["content"], WELCOME_NOTE["tags"])


# ---------- todos ----------

def list_todos(session: Session, search: Optional[str] = None) -> list[Todo]:
    """Incomplete first, then high -> low priority, then newest."""
    stmt = select(Todo)
    if search:
        like = f"%{search}%"
        stmt = stmt.where((Todo.text.like(like)) | (Todo.note_title.like(like)))
    rank = case((Todo.priority == "high", 0), (Todo.priority == "medium", 1), else_=2)
    stmt = stmt.order_by(Todo.completed.asc(), rank, Todo.created_date.desc())
    return list(session.exec(stmt))


def get_todo(session: Session, todo_id: str) -> Optional[Todo]:
    return session.get(Todo, todo_id)


def require_todo(session: Session, todo_id: str) -> Todo:
    todo = get_todo(session, todo_id)
    if todo is None:
        raise NotFoundError(f"Todo {todo_id} not found")
    return todo


def create_todo(
    session: Session,
    text: str,
    priority: str = DEFAULT_PRIORITY,
    tags: Optional[Iterable[str]] = None,
) -> Todo:
    """Create a standalone TODO (not linked to any note)."""
    todo = Todo(
        id=f"standalone-{uuid.uuid4().hex[:12]}",
        text=text.strip(),
        priority=_check_priority(priority),
    )
    session.add(todo)
    session.flush()
    set_tags(session, "todo", todo.id, tags)
    return todo


def update_todo(
    session: Session,
    todo_id: str,
    *,
    completed: Optional[bool] = None,
    completion_comment: Optional[str] = None,
    priority: Optional[str] = None,
    text: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
) -> Todo:
    """
    Change completion state or priority of any TODO. A priority change on a
    note-linked TODO rewrites its source line, so the note stays the source
    of truth. Text and tags can only be changed here for standalone TODOs
    (use edit_todo to rewrite a note-linked TODO's text).
    """
    if priority is not None:
        _check_priority(priority)
    todo = require_todo(session, todo_id)
    if not todo.standalone and (text is not None or tags is not None):
        raise NotApplicableError(
            f"Todo {todo_id} comes from note {todo.note_id}; edit it through the note"
        )

    if completed is not None:
        todo.completed = completed
        if completed:
            todo.completed_date = datetime.now(UTC)
            todo.completion_comment = completion_comment or None
        else:
            todo.completed_date = None
            todo.completion_comment = None
    elif completion_comment is not None and todo.completed:
        todo.completion_comment = completion_comment or None
    if text is not None:
        todo.text = text.strip()
    session.add(todo)
    session.flush()

    if priority is not None and priority != todo.priority:
        if not todo.standalone:
            return edit_todo(session, todo_id, todo.text, priority)
        todo.priority = priority
        session.add(todo)
        session.flush()
    if tags is not None:
        set_tags(session, "todo", todo.id, tags)
    return todo


def edit_todo(session: Session, todo_id: str, text: str, priority: str = DEFAULT_PRIORITY) -> Optional[Todo]:
    """
    Rewrite a note-linked TODO's line in its source note, then re-extract.

    Returns the TODO as re-extracted from the new line (None if the new text
    is empty and the line no longer yields a TODO). Completion state only
    survives when the text is unchanged.
    """
    _check_priority(priority)
    todo = require_todo(session, todo_id)
    if todo.standalone:
        raise NotApplicableError(f"Todo {todo_id} is standalone; it has no source note")
    note = get_note(session, todo.note_id)
    if note is None:
        raise NotFoundError(f"Source note {todo.note_id} not found")
    if locate_todo_line(note.content, todo_id) is None:
        raise StaleTodoError(f"Todo {todo_id} no longer matches a line of note {note.id}")

    note.content = rewrite_todo_line(note.content, todo_id, text.strip(), priority)
    note.touch()
    session.add(note)
    session.flush()
    reconcile_note_todos(session, note.id, note.content, note.title)
    return get_todo(session, todo_id)


def delete_todo(session: Session, todo_id: str) -> None:
    todo = require_todo(session, todo_id)
    if not todo.standalone:
        raise NotApplicableError(
            f"Todo {todo_id} comes from note {todo.note_id}; remove its line from the note"
        )
    set_tags(session, "todo", todo.id, None)
    session.delete(todo)
    session.flush()


# ---------- tags ----------

def note_tag_names(session: Session, note: Note) -> list[str]:
    return tag_names(session, "note", note.id)


def todo_tag_names(session: Session, todo: Todo) -> list[str]:
    return tag_names(session, "todo", todo.id)
