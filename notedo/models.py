from __future__ import annotations
from datetime import datetime, UTC
from typing import Literal, Optional
from sqlmodel import Field, SQLModel

Priority = Literal["low", "medium", "high"]
PRIORITIES: tuple[str, ...] = ("low", "medium", "high")
DEFAULT_PRIORITY = "medium"


def _now() -> datetime:
    return datetime.now(UTC)


class Note(SQLModel, table=True):
    __tablename__ = "notes"
    # ids are never reused, so a stale "{note_id}-{line}" can never point at a newer note
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    content: str = ""
    # creation timestamp; notes are listed newest first by it
    date: datetime = Field(default_factory=_now, index=True)
    updated_at: datetime = Field(default_factory=_now)

    def touch(self) -> None:
        self.updated_at = _now()


class Todo(SQLModel, table=True):
    __tablename__ = "todos"

    # "{note_id}-{line_index}" for note-linked rows, "standalone-<hex>" otherwise
    id: str = Field(primary_key=True)
    note_id: Optional[int] = Field(
        default=None, foreign_key="notes.id", ondelete="CASCADE", index=True
    )
    note_title: Optional[str] = None
    text: str
    completed: bool = Field(default=False, index=True)
    priority: str = Field(default=DEFAULT_PRIORITY)
    created_date: datetime = Field(default_factory=_now)
    completed_date: Optional[datetime] = None
    completion_comment: Optional[str] = None

    @property
    def standalone(self) -> bool:
        return self.note_id is None


class Tag(SQLModel, table=True):
    __tablename__ = "tags"

    id: Optional[int] = Field(default=None, primary_key=True)
    # exact, case-sensitive: "Work" and "work" are different tags
    name: str = Field(unique=True, index=True)
    created_date: datetime = Field(default_factory=_now)


class NoteTag(SQLModel, table=True):
    __tablename__ = "note_tags"

    note_id: int = Field(foreign_key="notes.id", primary_key=True, ondelete="CASCADE")
    tag_id: int = Field(foreign_key="tags.id", primary_key=True, ondelete="CASCADE")


class TodoTag(SQLModel, table=True):
    __tablename__ = "todo_tags"

    todo_id: str = Field(foreign_key="todos.id", primary_key=True, ondelete="CASCADE")
    tag_id: int = Field(foreign_key="tags.id", primary_key=True, ondelete="CASCADE")


class SchemaMigration(SQLModel, table=True):
    __tablename__ = "schema_migrations"

    version: int = Field(primary_key=True)
    name: str
    executed_at: datetime = Field(default_factory=_now)
