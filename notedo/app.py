# notedo/app.py
from __future__ import annotations
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional
import logging
import time

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from notedo.config import configure_logging, load_settings
from notedo.db import init_db, reset_engine, session_scope
from notedo.errors import NotApplicableError, NotFoundError, StaleTodoError
from notedo.models import Note, Priority, Todo
from notedo.services import (
    create_note,
    create_todo,
    delete_note,
    delete_todo,
    edit_todo,
    list_notes,
    list_todos,
    note_tag_names,
    note_todos,
    require_note,
    seed_welcome_note,
    todo_tag_names,
    update_note,
    update_todo,
)
from notedo.tags import list_tags_with_counts

logger = logging.getLogger("notedo.api")


# ---------- Schemas ----------
class NoteIn(BaseModel):
    title: str = Field(min_length=1)
    content: str = ""
    tags: list[str] = Field(default_factory=list)


class NoteOut(BaseModel):
    id: int
    title: str
    content: str
    tags: list[str]
    date: datetime
    updated_at: datetime


class TodoCreate(BaseModel):
    text: str = Field(min_length=1)
    priority: Priority = "medium"
    tags: list[str] = Field(default_factory=list)


class TodoUpdate(BaseModel):
    completed: Optional[bool] = None
    completion_comment: Optional[str] = None
    priority: Optional[Priority] = None
    text: Optional[str] = Field(default=None, min_length=1)
    tags: Optional[list[str]] = None


class TodoEdit(BaseModel):
    text: str = Field(min_length=1)
    priority: Priority = "medium"


class TodoOut(BaseModel):
    id: str
    note_id: Optional[int]
    note_title: Optional[str]
    text: str
    completed: bool
    priority: str
    created_date: datetime
    completed_date: Optional[datetime]
    completion_comment: Optional[str]
    tags: list[str]


class TodoEditOut(BaseModel):
    success: bool = True
    message: str
    todo: Optional[TodoOut] = None


class TagOut(BaseModel):
    name: str
    notes: int
    todos: int


def _note_out(s: Session, n: Note) -> NoteOut:
    return NoteOut(
        id=n.id, title=n.title, content=n.content,
        tags=note_tag_names(s, n), date=n.date, updated_at=n.updated_at,
    )


def _todo_out(s: Session, t: Todo) -> TodoOut:
    return TodoOut(
        id=t.id, note_id=t.note_id, note_title=t.note_title, text=t.text,
        completed=t.completed, priority=t.priority, created_date=t.created_date,
        completed_date=t.completed_date, completion_comment=t.completion_comment,
        tags=todo_tag_names(s, t),
    )


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = load_settings()
    configure_logging(settings.log_level)
    applied = init_db()
    if applied:
        logger.info("schema migrated: %s", applied)
    if settings.seed_welcome:
        with session_scope() as s:
            seed_welcome_note(s)
    yield
    logger.info("shutting down, closing store")
    reset_engine()


def create_app() -> FastAPI:
    app = FastAPI(title="Notedo API", lifespan=lifespan)

    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        logger.debug(
            "%s %s -> %s (%.1f ms)",
            request.method, request.url.path, response.status_code,
            (time.perf_counter() - start) * 1000.0,
        )
        return response

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError):
        return _error(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(StaleTodoError)
    async def _stale(request: Request, exc: StaleTodoError):
        return _error(status.HTTP_409_CONFLICT, str(exc))

    @app.exception_handler(NotApplicableError)
    async def _not_applicable(request: Request, exc: NotApplicableError):
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(SQLAlchemyError)
    async def _store_error(request: Request, exc: SQLAlchemyError):
        logger.exception("store error on %s %s", request.method, request.url.path, exc_info=exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "store_error")

    # ---------- API ----------
    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/api/notes", response_model=list[NoteOut])
    def api_list_notes(search: Optional[str] = None):
        with session_scope() as s:
            return [_note_out(s, n) for n in list_notes(s, search=search)]

    @app.post("/api/notes", response_model=NoteOut, status_code=201)
    def api_create_note(payload: NoteIn):
        with session_scope() as s:
            n = create_note(s, payload.title, payload.content, payload.tags)
            return _note_out(s, n)

    @app.get("/api/notes/{note_id}", response_model=NoteOut)
    def api_get_note(note_id: int):
        with session_scope() as s:
            return _note_out(s, require_note(s, note_id))

    @app.put("/api/notes/{note_id}", response_model=NoteOut)
    def api_update_note(note_id: int, payload: NoteIn):
        with session_scope() as s:
            n = update_note(s, note_id, title=payload.title, content=payload.content, tags=payload.tags)
            return _note_out(s, n)

    @app.delete("/api/notes/{note_id}")
    def api_delete_note(note_id: int):
        with session_scope() as s:
            delete_note(s, note_id)
        return {"message": "Note deleted successfully"}

    @app.get("/api/notes/{note_id}/todos", response_model=list[TodoOut])
    def api_note_todos(note_id: int):
        with session_scope() as s:
            return [_todo_out(s, t) for t in note_todos(s, note_id)]

    @app.get("/api/todos", response_model=list[TodoOut])
    def api_list_todos(search: Optional[str] = None):
        with session_scope() as s:
            return [_todo_out(s, t) for t in list_todos(s, search=search)]

    @app.post("/api/todos", response_model=TodoOut, status_code=201)
    def api_create_todo(payload: TodoCreate):
        with session_scope() as s:
            t = create_todo(s, payload.text, payload.priority, payload.tags)
            return _todo_out(s, t)

    @app.put("/api/todos/{todo_id}", response_model=TodoOut)
    def api_update_todo(todo_id: str, payload: TodoUpdate):
        with session_scope() as s:
            t = update_todo(
                s,
                todo_id,
                completed=payload.completed,
                completion_comment=payload.completion_comment,
                priority=payload.priority,
                text=payload.text,
                tags=payload.tags,
            )
            return _todo_out(s, t)

    @app.put("/api/todos/{todo_id}/edit", response_model=TodoEditOut)
    def api_edit_todo(todo_id: str, payload: TodoEdit):
        with session_scope() as s:
            t = edit_todo(s, todo_id, payload.text, payload.priority)
            return TodoEditOut(
                message="Todo and source note updated successfully",
                todo=_todo_out(s, t) if t is not None else None,
            )

    @app.delete("/api/todos/{todo_id}")
    def api_delete_todo(todo_id: str):
        with session_scope() as s:
            delete_todo(s, todo_id)
        return {"message": "Todo deleted successfully"}

    @app.get("/api/tags", response_model=list[TagOut])
    def api_tags():
        with session_scope() as s:
            return [TagOut(name=name, notes=n, todos=t) for name, n, t in list_tags_with_counts(s)]

    return app


app = create_app()
