"""Tag vocabulary and the note/todo tag associations.

Tag names are compared as exact strings; nothing here folds case.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from .models import NoteTag, Tag, TodoTag

logger = logging.getLogger(__name__)

_LINKS = {
    "note": (NoteTag, NoteTag.note_id),
    "todo": (TodoTag, TodoTag.todo_id),
}


def _link_for(owner_kind: str):
    try:
        return _LINKS[owner_kind]
    except KeyError:
        raise ValueError(f"Unknown tag owner kind {owner_kind!r}") from None


def clean_tag_names(names: Optional[Iterable[str]]) -> list[str]:
    """Strip names, drop blanks and duplicates; first occurrence keeps its place."""
    if not names:
        return []
    seen: dict[str, None] = {}
    for name in names:
        if name and name.strip():
            seen.setdefault(name.strip(), None)
    return list(seen)


def ensure_tag(session: Session, name: str) -> int:
    """Return the id of tag ``name``, creating it if needed."""
    tag = session.exec(select(Tag).where(Tag.name == name)).first()
    if tag is None:
        tag = Tag(name=name)
        session.add(tag)
        session.flush()
        logger.debug("created tag %r (#%s)", name, tag.id)
    return tag.id


def set_tags(session: Session, owner_kind: str, owner_id, names: Optional[Iterable[str]]) -> list[str]:
    """Replace every tag association of one note or todo with ``names``."""
    link_model, owner_col = _link_for(owner_kind)
    for link in session.exec(select(link_model).where(owner_col == owner_id)).all():
        session.delete(link)
    session.flush()

    cleaned = clean_tag_names(names)
    if not cleaned:
        return []
    for name in cleaned:
        tag_id = ensure_tag(session, name)
        if owner_kind == "note":
            session.add(NoteTag(note_id=owner_id, tag_id=tag_id))
        else:
            session.add(TodoTag(todo_id=owner_id, tag_id=tag_id))
    session.flush()
    return cleaned


def tag_names(session: Session, owner_kind: str, owner_id) -> list[str]:
    link_model, owner_col = _link_for(owner_kind)
    stmt = (
        select(Tag.name)
        .join(link_model, link_model.tag_id == Tag.id)
        .where(owner_col == owner_id)
        .order_by(Tag.name)
    )
    return list(session.exec(stmt).all())


def inherit_from_note(session: Session, todo_id: str, note_id: Optional[int]) -> list[str]:
    """Give a note-linked todo exactly its note's tags. No-op for standalone todos."""
    if note_id is None:
        return []
    return set_tags(session, "todo", todo_id, tag_names(session, "note", note_id))


def list_tags_with_counts(session: Session) -> list[tuple[str, int, int]]:
    """Every tag as ``(name, note_count, todo_count)``, ordered by name."""
    note_counts = (
        select(NoteTag.tag_id, func.count().label("n"))
        .group_by(NoteTag.tag_id)
        .subquery()
    )
    todo_counts = (
        select(TodoTag.tag_id, func.count().label("n"))
        .group_by(TodoTag.tag_id)
        .subquery()
    )
    stmt = (
        select(
            Tag.name,
            func.coalesce(note_counts.c.n, 0),
            func.coalesce(todo_counts.c.n, 0),
        )
        .outerjoin(note_counts, note_counts.c.tag_id == Tag.id)
        .outerjoin(todo_counts, todo_counts.c.tag_id == Tag.id)
        .order_by(Tag.name)
    )
    return [(name, int(notes), int(todos)) for name, notes, todos in session.exec(stmt).all()]
