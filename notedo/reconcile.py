"""Keep a note's stored TODO rows in line with its Markdown content.

Stored rows are matched to freshly extracted ones by exact text, because the
line-derived ids move whenever lines are added or removed above a TODO. Two
identical TODO lines in one note cannot be told apart: the last stored row
with that text is the one whose completion state is carried forward.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from .extraction import extract_todos
from .models import Todo
from .tags import inherit_from_note, set_tags

logger = logging.getLogger(__name__)


def reconcile_note_todos(
    session: Session, note_id: int, content: str, note_title: Optional[str]
) -> list[Todo]:
    """Replace the note's TODO rows with those extracted from ``content``.

    Completion state (flag, date, comment) survives for text-identical items;
    priority always comes from the content. Runs inside the caller's
    transaction, so a store error here undoes the whole note write. Tag
    inheritance is best-effort and never fails the call.
    """
    stored = session.exec(select(Todo).where(Todo.note_id == note_id)).all()
    by_text = {todo.text: todo for todo in stored}

    candidates = extract_todos(note_id, content, note_title)
    carried = 0
    for todo in candidates:
        previous = by_text.get(todo.text)
        if previous is None:
            continue
        todo.completed = previous.completed
        todo.completed_date = previous.completed_date
        todo.completion_comment = previous.completion_comment
        carried += 1

    for todo in stored:
        set_tags(session, "todo", todo.id, None)
        session.delete(todo)
    session.flush()
    session.add_all(candidates)
    session.flush()
    logger.debug(
        "note #%s: %d stored todos replaced by %d extracted (%d carried forward)",
        note_id, len(stored), len(candidates), carried,
    )

    for todo in candidates:
        try:
            with session.begin_nested():
                inherit_from_note(session, todo.id, todo.note_id)
        except SQLAlchemyError:
            logger.warning("tag inheritance failed for todo %s", todo.id, exc_info=True)
    return candidates
