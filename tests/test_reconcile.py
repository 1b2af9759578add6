from datetime import UTC, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from notedo import reconcile
from notedo.models import Note, Todo
from notedo.reconcile import reconcile_note_todos
from notedo.tags import set_tags, tag_names


def _note(session, content, title="Plan"):
    note = Note(title=title, content=content)
    session.add(note)
    session.flush()
    return note


def _stored(session, note_id):
    return session.exec(select(Todo).where(Todo.note_id == note_id).order_by(Todo.id)).all()


def test_first_reconcile_stores_extracted_todos(session):
    note = _note(session, "## TODO\n- [H] Fix bug\n- Write docs\n")
    written = reconcile_note_todos(session, note.id, note.content, note.title)
    assert [(t.id, t.text, t.priority) for t in written] == [
        (f"{note.id}-1", "Fix bug", "high"),
        (f"{note.id}-2", "Write docs", "medium"),
    ]
    assert [t.text for t in _stored(session, note.id)] == ["Fix bug", "Write docs"]


def test_completion_is_carried_forward_even_when_priority_changes(session):
    note = _note(session, "## TODO\n- Ship it\n")
    reconcile_note_todos(session, note.id, note.content, note.title)
    todo = session.get(Todo, f"{note.id}-1")
    done_at = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    todo.completed, todo.completed_date, todo.completion_comment = True, done_at, "shipped"
    session.add(todo)
    session.flush()

    new_content = "# Release\n\n## TODO\n- [L] Ship it\n- New thing\n"
    written = reconcile_note_todos(session, note.id, new_content, note.title)

    ship = next(t for t in written if t.text == "Ship it")
    assert ship.id == f"{note.id}-3"
    assert ship.completed is True
    assert ship.completion_comment == "shipped"
    assert ship.completed_date is not None
    assert ship.priority == "low"  # content wins over the stored priority
    new = next(t for t in written if t.text == "New thing")
    assert new.completed is False


def test_changed_text_starts_fresh(session):
    note = _note(session, "## TODO\n- a\n")
    reconcile_note_todos(session, note.id, note.content, note.title)
    todo = session.get(Todo, f"{note.id}-1")
    todo.completed = True
    session.add(todo)
    session.flush()

    written = reconcile_note_todos(session, note.id, "## TODO\n- a, reworded\n", note.title)
    assert [t.completed for t in written] == [False]


def test_whole_set_is_replaced(session):
    note = _note(session, "## TODO\n- a\n- b\n- c\n")
    reconcile_note_todos(session, note.id, note.content, note.title)
    reconcile_note_todos(session, note.id, "## TODO\n- c\n", note.title)
    assert [(t.id, t.text) for t in _stored(session, note.id)] == [(f"{note.id}-1", "c")]

    reconcile_note_todos(session, note.id, "no todo section any more", note.title)
    assert _stored(session, note.id) == []


def test_duplicate_texts_take_state_from_the_last_stored_row(session):
    note = _note(session, "## TODO\n- same\n- same\n")
    reconcile_note_todos(session, note.id, note.content, note.title)
    last = session.get(Todo, f"{note.id}-2")
    last.completed = True
    session.add(last)
    session.flush()

    written = reconcile_note_todos(session, note.id, note.content, note.title)
    # both lines look identical, so both pick up the same stored state
    assert [t.completed for t in written] == [True, True]


def test_todos_inherit_the_note_tags(session):
    note = _note(session, "## TODO\n- a\n- b\n")
    set_tags(session, "note", note.id, ["Work", "home"])
    written = reconcile_note_todos(session, note.id, note.content, note.title)
    for todo in written:
        assert tag_names(session, "todo", todo.id) == ["Work", "home"]

    set_tags(session, "note", note.id, ["later"])
    written = reconcile_note_todos(session, note.id, note.content, note.title)
    for todo in written:
        assert tag_names(session, "todo", todo.id) == ["later"]


def test_tag_inheritance_failure_does_not_fail_reconcile(session, monkeypatch):
    def broken(*args, **kwargs):
        raise SQLAlchemyError("tag store unavailable")

    monkeypatch.setattr(reconcile, "inherit_from_note", broken)
    note = _note(session, "## TODO\n- a\n")
    written = reconcile_note_todos(session, note.id, note.content, note.title)
    assert [t.text for t in written] == ["a"]
    assert [t.text for t in _stored(session, note.id)] == ["a"]
