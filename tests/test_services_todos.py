import pytest

from notedo.db import session_scope
from notedo.errors import NotApplicableError, NotFoundError, StaleTodoError
from notedo.services import (
    create_note, create_todo, delete_todo, edit_todo, get_note, get_todo,
    list_todos, note_todos, todo_tag_names, update_note, update_todo,
)


def test_standalone_todo_lifecycle(db_env):
    with session_scope() as s:
        todo = create_todo(s, "  call the bank ", "high", tags=["errands", "Errands"])
        todo_id = todo.id
        assert todo_id.startswith("standalone-")
        assert todo.note_id is None
        assert todo.text == "call the bank"

    with session_scope() as s:
        done = update_todo(s, todo_id, completed=True, completion_comment="on hold for 20 min")
        assert done.completed is True
        assert done.completed_date is not None
        assert done.completion_comment == "on hold for 20 min"

    with session_scope() as s:
        reopened = update_todo(s, todo_id, completed=False, priority="low", text="call the bank again", tags=["phone"])
        assert reopened.completed is False
        assert reopened.completed_date is None
        assert reopened.completion_comment is None
        assert (reopened.priority, reopened.text) == ("low", "call the bank again")
        assert todo_tag_names(s, reopened) == ["phone"]

    with session_scope() as s:
        delete_todo(s, todo_id)
        assert get_todo(s, todo_id) is None


def test_bad_priority_is_rejected(db_env):
    with session_scope() as s:
        with pytest.raises(ValueError):
            create_todo(s, "x", "urgent")


def test_note_linked_todo_can_be_completed_but_not_retexted(db_env):
    with session_scope() as s:
        note = create_note(s, "n", "## TODO\n- a")
        todo_id = note_todos(s, note.id)[0].id

    with session_scope() as s:
        assert update_todo(s, todo_id, completed=True).completed is True
        with pytest.raises(NotApplicableError):
            update_todo(s, todo_id, text="b")
        with pytest.raises(NotApplicableError):
            update_todo(s, todo_id, tags=["x"])
        with pytest.raises(NotApplicableError):
            delete_todo(s, todo_id)


def test_priority_change_on_linked_todo_rewrites_the_note(db_env):
    with session_scope() as s:
        note = create_note(s, "n", "## TODO\n  * Ship it\r\n- other")
        note_id = note.id
        update_todo(s, f"{note_id}-1", completed=True, completion_comment="shipped")

    with session_scope() as s:
        raised = update_todo(s, f"{note_id}-1", priority="high")
        assert (raised.id, raised.priority, raised.completed) == (f"{note_id}-1", "high", True)
        assert raised.completion_comment == "shipped"
        assert get_note(s, note_id).content == "## TODO\n  * [H] Ship it\r\n- other"

    with session_scope() as s:
        update_note(s, note_id, content=get_note(s, note_id).content + "\n- third")

    with session_scope() as s:
        todos = {t.text: t for t in note_todos(s, note_id)}
        assert todos["Ship it"].priority == "high"
        assert todos["Ship it"].completed is True
        assert todos["other"].priority == "medium"


def test_completion_survives_a_note_edit(db_env):
    with session_scope() as s:
        note = create_note(s, "n", "## TODO\n- a\n- b")
        note_id = note.id
        update_todo(s, f"{note_id}-2", completed=True, completion_comment="did it")

    with session_scope() as s:
        update_note(s, note_id, content="## TODO\n- new first\n- a\n- b")

    with session_scope() as s:
        todos = {t.text: t for t in note_todos(s, note_id)}
        assert todos["b"].completed is True
        assert todos["b"].completion_comment == "did it"
        assert todos["b"].id == f"{note_id}-3"
        assert todos["a"].completed is False


def test_edit_todo_rewrites_the_source_note(db_env):
    with session_scope() as s:
        note = create_note(s, "Work", "## TODO\n- [H] Fix bug\n- Write docs\n", tags=["job"])
        note_id = note.id

    with session_scope() as s:
        edited = edit_todo(s, f"{note_id}-1", "Fix bug ASAP", "low")
        assert (edited.id, edited.text, edited.priority) == (f"{note_id}-1", "Fix bug ASAP", "low")
        assert todo_tag_names(s, edited) == ["job"]

    with session_scope() as s:
        assert get_note(s, note_id).content == "## TODO\n- [L] Fix bug ASAP\n- Write docs\n"
        assert [t.text for t in note_todos(s, note_id)] == ["Fix bug ASAP", "Write docs"]


def test_edit_todo_keeps_completion_when_only_priority_changes(db_env):
    with session_scope() as s:
        note_id = create_note(s, "n", "## TODO\n- a").id
        update_todo(s, f"{note_id}-1", completed=True)

    with session_scope() as s:
        edited = edit_todo(s, f"{note_id}-1", "a", "high")
        assert edited.completed is True
        assert get_note(s, note_id).content == "## TODO\n- [H] a"


def test_edit_todo_errors(db_env):
    with session_scope() as s:
        standalone_id = create_todo(s, "loose").id
        note_id = create_note(s, "n", "## TODO\n- a").id

    with session_scope() as s:
        with pytest.raises(NotFoundError):
            edit_todo(s, "nope-1", "x", "medium")
        with pytest.raises(NotApplicableError):
            edit_todo(s, standalone_id, "x", "medium")

    # the stored row still exists but the note changed under it without reconciling
    with session_scope() as s:
        note = get_note(s, note_id)
        note.content = "## TODO\n\n- a"
        s.add(note)

    with session_scope() as s:
        with pytest.raises(StaleTodoError):
            edit_todo(s, f"{note_id}-1", "x", "medium")


def test_list_todos_ordering_and_search(db_env):
    with session_scope() as s:
        create_note(s, "Groceries", "## TODO\n- [L] milk\n- [H] bread")
        loose = create_todo(s, "pay rent", "medium")
        finished = create_todo(s, "renew passport", "high")
        update_todo(s, finished.id, completed=True)
        loose_id = loose.id

    with session_scope() as s:
        assert [t.text for t in list_todos(s)] == ["bread", "pay rent", "milk", "renew passport"]
        assert {t.text for t in list_todos(s, search="groc")} == {"milk", "bread"}
        assert [t.id for t in list_todos(s, search="rent")] == [loose_id]
