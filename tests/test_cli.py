from typer.testing import CliRunner

from notedo.cli import app
from notedo.db import session_scope
from notedo.services import list_todos

runner = CliRunner()


def test_add_note_and_work_its_todos(db_env):
    r = runner.invoke(app, ["add", "-t", "Plan", "-c", "## TODO\n- [H] ship\n- test", "-g", "work"])
    assert r.exit_code == 0, r.output
    assert "Created" in r.output
    assert "2 todos" in r.output

    with session_scope() as s:
        ids = {t.text: t.id for t in list_todos(s)}

    r = runner.invoke(app, ["done", ids["test"], "-m", "green"])
    assert r.exit_code == 0, r.output

    r = runner.invoke(app, ["edit-todo", ids["ship"], "--text", "ship it", "-p", "low"])
    assert r.exit_code == 0, r.output
    assert "ship it" in r.output

    with session_scope() as s:
        todos = {t.text: t for t in list_todos(s)}
    assert todos["test"].completed is True
    assert todos["ship it"].priority == "low"

    r = runner.invoke(app, ["tags"])
    assert r.exit_code == 0
    assert "work" in r.output


def test_standalone_todo_and_errors(db_env):
    r = runner.invoke(app, ["todo-add", "water plants", "-p", "high"])
    assert r.exit_code == 0, r.output

    r = runner.invoke(app, ["todo-add", "x", "-p", "urgent"])
    assert r.exit_code != 0

    r = runner.invoke(app, ["done", "missing-1"])
    assert r.exit_code == 1
    assert "Error" in r.output

    r = runner.invoke(app, ["show", "42"])
    assert r.exit_code == 1
    assert "Not found" in r.output
