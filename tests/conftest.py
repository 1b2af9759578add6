import pytest

from notedo.db import init_db, make_engine, reset_engine, session_scope


@pytest.fixture
def db_env(tmp_path, monkeypatch):
    monkeypatch.setenv("NOTEDO_DB_PATH", str(tmp_path / "notedo.sqlite"))
    monkeypatch.setenv("NOTEDO_SEED_WELCOME", "false")
    reset_engine()  # pick up new path
    init_db()
    yield tmp_path
    reset_engine()


@pytest.fixture
def engine():
    """An in-memory store handle, passed explicitly to the code under test."""
    eng = make_engine("sqlite://")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with session_scope(engine) as s:
        yield s
