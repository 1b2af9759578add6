from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from .config import load_settings

_ENGINE: Optional[Engine] = None
_ENGINE_URL: Optional[str] = None  # track current engine's URL so we can switch when env changes


def _compute_url() -> str:
    db_path = load_settings().db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{db_path}"


def make_engine(url: str) -> Engine:
    """Create a SQLite engine with foreign keys on and IMMEDIATE transactions.

    pysqlite's own transaction handling is turned off so that SAVEPOINTs work
    and every transaction takes the write lock up front, which serializes
    concurrent note writes. ``sqlite://`` gives a shared in-memory database.
    """
    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, echo=False, **kwargs)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def get_engine() -> Engine:
    global _ENGINE, _ENGINE_URL
    url = _compute_url()
    if _ENGINE is None or _ENGINE_URL != url:
        # swap engine if URL changed (common in tests)
        if _ENGINE is not None:
            _ENGINE.dispose()
        _ENGINE = make_engine(url)
        _ENGINE_URL = url
    return _ENGINE


def reset_engine() -> None:
    """For tests: drop the cached engine so a new NOTEDO_DB_PATH is picked up."""
    global _ENGINE, _ENGINE_URL
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
    _ENGINE_URL = None


def init_db(engine: Optional[Engine] = None) -> list[int]:
    """Bring the schema up to date; returns the migration versions applied."""
    from .migrations import run_migrations

    return run_migrations(engine or get_engine())


def get_session(engine: Optional[Engine] = None) -> Session:
    # keep objects alive after commit so returned models retain values
    return Session(engine or get_engine(), expire_on_commit=False)


@contextmanager
def session_scope(engine: Optional[Engine] = None) -> Iterator[Session]:
    session = get_session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
