"""Versioned schema scripts, applied once each and recorded in ``schema_migrations``.

Pending scripts run in ascending version order, each in its own transaction
together with its ledger row. The first failure raises MigrationError and
nothing after it runs.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Callable, Optional

from sqlalchemy import func, inspect, text
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, select

from .db import session_scope
from .errors import MigrationError
from .models import DEFAULT_PRIORITY, SchemaMigration, Todo
from .tags import inherit_from_note, set_tags

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    up: Callable[[Session], None]


def _has_table(session: Session, table: str) -> bool:
    return inspect(session.connection()).has_table(table)


def _column_names(session: Session, table: str) -> set[str]:
    return {col["name"] for col in inspect(session.connection()).get_columns(table)}


def _parse_legacy_date(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        logger.warning("unparseable legacy timestamp %r, using now", value)
        return datetime.now(UTC)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _initial_schema(session: Session) -> None:
    SQLModel.metadata.create_all(session.connection())


def _backfill_note_tags(session: Session) -> None:
    """Move legacy JSON ``notes.tags`` arrays into note_tags, then onto the notes' TODOs."""
    if "tags" not in _column_names(session, "notes"):
        return
    rows = session.connection().execute(
        text("SELECT id, tags FROM notes WHERE tags IS NOT NULL AND tags != ''")
    ).all()
    for note_id, raw in rows:
        try:
            names = json.loads(raw)
        except ValueError:
            logger.warning("note #%s has malformed legacy tags %r, skipped", note_id, raw)
            continue
        if not isinstance(names, list):
            logger.warning("note #%s legacy tags are not a list, skipped", note_id)
            continue
        set_tags(session, "note", note_id, [str(n) for n in names])

    linked = session.exec(select(Todo).where(Todo.note_id.is_not(None))).all()
    for todo in linked:
        inherit_from_note(session, todo.id, todo.note_id)
    logger.info("backfilled tags for %d notes and %d todos", len(rows), len(linked))


def _merge_standalone_todos(session: Session) -> None:
    """Fold the legacy ``standalone_todos`` table into ``todos`` with no note."""
    if not _has_table(session, "standalone_todos"):
        return
    rows = session.connection().execute(
        text(
            "SELECT id, text, priority, completed, created_date, completed_date, "
            "completion_comment FROM standalone_todos"
        )
    ).mappings().all()
    for row in rows:
        session.add(
            Todo(
                id=row["id"],
                note_id=None,
                text=row["text"],
                priority=row["priority"] or DEFAULT_PRIORITY,
                completed=bool(row["completed"]),
                created_date=_parse_legacy_date(row["created_date"]) or datetime.now(UTC),
                completed_date=_parse_legacy_date(row["completed_date"]),
                completion_comment=row["completion_comment"],
            )
        )
    session.flush()
    session.connection().execute(text("DROP TABLE standalone_todos"))
    logger.info("merged %d standalone todos", len(rows))


MIGRATIONS: list[Migration] = [
    Migration(1, "initial_schema", _initial_schema),
    Migration(2, "backfill_note_tags", _backfill_note_tags),
    Migration(3, "merge_standalone_todos", _merge_standalone_todos),
]


def current_version(engine: Engine) -> int:
    SchemaMigration.__table__.create(engine, checkfirst=True)
    with session_scope(engine) as s:
        return s.exec(select(func.max(SchemaMigration.version))).one() or 0


def run_migrations(engine: Engine, migrations: Optional[list[Migration]] = None) -> list[int]:
    """Apply pending migrations in order; returns the versions applied."""
    migrations = sorted(migrations if migrations is not None else MIGRATIONS, key=lambda m: m.version)
    current = current_version(engine)
    pending = [m for m in migrations if m.version > current]
    if not pending:
        logger.debug("database is up to date (version %d)", current)
        return []

    logger.info("database at version %d, %d migration(s) pending", current, len(pending))
    applied: list[int] = []
    for migration in pending:
        try:
            with session_scope(engine) as s:
                migration.up(s)
                s.add(SchemaMigration(version=migration.version, name=migration.name))
        except Exception as e:
            logger.error("migration %d (%s) failed: %s", migration.version, migration.name, e)
            raise MigrationError(f"Migration {migration.version} ({migration.name}) failed") from e
        logger.info("applied migration %d: %s", migration.version, migration.name)
        applied.append(migration.version)
    return applied
