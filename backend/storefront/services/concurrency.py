# Overview: Service-layer helpers for serializing stock-changing work.

from __future__ import annotations

from sqlalchemy import text

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    begin_write() covers SQLite.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Start the current unit of work holding the database write lock.

    SQLite has no row locks: BEGIN IMMEDIATE takes the RESERVED lock up front,
    so a second writer waits (busy timeout) until the first commits and then
    reads the committed stock. Other dialects rely on lock_for_update().
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))
