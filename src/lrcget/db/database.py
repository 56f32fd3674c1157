from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator

BUSY_TIMEOUT_S = 30.0


def connect(sqlite_path: str) -> sqlite3.Connection:
    """
    Open a connection for the current thread.

    Connections are in autocommit mode; every write goes through
    `transaction()`. Worker threads must open their own connection.
    """
    db = sqlite3.connect(sqlite_path, timeout=BUSY_TIMEOUT_S, isolation_level=None)
    db.row_factory = sqlite3.Row
    db.execute("PRAGMA foreign_keys=ON")
    if sqlite_path != ":memory:":
        db.execute("PRAGMA journal_mode=WAL")
    return db


@contextmanager
def transaction(db: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    BEGIN IMMEDIATE ... COMMIT, rolled back on any exception.

    IMMEDIATE takes the write lock up front, so two writers doing a
    find-then-insert on the same artist/album key are serialized.
    """
    db.execute("BEGIN IMMEDIATE")
    try:
        yield db
    except BaseException:
        db.execute("ROLLBACK")
        raise
    db.execute("COMMIT")
