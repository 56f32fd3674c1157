from __future__ import annotations

import logging
import os
import sqlite3

from lrcget.db.database import connect
from lrcget.db.schema import SCHEMA_V1_SQL

logger = logging.getLogger(__name__)

# (version, script) pairs, applied in order to databases older than `version`.
MIGRATIONS: list[tuple[int, str]] = [
    (1, SCHEMA_V1_SQL),
]

CURRENT_DB_VERSION = MIGRATIONS[-1][0]


def initialize_database(app_data_dir: str) -> sqlite3.Connection:
    os.makedirs(app_data_dir, exist_ok=True)
    sqlite_path = os.path.join(app_data_dir, "db.sqlite3")
    logger.info("Database file path: %s", sqlite_path)

    db = connect(sqlite_path)
    upgrade_database_if_needed(db)
    return db


def upgrade_database_if_needed(db: sqlite3.Connection) -> None:
    existing_version = int(db.execute("PRAGMA user_version").fetchone()[0])
    logger.debug("Existing database version: %s", existing_version)

    if existing_version >= CURRENT_DB_VERSION:
        return

    for version, script in MIGRATIONS:
        if existing_version >= version:
            continue
        logger.info("Migrate database version %s...", version)
        # executescript() commits on its own; the version bump rides in the same script.
        db.executescript(f"BEGIN;\n{script}\nPRAGMA user_version={version};\nCOMMIT;")


def debug_print_schema(db: sqlite3.Connection) -> None:
    for table in ("tracks", "albums", "artists"):
        cur = db.execute(f"PRAGMA table_info({table})")
        logger.info("[%s table schema]", table)
        for _cid, name, col_type, _notnull, _default, _pk in cur.fetchall():
            logger.info("- %s (%s)", name, col_type)
