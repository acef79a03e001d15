# ABOUTME: SQLite connection management for the site preferences database.
# ABOUTME: Opens or creates the database, applies schema and pending migrations.

import sqlite3
from pathlib import Path

from bookhunt.prefs.schema import MIGRATIONS, SCHEMA_V1

DEFAULT_PREFS_PATH = Path.home() / ".bookhunt" / "sites.db"


def _schema_exists(conn: sqlite3.Connection) -> bool:
    """True once the preferences tables have been created."""
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
    )
    return cursor.fetchone() is not None


def _get_schema_version(conn: sqlite3.Connection) -> int:
    """Highest preferences schema version recorded, or 0 for an empty table."""
    cursor = conn.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
    row = cursor.fetchone()
    return row[0] if row else 0


def _apply_migrations(conn: sqlite3.Connection) -> None:
    """Run every preferences migration newer than the recorded version, oldest first."""
    current = _get_schema_version(conn)
    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)


def open_preferences(path: Path | None = None) -> sqlite3.Connection:
    """Open or create the site preferences database.

    Creates the file and parent directories on first use, in WAL mode
    with sqlite3.Row rows.

    Args:
        path: Database file. Defaults to ~/.bookhunt/sites.db.
    """
    db_path = path or DEFAULT_PREFS_PATH
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")

    if not _schema_exists(conn):
        conn.executescript(SCHEMA_V1)

    _apply_migrations(conn)

    return conn
