"""
Database schema definitions and migrations.

Schema versions:
  1 - files table without status tracking
  2 - files.status and files.old_path
  3 - deleted_files history table
"""
import sqlite3
import logging
from typing import Optional

CURRENT_SCHEMA_VERSION = 3


def get_schema_version(conn: sqlite3.Connection) -> Optional[int]:
    """Returns the recorded schema version, or None for unversioned databases."""
    try:
        row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    except sqlite3.OperationalError:
        # Table doesn't exist
        return None
    return int(row[0]) if row and row[0] is not None else None


def _table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
    ).fetchone()
    return row is not None


def _columns(conn: sqlite3.Connection, table: str) -> set:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}


def _set_version(conn: sqlite3.Connection, version: int):
    conn.execute("DELETE FROM schema_version")
    conn.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))


def _create_files_indexes(conn: sqlite3.Connection):
    conn.execute("CREATE INDEX IF NOT EXISTS idx_files_mtime ON files(mtime);")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_files_size ON files(size);")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_files_hash ON files(hash);")


def _create_deleted_files(conn: sqlite3.Connection):
    # Append-only history of files that disappeared from the index
    conn.execute("""
    CREATE TABLE IF NOT EXISTS deleted_files (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        path            TEXT NOT NULL,
        name            TEXT NOT NULL,
        size            INTEGER NOT NULL,
        mtime           INTEGER NOT NULL,
        ctime           INTEGER NOT NULL,
        extension       TEXT NOT NULL,
        media_type      TEXT NOT NULL,
        hash            TEXT,
        deleted_at      INTEGER NOT NULL
    );
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_deleted_files_hash ON deleted_files(hash);")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_deleted_files_deleted_at ON deleted_files(deleted_at);")


def create_schema(conn: sqlite3.Connection):
    """Creates the full current schema on an empty database."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_version (
            version INTEGER PRIMARY KEY
        );
    """)

    # Live index: one row per known path (forward-slash normalized)
    conn.execute("""
    CREATE TABLE IF NOT EXISTS files (
        path            TEXT PRIMARY KEY,
        name            TEXT NOT NULL,
        size            INTEGER NOT NULL,
        mtime           INTEGER NOT NULL,
        ctime           INTEGER NOT NULL,
        extension       TEXT NOT NULL,
        media_type      TEXT NOT NULL,
        hash            TEXT,
        is_partial_hash INTEGER DEFAULT 0,
        status          TEXT DEFAULT 'new',
        old_path        TEXT
    );
    """)
    _create_files_indexes(conn)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_files_status ON files(status);")

    _create_deleted_files(conn)
    _set_version(conn, CURRENT_SCHEMA_VERSION)


def _infer_legacy_version(conn: sqlite3.Connection) -> int:
    """Infers the version of databases created before version tracking existed."""
    if "status" not in _columns(conn, "files"):
        return 1
    if not _table_exists(conn, "deleted_files"):
        return 2
    return 3


def migrate_v1_to_v2(conn: sqlite3.Connection):
    """Adds status tracking. Existing rows are treated as already seen."""
    existing = _columns(conn, "files")
    if "status" not in existing:
        conn.execute("ALTER TABLE files ADD COLUMN status TEXT DEFAULT 'unchanged'")
    if "old_path" not in existing:
        conn.execute("ALTER TABLE files ADD COLUMN old_path TEXT")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_files_status ON files(status);")
    _set_version(conn, 2)


def migrate_v2_to_v3(conn: sqlite3.Connection):
    """Adds the deleted_files history table."""
    _create_deleted_files(conn)
    _set_version(conn, 3)


MIGRATIONS = {
    1: migrate_v1_to_v2,
    2: migrate_v2_to_v3,
}


def init_schema(conn: sqlite3.Connection):
    """
    Brings the database to CURRENT_SCHEMA_VERSION.
    Idempotent: safe to run on every startup. Migrations are additive only.
    """
    with conn:
        version = get_schema_version(conn)

        if version is None:
            if _table_exists(conn, "files"):
                version = _infer_legacy_version(conn)
                logging.info(f"Adopting unversioned index database at schema v{version}")
                conn.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER PRIMARY KEY);")
                _set_version(conn, version)
                _create_files_indexes(conn)
            else:
                create_schema(conn)
                version = CURRENT_SCHEMA_VERSION

        while version < CURRENT_SCHEMA_VERSION:
            logging.info(f"Migrating index schema v{version} -> v{version + 1}")
            MIGRATIONS[version](conn)
            version += 1

    logging.debug("Database schema initialized.")
