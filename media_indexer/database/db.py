"""
Database connection management.
"""
import sqlite3
import logging
from pathlib import Path
from typing import Optional, Union

from ..exceptions import DatabaseError
from .schema import init_schema


class DBManager:
    def __init__(self, db_path: Union[Path, str]):
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def is_memory(self) -> bool:
        return str(self.db_path) == ":memory:"

    def connect(self) -> sqlite3.Connection:
        """
        Connects to the SQLite index, configures pragmas and brings the
        schema up to date. Any failure is raised as DatabaseError.
        """
        if self._conn:
            return self._conn

        logging.info(f"Connecting to database: {self.db_path}")
        conn = None
        try:
            conn = sqlite3.connect(str(self.db_path))

            if not self.is_memory:
                # Single writer (the scan coordinator), rebuildable catalog
                conn.execute("PRAGMA journal_mode=WAL;")
                conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA temp_store=MEMORY;")

            # Ensure schema exists
            init_schema(conn)
        except sqlite3.Error as e:
            if conn is not None:
                conn.close()
            raise DatabaseError(f"Cannot open index database {self.db_path}: {e}") from e

        self._conn = conn
        return self._conn

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self.connect()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
