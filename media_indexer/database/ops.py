import sqlite3
import logging
import time
from functools import wraps
from typing import Dict, Iterable, List, Optional, Sequence

from .. import config
from ..exceptions import DatabaseError
from ..models import DeletedFileRecord, FileRecord, FileStatus, ScannedFile, ScanResult


def _wrap_db_errors(func):
    """Re-raises sqlite3 and path encoding errors as DatabaseError so callers can fall back."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (sqlite3.Error, UnicodeError) as e:
            raise DatabaseError(f"{func.__name__} failed: {e}") from e
    return wrapper


def _chunks(items: Sequence, size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _record_from_row(row) -> FileRecord:
    path, name, size, mtime, hash_value, status = row
    return FileRecord(
        path=path,
        name=name,
        size=int(size),
        mtime=int(mtime),
        hash=hash_value,
        status=FileStatus.parse(status),
    )


class IndexOperations:
    def __init__(self, conn: sqlite3.Connection, batch_size: int = config.DEFAULT_BATCH_SIZE):
        self.conn = conn
        self.batch_size = max(1, batch_size)

    # --- Snapshot loading ---

    @_wrap_db_errors
    def load_snapshot(self) -> Dict[str, FileRecord]:
        """Returns {path: FileRecord} for every live row."""
        cur = self.conn.execute("SELECT path, name, size, mtime, hash, status FROM files")
        return {rec.path: rec for rec in map(_record_from_row, cur)}

    @_wrap_db_errors
    def load_hash_index(self) -> Dict[str, FileRecord]:
        """Returns {hash: FileRecord} for rows with a hash."""
        cur = self.conn.execute(
            "SELECT path, name, size, mtime, hash, status FROM files WHERE hash IS NOT NULL"
        )
        return {rec.hash: rec for rec in map(_record_from_row, cur)}

    # --- Writes ---
    # Each public write is one transaction: all-or-nothing.

    @_wrap_db_errors
    def upsert(self, files: Iterable[ScannedFile]):
        rows = [self._file_row(f) for f in files]
        with self.conn:
            self._upsert_rows(rows)

    @_wrap_db_errors
    def record_deletions(self, paths: Sequence[str]):
        """Moves each live row into deleted_files, then removes it from files."""
        if not paths:
            return
        with self.conn:
            self._tombstone(paths, int(time.time()))

    @_wrap_db_errors
    def delete_files(self, paths: Sequence[str]):
        """Removes rows without keeping any history."""
        if not paths:
            return
        with self.conn:
            self.conn.executemany("DELETE FROM files WHERE path = ?", [(p,) for p in paths])

    @_wrap_db_errors
    def reset_statuses(self):
        with self.conn:
            self._reset_statuses()

    @_wrap_db_errors
    def write_back(self, result: ScanResult, incremental: bool):
        """
        Persists one scan in a single transaction: status reset (incremental
        only), upsert of new/modified files, tombstones for deleted paths.
        """
        rows = [self._file_row(f) for f in result.files]
        with self.conn:
            if incremental:
                self._reset_statuses()
            self._upsert_rows(rows)
            if result.deleted_paths:
                self._tombstone(result.deleted_paths, int(time.time()))
        logging.info(
            f"Index updated: {len(rows)} upserted, {len(result.deleted_paths)} moved to history"
        )

    # --- Queries ---

    @_wrap_db_errors
    def files_by_status(self, status: FileStatus) -> List[FileRecord]:
        cur = self.conn.execute(
            "SELECT path, name, size, mtime, hash, status FROM files WHERE status = ? ORDER BY path",
            (status.value,),
        )
        return [_record_from_row(r) for r in cur]

    @_wrap_db_errors
    def deleted_files(self, since: Optional[int] = None) -> List[DeletedFileRecord]:
        """Tombstones, newest first; optionally only those deleted at or after `since`."""
        sql = "SELECT path, name, size, hash, deleted_at FROM deleted_files"
        params: tuple = ()
        if since is not None:
            sql += " WHERE deleted_at >= ?"
            params = (since,)
        sql += " ORDER BY deleted_at DESC, id DESC"
        return [
            DeletedFileRecord(path=p, name=n, size=int(s), hash=h, deleted_at=int(d))
            for p, n, s, h, d in self.conn.execute(sql, params)
        ]

    @_wrap_db_errors
    def file_count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM files").fetchone()[0]

    @_wrap_db_errors
    def deleted_count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM deleted_files").fetchone()[0]

    @_wrap_db_errors
    def status_counts(self) -> Dict[str, int]:
        cur = self.conn.execute("SELECT status, COUNT(*) FROM files GROUP BY status")
        return {FileStatus.parse(status).value: count for status, count in cur}

    @_wrap_db_errors
    def clear_deleted(self) -> int:
        """Prunes the whole deletion history. Returns the number of rows removed."""
        with self.conn:
            count = self.conn.execute("SELECT COUNT(*) FROM deleted_files").fetchone()[0]
            self.conn.execute("DELETE FROM deleted_files")
        return count

    # --- Internal helpers (run inside the caller's transaction) ---

    def _file_row(self, f: ScannedFile) -> tuple:
        return (
            f.key, f.name, f.size, f.mtime, f.ctime, f.extension,
            f.media_type.value, f.hash, int(f.is_partial_hash), f.status.value, None,
        )

    def _upsert_rows(self, rows: List[tuple]):
        for chunk in _chunks(rows, self.batch_size):
            self.conn.executemany("""
                INSERT OR REPLACE INTO files
                (path, name, size, mtime, ctime, extension, media_type, hash, is_partial_hash, status, old_path)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, chunk)

    def _tombstone(self, paths: Sequence[str], deleted_at: int):
        params = [(deleted_at, p) for p in paths]
        self.conn.executemany("""
            INSERT INTO deleted_files (path, name, size, mtime, ctime, extension, media_type, hash, deleted_at)
            SELECT path, name, size, mtime, ctime, extension, media_type, hash, ?
            FROM files WHERE path = ?
        """, params)
        self.conn.executemany("DELETE FROM files WHERE path = ?", [(p,) for p in paths])

    def _reset_statuses(self):
        self.conn.execute(
            "UPDATE files SET status = 'unchanged', old_path = NULL WHERE status IN ('new', 'modified')"
        )
