#!/usr/bin/env python

import argparse
import sqlite3
from datetime import datetime
from pathlib import Path

from media_indexer.database.ops import IndexOperations
from media_indexer.database.schema import init_schema
from media_indexer.models import FileStatus


def connect_db(db_path: Path) -> sqlite3.Connection:
    if not db_path.exists():
        raise SystemExit(f"DB not found: {db_path}")
    conn = sqlite3.connect(db_path)
    init_schema(conn)
    return conn


def _format_ts(ts: int) -> str:
    return datetime.fromtimestamp(ts).isoformat(sep=' ', timespec='seconds')


def show_status_counts(conn: sqlite3.Connection):
    ops = IndexOperations(conn)
    counts = ops.status_counts()
    print("Indexed files by status:")
    for status in (FileStatus.NEW, FileStatus.MODIFIED, FileStatus.UNCHANGED):
        print(f"  {status.value.ljust(10)} {counts.get(status.value, 0)}")
    print(f"  {'total'.ljust(10)} {ops.file_count()}")
    print(f"  {'deleted'.ljust(10)} {ops.deleted_count()} (history)")


def list_by_status(conn: sqlite3.Connection, status: FileStatus):
    rows = IndexOperations(conn).files_by_status(status)
    if not rows:
        print(f"No files with status='{status.value}' found.")
        return

    print(f"Files with status='{status.value}':")
    print("size         | mtime               | hash                             | path")
    print("-------------+---------------------+----------------------------------+-----")
    for rec in rows:
        print(f"{str(rec.size).rjust(12)} | {_format_ts(rec.mtime)} | {(rec.hash or '').ljust(32)} | {rec.path}")


def list_deleted(conn: sqlite3.Connection, since=None):
    rows = IndexOperations(conn).deleted_files(since)
    if not rows:
        print("No deleted files recorded.")
        return

    print("Deleted files (newest first):")
    print("deleted_at          | size         | hash                             | path")
    print("--------------------+--------------+----------------------------------+-----")
    for rec in rows:
        print(f"{_format_ts(rec.deleted_at)} | {str(rec.size).rjust(12)} | {(rec.hash or '').ljust(32)} | {rec.path}")


def clear_deleted(conn: sqlite3.Connection):
    removed = IndexOperations(conn).clear_deleted()
    print(f"Removed {removed} entries from deletion history.")


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Query helper for the media index SQLite DB.")
    p.add_argument("--db", required=True, help="Path to media_index.db")
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("--status-counts", action="store_true", help="Count indexed files per status")
    group.add_argument("--by-status", choices=[s.value for s in (FileStatus.NEW, FileStatus.MODIFIED, FileStatus.UNCHANGED)],
                       help="List indexed files with the given status")
    group.add_argument("--deleted", action="store_true", help="List deletion history")
    group.add_argument("--clear-deleted", action="store_true", help="Prune the deletion history")
    p.add_argument("--since", type=int, default=None,
                   help="With --deleted: only entries deleted at or after this UNIX timestamp")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    db_path = Path(args.db).resolve()
    conn = connect_db(db_path)

    try:
        if args.status_counts:
            show_status_counts(conn)
        elif args.by_status:
            list_by_status(conn, FileStatus(args.by_status))
        elif args.deleted:
            list_deleted(conn, args.since)
        elif args.clear_deleted:
            clear_deleted(conn)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
