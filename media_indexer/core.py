import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from .config import ScanConfig
from .database.db import DBManager
from .database.ops import IndexOperations
from .exceptions import DatabaseError, IndexUnavailableError, ScanError
from .models import DeletedFileRecord, ScanResult
from .progress import ProgressReporter
from .scanning.filesystem import DiskScanner


def _write_back(index: IndexOperations,
                result: ScanResult,
                incremental: bool,
                reporter: ProgressReporter) -> ScanResult:
    """
    Persists the result. A store failure is reported and attached to the
    result; the in-memory result itself is kept.
    """
    try:
        index.write_back(result, incremental)
    except DatabaseError as e:
        logging.error(f"Failed to save scan results to the index: {e}")
        error = ScanError.database_error(str(e))
        reporter.report_error(error)
        return result.with_errors(error)
    return result


def scan_full(config: ScanConfig,
              reporter: Optional[ProgressReporter] = None,
              index: Optional[IndexOperations] = None) -> ScanResult:
    """
    Scans with no prior snapshot; every file is new. When an index is given,
    every file is upserted so the next scan can be incremental.
    """
    reporter = reporter if reporter is not None else ProgressReporter.disabled()
    result = DiskScanner(config, reporter).scan()

    if index is not None:
        logging.info(f"Saving {len(result.files)} files to the index")
        result = _write_back(index, result, incremental=False, reporter=reporter)

    reporter.report_done(result)
    return result


def scan_incremental(config: ScanConfig,
                     index: IndexOperations,
                     reporter: Optional[ProgressReporter] = None) -> ScanResult:
    """
    Scans against the snapshot stored in `index` and writes the changes back
    in one transaction. If the snapshot cannot be loaded the scan degrades to
    an ephemeral full scan.
    """
    reporter = reporter if reporter is not None else ProgressReporter.disabled()

    try:
        snapshot = index.load_snapshot()
    except DatabaseError as e:
        logging.warning(f"Could not load index snapshot, falling back to a full scan: {e}")
        return scan_full(config, reporter)

    logging.info(f"Loaded snapshot of {len(snapshot)} indexed files")
    result = DiskScanner(config, reporter).scan(snapshot=snapshot)
    result = _write_back(index, result, incremental=True, reporter=reporter)
    logging.info(
        f"Incremental scan: {result.new_files} new, {result.modified_files} modified, "
        f"{result.deleted_files} deleted"
    )

    reporter.report_done(result)
    return result


class MediaIndexerApp:
    def __init__(self, db_path: Union[Path, str], require_index: bool = False):
        self.db_manager = DBManager(db_path)
        self.require_index = require_index

    def scan(self,
             config: ScanConfig,
             incremental: bool = False,
             reporter: Optional[ProgressReporter] = None) -> ScanResult:
        """
        Runs one scan against the index at db_path.

        If the index cannot be opened the scan still runs as an ephemeral
        full scan, unless require_index is set, in which case
        IndexUnavailableError is raised.
        """
        try:
            conn = self.db_manager.connect()
        except DatabaseError as e:
            if self.require_index:
                raise IndexUnavailableError(str(e)) from e
            logging.warning(f"Index unavailable, running an ephemeral full scan: {e}")
            return scan_full(config, reporter)

        try:
            index = IndexOperations(conn, batch_size=config.batch_size)
            if incremental:
                return scan_incremental(config, index, reporter)
            return scan_full(config, reporter, index)
        finally:
            self.db_manager.close()

    # --- History / maintenance ---

    def deleted_history(self, since: Optional[int] = None) -> List[DeletedFileRecord]:
        with self.db_manager as conn:
            return IndexOperations(conn).deleted_files(since)

    def clear_deleted_history(self) -> int:
        with self.db_manager as conn:
            removed = IndexOperations(conn).clear_deleted()
        logging.info(f"Removed {removed} entries from deletion history")
        return removed

    def status_counts(self) -> Dict[str, int]:
        with self.db_manager as conn:
            return IndexOperations(conn).status_counts()
