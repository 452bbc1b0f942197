from typing import Iterable, List, Mapping, Optional

from ..models import FileRecord, FileStatus


class ChangeClassifier:
    """
    Compares observed files against the snapshot loaded at scan start.

    The comparison key is (size, mtime) only. The content hash is never
    consulted, so re-scanning an untouched tree reads no file contents.
    A rewrite that preserves both size and mtime is reported as unchanged.
    """

    def __init__(self, snapshot: Optional[Mapping[str, FileRecord]] = None):
        # Shared read-only across worker threads
        self.snapshot = snapshot

    @property
    def is_incremental(self) -> bool:
        return self.snapshot is not None

    @property
    def expected_total(self) -> Optional[int]:
        """Files the previous scan saw; used as the ETA baseline."""
        return len(self.snapshot) if self.snapshot is not None else None

    def classify(self, key: str, size: int, mtime: int) -> FileStatus:
        if self.snapshot is None:
            return FileStatus.NEW

        prior = self.snapshot.get(key)
        if prior is None:
            return FileStatus.NEW
        if prior.size == size and prior.mtime == mtime:
            return FileStatus.UNCHANGED
        return FileStatus.MODIFIED

    def deleted_paths(self, observed: Iterable[str]) -> List[str]:
        """Snapshot keys that were not seen in this traversal."""
        if self.snapshot is None:
            return []
        return sorted(self.snapshot.keys() - observed)
