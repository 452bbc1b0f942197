"""
Custom exception hierarchy for the media indexer.

Most scan failures are not raised: they are collected as `ScanError` values
on the scan result so one unreadable directory never aborts a whole scan.
"""
import errno
from enum import Enum
from pathlib import Path
from typing import Optional


class MediaIndexerError(Exception):
    """Base exception for all media indexer errors."""
    pass


class DatabaseError(MediaIndexerError):
    """Raised when index database operations fail."""
    pass


class IndexUnavailableError(DatabaseError):
    """Raised when the index database is required but cannot be opened."""
    pass


class ScanErrorKind(Enum):
    # Values are the wire names used by progress error events.
    PERMISSION_DENIED = "PermissionDenied"
    NOT_FOUND = "NotFound"
    IO_ERROR = "IoError"
    DATABASE_ERROR = "DatabaseError"
    HASH_ERROR = "HashError"
    INVALID_PATH = "InvalidPath"
    UNKNOWN = "Unknown"


def is_encodable(path: Path) -> bool:
    try:
        str(path).encode('utf-8')
    except UnicodeEncodeError:
        return False
    return True


class ScanError(MediaIndexerError):
    """A non-fatal error observed during a scan, tagged with its kind and path."""

    def __init__(self, kind: ScanErrorKind, path: Optional[Path], message: str):
        super().__init__(message)
        self.kind = kind
        self.path = path
        self.message = message

    def __str__(self):
        return f"{self.kind.value}: {self.message} (path: {self.path})"

    def __repr__(self):
        return f"ScanError({self.kind!r}, {self.path!r}, {self.message!r})"

    def __eq__(self, other):
        if not isinstance(other, ScanError):
            return NotImplemented
        return (self.kind, self.path, self.message) == (other.kind, other.path, other.message)

    def __hash__(self):
        return hash((self.kind, self.path, self.message))

    @classmethod
    def permission_denied(cls, path: Path) -> "ScanError":
        return cls(ScanErrorKind.PERMISSION_DENIED, path, f"Permission denied: {path}")

    @classmethod
    def not_found(cls, path: Path) -> "ScanError":
        return cls(ScanErrorKind.NOT_FOUND, path, f"Not found: {path}")

    @classmethod
    def io_error(cls, path: Optional[Path], message: str) -> "ScanError":
        return cls(ScanErrorKind.IO_ERROR, path, message)

    @classmethod
    def database_error(cls, message: str) -> "ScanError":
        return cls(ScanErrorKind.DATABASE_ERROR, None, message)

    @classmethod
    def hash_error(cls, path: Path, message: str) -> "ScanError":
        return cls(ScanErrorKind.HASH_ERROR, path, message)

    @classmethod
    def invalid_path(cls, path: Path) -> "ScanError":
        return cls(ScanErrorKind.INVALID_PATH, path, f"Invalid path encoding: {path!r}")

    @classmethod
    def from_os_error(cls, err: OSError, path: Optional[Path] = None) -> "ScanError":
        """
        Classifies an OSError by errno.
        Paths that cannot be represented as UTF-8 are reported as InvalidPath.
        """
        if path is None and err.filename is not None:
            path = Path(err.filename)
        if path is not None and not is_encodable(path):
            return cls.invalid_path(path)

        if isinstance(err, PermissionError) or err.errno in (errno.EACCES, errno.EPERM):
            kind = ScanErrorKind.PERMISSION_DENIED
        elif isinstance(err, FileNotFoundError) or err.errno == errno.ENOENT:
            kind = ScanErrorKind.NOT_FOUND
        else:
            kind = ScanErrorKind.IO_ERROR
        return cls(kind, path, err.strerror or str(err))

    @classmethod
    def from_walk_error(cls, err: OSError, path: Path) -> "ScanError":
        """Traversal failures are either permission problems or generic I/O."""
        error = cls.from_os_error(err, path)
        if error.kind == ScanErrorKind.NOT_FOUND:
            error.kind = ScanErrorKind.IO_ERROR
        return error
