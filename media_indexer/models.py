from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from . import config
from .exceptions import ScanError


class FileStatus(Enum):
    NEW = "new"
    MODIFIED = "modified"
    UNCHANGED = "unchanged"
    DELETED = "deleted"

    @property
    def code(self) -> str:
        """Single-character code for compact output."""
        return self.value[0]

    @classmethod
    def parse(cls, value: Optional[str]) -> "FileStatus":
        """Maps a stored status string; missing values mean 'new'."""
        if not value:
            return cls.NEW
        return cls(value)


class MediaType(Enum):
    VIDEO = "video"
    IMAGE = "image"
    AUDIO = "audio"
    UNKNOWN = "unknown"

    @property
    def code(self) -> str:
        return self.value[0]

    @classmethod
    def from_extension(cls, ext: str) -> "MediaType":
        return cls(config.EXT_TO_TYPE.get(ext.lower().lstrip('.'), 'unknown'))


def normalize_path(path: Union[str, Path]) -> str:
    """Index key for a path: forward slashes regardless of host convention."""
    return str(path).replace('\\', '/')


@dataclass
class ScannedFile:
    """
    One file observed during a scan.
    Only `hash`, `is_partial_hash` and `status` change after construction.
    """
    path: Path
    name: str
    size: int
    mtime: int
    ctime: int
    extension: str          # lowercase, without the dot
    hash: Optional[str] = None
    is_partial_hash: bool = False
    status: FileStatus = FileStatus.NEW
    media_type: MediaType = field(init=False)

    def __post_init__(self):
        self.media_type = MediaType.from_extension(self.extension)

    @property
    def key(self) -> str:
        return normalize_path(self.path)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'path': str(self.path),
            'name': self.name,
            'size': self.size,
            'mtime': self.mtime,
            'ctime': self.ctime,
            'extension': self.extension,
            'media_type': self.media_type.value,
        }
        if self.hash is not None:
            data['hash'] = self.hash
        if self.is_partial_hash:
            data['is_partial_hash'] = True
        if self.status != FileStatus.NEW:
            data['status'] = self.status.value
        return data


@dataclass
class CompactFile:
    """File entry without its directory, using abbreviated keys."""
    name: str
    size: int
    mtime: int
    media_type: str
    status: str
    hash: Optional[str] = None

    @classmethod
    def from_scanned(cls, f: ScannedFile) -> "CompactFile":
        return cls(
            name=f.name,
            size=f.size,
            mtime=f.mtime,
            media_type=f.media_type.code,
            status=f.status.code,
            hash=f.hash,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'n': self.name, 's': self.size, 'm': self.mtime, 't': self.media_type}
        if self.status != FileStatus.NEW.code:
            data['st'] = self.status
        if self.hash is not None:
            data['h'] = self.hash
        return data


@dataclass
class ScannedDirectory:
    path: str
    files: list = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'path': self.path, 'files': [f.to_dict() for f in self.files]}


@dataclass
class FileRecord:
    """
    The durable counterpart of a ScannedFile, as stored in the index.
    """
    path: str               # normalized key
    name: str
    size: int
    mtime: int
    hash: Optional[str] = None
    status: FileStatus = FileStatus.NEW


@dataclass(frozen=True)
class DeletedFileRecord:
    path: str
    name: str
    size: int
    hash: Optional[str]
    deleted_at: int


@dataclass(frozen=True)
class ScanResult:
    """Aggregate outcome of one scan."""
    total_files: int = 0
    total_dirs: int = 0
    new_files: int = 0
    modified_files: int = 0
    unchanged_files: int = 0
    deleted_files: int = 0
    files: Tuple[ScannedFile, ...] = ()         # new + modified only
    deleted_paths: Tuple[str, ...] = ()
    errors: Tuple[ScanError, ...] = ()
    duration_ms: int = 0

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def is_success(self) -> bool:
        return not self.errors

    def with_errors(self, *errors: ScanError) -> "ScanResult":
        return replace(self, errors=self.errors + tuple(errors))


@dataclass
class ScanProgress:
    """Running counts handed to the progress reporter."""
    scanned_files: int = 0
    scanned_dirs: int = 0
    video_count: int = 0
    image_count: int = 0
    audio_count: int = 0
    current_dir: str = ""
    elapsed_ms: int = 0

    def estimated_remaining_ms(self, total_expected: Optional[int]) -> Optional[int]:
        if total_expected is None or self.scanned_files == 0 or self.elapsed_ms == 0:
            return None
        # remaining / (scanned / elapsed), kept in integer arithmetic
        remaining = max(total_expected - self.scanned_files, 0)
        return remaining * self.elapsed_ms // self.scanned_files
