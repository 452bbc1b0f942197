"""
Configuration constants and the resolved scan configuration for the media indexer.
"""
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import FrozenSet, Iterable, Optional, Tuple

# --- File Type Definitions ---
VIDEO_EXTS = frozenset({'mp4', 'mkv', 'avi', 'wmv', 'flv', 'mov', 'webm', 'm4v', 'ts', 'rmvb'})
IMAGE_EXTS = frozenset({'jpg', 'jpeg', 'png', 'gif', 'webp', 'bmp', 'tiff', 'tif'})
AUDIO_EXTS = frozenset({'mp3', 'flac', 'wav', 'aac', 'ogg', 'wma', 'm4a'})
MEDIA_EXTS = VIDEO_EXTS | IMAGE_EXTS | AUDIO_EXTS

# Extension to Type Mapping (extensions are stored lowercase, without the dot)
EXT_TO_TYPE = {}
for ext in VIDEO_EXTS: EXT_TO_TYPE[ext] = 'video'
for ext in IMAGE_EXTS: EXT_TO_TYPE[ext] = 'image'
for ext in AUDIO_EXTS: EXT_TO_TYPE[ext] = 'audio'

# --- Traversal ---
# Hidden directories (leading '.') are always skipped on top of this list.
DEFAULT_IGNORE_DIRS = frozenset({
    '$RECYCLE.BIN',
    'System Volume Information',
    '.Trash',
    '.Trash-1000',
    '@eaDir',
    '.git',
    '.svn',
    'node_modules',
    '__pycache__',
    '.cache',
})
DEFAULT_MAX_DEPTH = 3

# --- Hashing & Performance ---
# Files up to this size are hashed fully. Larger ones get a partial hash.
DEFAULT_LARGE_FILE_THRESHOLD = 100 * 1024 * 1024  # 100 MB
PARTIAL_HASH_CHUNK_SIZE = 1024 * 1024  # first/last 1 MB of large files
HASH_CHUNK_SIZE = 64 * 1024  # 64 KB chunks for streaming full hashes

# --- Index ---
DEFAULT_BATCH_SIZE = 1000
DEFAULT_DB_NAME = "media_index.db"

# --- Progress ---
DEFAULT_PROGRESS_INTERVAL_MS = 500


def _normalize_extensions(extensions: Iterable[str]) -> FrozenSet[str]:
    return frozenset(e.lower().lstrip('.') for e in extensions if e and e.strip('.'))


@dataclass(frozen=True)
class ScanConfig:
    """
    Resolved scan parameters.

    Built once before any traversal starts and shared read-only with every
    worker. Use `with_options` to derive a variant instead of mutating.
    """
    roots: Tuple[Path, ...] = ()
    extensions: FrozenSet[str] = MEDIA_EXTS
    ignore_dirs: FrozenSet[str] = DEFAULT_IGNORE_DIRS
    compute_hash: bool = True
    large_file_threshold: int = DEFAULT_LARGE_FILE_THRESHOLD
    num_threads: int = 0  # 0 = auto-detect
    batch_size: int = DEFAULT_BATCH_SIZE
    recursive: bool = True
    max_depth: int = DEFAULT_MAX_DEPTH
    progress_interval_ms: int = DEFAULT_PROGRESS_INTERVAL_MS
    db_path: Optional[Path] = None
    _ignore_folded: FrozenSet[str] = field(default=frozenset(), init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'roots', tuple(Path(os.path.abspath(r)) for r in self.roots))
        object.__setattr__(self, 'extensions', _normalize_extensions(self.extensions))
        object.__setattr__(self, 'ignore_dirs', frozenset(self.ignore_dirs))
        object.__setattr__(self, '_ignore_folded', frozenset(d.casefold() for d in self.ignore_dirs))
        if self.db_path is not None:
            object.__setattr__(self, 'db_path', Path(self.db_path))

    # --- Convenience constructors ---

    @classmethod
    def video_only(cls, roots: Iterable[Path], **kwargs) -> "ScanConfig":
        return cls(roots=tuple(roots), extensions=VIDEO_EXTS, **kwargs)

    @classmethod
    def image_only(cls, roots: Iterable[Path], **kwargs) -> "ScanConfig":
        return cls(roots=tuple(roots), extensions=IMAGE_EXTS, **kwargs)

    @classmethod
    def audio_only(cls, roots: Iterable[Path], **kwargs) -> "ScanConfig":
        return cls(roots=tuple(roots), extensions=AUDIO_EXTS, **kwargs)

    def with_options(self, **changes) -> "ScanConfig":
        """Returns a copy with the given fields replaced."""
        return replace(self, **changes)

    # --- Resolved values ---

    def effective_threads(self) -> int:
        """Explicit thread count, or CPU cores x 2 when unset."""
        if self.num_threads > 0:
            return self.num_threads
        cpus = os.cpu_count()
        return cpus * 2 if cpus else 4

    def effective_max_depth(self) -> int:
        """Depth limit for the walker: 1 (root's children only) when not recursive."""
        if not self.recursive:
            return 1
        return self.max_depth

    def should_include_extension(self, ext: str) -> bool:
        if not self.extensions:
            return True
        return ext.lower().lstrip('.') in self.extensions

    def should_ignore_dir(self, name: str) -> bool:
        if name.startswith('.'):
            return True
        return name.casefold() in self._ignore_folded
