import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .. import config


@dataclass(frozen=True)
class HashResult:
    value: str
    is_partial: bool  # True if only the head/tail of the file was read


class FileHasher:
    def __init__(self, large_file_threshold: int = config.DEFAULT_LARGE_FILE_THRESHOLD):
        self.large_file_threshold = large_file_threshold

    def compute_hash(self, path: Path) -> Optional[HashResult]:
        """
        Computes an identity fingerprint (MD5) for the file.

        Strategy:
        1. size <= threshold -> full read.
        2. size >  threshold -> first 1MB + last 1MB (if larger than 1MB),
           flagged as partial. Bounds I/O for huge video masters.

        Returns None if the file cannot be read; callers keep tracking the
        file by size/mtime alone.
        """
        try:
            with open(path, 'rb') as f:
                file_size = os.fstat(f.fileno()).st_size
                if file_size <= self.large_file_threshold:
                    return HashResult(self._full_md5(f), is_partial=False)
                return HashResult(self._partial_md5(f, file_size), is_partial=True)
        except OSError as e:
            logging.debug(f"Hash failed for {path}: {e}")
            return None

    def _full_md5(self, f) -> str:
        h = hashlib.md5()
        while chunk := f.read(config.HASH_CHUNK_SIZE):
            h.update(chunk)
        return h.hexdigest()

    def _partial_md5(self, f, file_size: int) -> str:
        chunk_size = config.PARTIAL_HASH_CHUNK_SIZE
        h = hashlib.md5()

        # 1. Head
        h.update(f.read(chunk_size))

        # 2. Tail (may overlap the head for files between 1MB and 2MB)
        if file_size > chunk_size:
            f.seek(-chunk_size, os.SEEK_END)
            h.update(f.read(chunk_size))

        return h.hexdigest()
