import os
import sqlite3
from pathlib import Path

import pytest

from media_indexer.config import ScanConfig
from media_indexer.database.ops import IndexOperations
from media_indexer.database.schema import init_schema

# Fixed timestamp so size/mtime comparisons are deterministic
BASE_MTIME = 1_600_000_000


@pytest.fixture
def conn():
    """Returns an in-memory SQLite connection with the schema initialized."""
    c = sqlite3.connect(":memory:")
    init_schema(c)
    try:
        yield c
    finally:
        c.close()


@pytest.fixture
def index_ops(conn):
    """Returns an IndexOperations instance attached to the in-memory DB."""
    return IndexOperations(conn)


@pytest.fixture
def write_file():
    """Writes bytes to a path (creating parents) and pins its mtime."""
    def _write(path, data=b"x", mtime=BASE_MTIME):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        os.utime(path, (mtime, mtime))
        return path
    return _write


@pytest.fixture
def media_tree(tmp_path, write_file):
    """
    library/
        movie.mp4
        photo.JPG
        notes.txt              (not a media extension)
        music/song.mp3
        .git/clip.mp4          (hidden dir)
        node_modules/clip.mp4  (ignored dir)
    """
    root = tmp_path / "library"
    write_file(root / "movie.mp4", b"video-bytes" * 10)
    write_file(root / "photo.JPG", b"jpeg-bytes" * 5)
    write_file(root / "notes.txt", b"not media")
    write_file(root / "music" / "song.mp3", b"audio-bytes" * 3)
    write_file(root / ".git" / "clip.mp4", b"hidden")
    write_file(root / "node_modules" / "clip.mp4", b"ignored")
    return root


@pytest.fixture
def make_config():
    """Builds a ScanConfig for the given root(s); keyword args override defaults."""
    def _make(*roots, **kwargs):
        return ScanConfig(roots=tuple(roots), **kwargs)
    return _make


@pytest.fixture
def write_raw_name():
    """Creates a file whose name is raw bytes, skipping where the filesystem refuses them."""
    def _write(directory, raw_name, data=b"x"):
        directory.mkdir(parents=True, exist_ok=True)
        raw_path = os.path.join(os.fsencode(directory), raw_name)
        try:
            with open(raw_path, "wb") as f:
                f.write(data)
        except OSError:
            pytest.skip("filesystem rejects non-UTF-8 names")
        return Path(os.fsdecode(raw_path))
    return _write
