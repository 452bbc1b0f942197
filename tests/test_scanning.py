import hashlib
import os
from pathlib import Path

import pytest

from media_indexer.config import PARTIAL_HASH_CHUNK_SIZE
from media_indexer.exceptions import ScanError, ScanErrorKind
from media_indexer.scanning.hasher import FileHasher
from media_indexer.scanning.walker import DirectoryWalker, WalkEntry, file_extension

MB = 1024 * 1024


def _walk(cfg, root):
    items = list(DirectoryWalker(cfg).walk(root))
    entries = [i for i in items if isinstance(i, WalkEntry)]
    errors = [i for i in items if isinstance(i, ScanError)]
    return entries, errors


def _names(entries, is_dir):
    return sorted(e.path.name for e in entries if e.is_dir == is_dir)


# --- Walker ---

def test_file_extension():
    assert file_extension("clip.MP4") == "mp4"
    assert file_extension("archive.tar.gz") == "gz"
    assert file_extension("README") == ""


def test_walker_filters_extensions_and_ignored_dirs(media_tree, make_config):
    entries, errors = _walk(make_config(media_tree), media_tree)

    assert errors == []
    assert _names(entries, is_dir=False) == ["movie.mp4", "photo.JPG", "song.mp3"]
    # Root plus music/; .git and node_modules are never entered or counted
    assert _names(entries, is_dir=True) == ["library", "music"]


def test_walker_yields_root_first_at_depth_zero(media_tree, make_config):
    entries, _ = _walk(make_config(media_tree), media_tree)
    assert entries[0] == WalkEntry(media_tree, 0, True, entries[0].stat)


def test_walker_respects_max_depth(tmp_path, write_file, make_config):
    root = tmp_path / "root"
    write_file(root / "d1" / "d2" / "e.mp4")
    write_file(root / "d1" / "d2" / "d3" / "f.mp4")

    entries, _ = _walk(make_config(root), root)

    # d3 sits at depth 3: listed, but not descended into
    assert _names(entries, is_dir=True) == ["d1", "d2", "d3", "root"]
    assert _names(entries, is_dir=False) == ["e.mp4"]
    assert max(e.depth for e in entries) == 3

    entries, _ = _walk(make_config(root, max_depth=10), root)
    assert _names(entries, is_dir=False) == ["e.mp4", "f.mp4"]


def test_walker_non_recursive_stays_at_top_level(media_tree, make_config):
    entries, _ = _walk(make_config(media_tree, recursive=False), media_tree)
    assert _names(entries, is_dir=False) == ["movie.mp4", "photo.JPG"]


def test_walker_custom_extension_allow_list(media_tree, make_config):
    entries, _ = _walk(make_config(media_tree, extensions={"txt"}), media_tree)
    assert _names(entries, is_dir=False) == ["notes.txt"]


def test_walker_missing_root(tmp_path, make_config):
    missing = tmp_path / "nope"
    entries, errors = _walk(make_config(missing), missing)

    assert entries == []
    assert len(errors) == 1
    assert errors[0].kind == ScanErrorKind.NOT_FOUND
    assert errors[0].path == missing


def test_walker_accepts_single_file_root(tmp_path, write_file, make_config):
    clip = write_file(tmp_path / "clip.mkv", b"abc")
    entries, errors = _walk(make_config(clip), clip)

    assert errors == []
    assert len(entries) == 1
    assert entries[0].path == clip
    assert not entries[0].is_dir
    assert entries[0].stat.st_size == 3


def test_walker_root_is_not_subject_to_ignore_rules(tmp_path, write_file, make_config):
    root = tmp_path / "node_modules"
    write_file(root / "clip.mp4")
    entries, _ = _walk(make_config(root), root)
    assert _names(entries, is_dir=False) == ["clip.mp4"]


def test_walker_does_not_follow_symlinks(tmp_path, write_file, make_config):
    target = tmp_path / "elsewhere"
    write_file(target / "linked.mp4")
    root = tmp_path / "root"
    write_file(root / "real.mp4")
    try:
        os.symlink(target, root / "link", target_is_directory=True)
        os.symlink(target / "linked.mp4", root / "file_link.mp4")
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported here")

    entries, _ = _walk(make_config(root), root)
    assert _names(entries, is_dir=False) == ["real.mp4"]
    assert _names(entries, is_dir=True) == ["root"]


@pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0, reason="needs POSIX permissions as non-root")
def test_walker_reports_unreadable_directory(tmp_path, write_file, make_config):
    root = tmp_path / "root"
    write_file(root / "ok.mp4")
    locked = root / "locked"
    write_file(locked / "secret.mp4")
    locked.chmod(0)
    try:
        entries, errors = _walk(make_config(root), root)
    finally:
        locked.chmod(0o755)

    assert _names(entries, is_dir=False) == ["ok.mp4"]
    assert [e.kind for e in errors] == [ScanErrorKind.PERMISSION_DENIED]
    assert errors[0].path == locked


@pytest.mark.skipif(os.name == "nt", reason="surrogate-escaped names are POSIX only")
def test_walker_reports_undecodable_names_as_invalid_path(tmp_path, write_file, write_raw_name, make_config):
    root = tmp_path / "root"
    write_file(root / "ok.mp4")
    bad = write_raw_name(root, b"bad\xff.mp4")
    # Filtered out by extension before the name is ever looked at
    write_raw_name(root, b"skip\xff.txt")
    bad_dir = write_raw_name(root / "dir-tmp", b"inner.mp4").parent
    renamed = os.path.join(os.fsencode(root), b"dir\xff")
    os.rename(os.fsencode(bad_dir), renamed)

    entries, errors = _walk(make_config(root), root)

    assert _names(entries, is_dir=False) == ["ok.mp4"]
    assert _names(entries, is_dir=True) == ["root"]
    assert [e.kind for e in errors] == [ScanErrorKind.INVALID_PATH] * 2
    assert {e.path for e in errors} == {bad, Path(os.fsdecode(renamed))}


# --- Hasher ---

def test_small_file_full_hash(tmp_path):
    p = tmp_path / "sample.mp4"
    data = b"hello world" * 10
    p.write_bytes(data)

    res = FileHasher().compute_hash(p)
    assert res.value == hashlib.md5(data).hexdigest()
    assert not res.is_partial


def test_threshold_boundary(tmp_path):
    threshold = 3 * MB
    hasher = FileHasher(large_file_threshold=threshold)

    exact = tmp_path / "exact.mkv"
    exact_data = os.urandom(threshold)
    exact.write_bytes(exact_data)
    res = hasher.compute_hash(exact)
    assert not res.is_partial
    assert res.value == hashlib.md5(exact_data).hexdigest()

    over = tmp_path / "over.mkv"
    over_data = os.urandom(threshold + 1)
    over.write_bytes(over_data)
    res = hasher.compute_hash(over)
    assert res.is_partial
    expected = hashlib.md5(over_data[:PARTIAL_HASH_CHUNK_SIZE] + over_data[-PARTIAL_HASH_CHUNK_SIZE:])
    assert res.value == expected.hexdigest()


def test_partial_hash_of_file_smaller_than_one_chunk(tmp_path):
    p = tmp_path / "tiny.mp4"
    data = b"0123456789" * 3
    p.write_bytes(data)

    res = FileHasher(large_file_threshold=10).compute_hash(p)
    # Head covers the whole file; no tail is read
    assert res.is_partial
    assert res.value == hashlib.md5(data).hexdigest()


def test_partial_hash_ignores_middle(tmp_path):
    hasher = FileHasher(large_file_threshold=MB)
    head, tail = os.urandom(MB), os.urandom(MB)
    a = tmp_path / "a.mov"
    b = tmp_path / "b.mov"
    a.write_bytes(head + b"A" * 1000 + tail)
    b.write_bytes(head + b"B" * 1000 + tail)

    assert hasher.compute_hash(a).value == hasher.compute_hash(b).value


def test_unreadable_file_returns_none(tmp_path):
    assert FileHasher().compute_hash(tmp_path / "missing.mp4") is None
