import dataclasses
from pathlib import Path

import pytest

from media_indexer import config
from media_indexer.config import ScanConfig
from media_indexer.models import FileStatus, MediaType


def test_defaults():
    cfg = ScanConfig(roots=("/media",))
    assert cfg.roots == (Path("/media"),)
    assert cfg.extensions == config.MEDIA_EXTS
    assert cfg.compute_hash is True
    assert cfg.recursive is True
    assert cfg.max_depth == 3
    assert cfg.batch_size == 1000
    assert cfg.large_file_threshold == 100 * 1024 * 1024
    assert cfg.progress_interval_ms == 500
    assert cfg.db_path is None


def test_relative_roots_are_made_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = ScanConfig(roots=("lib", "other/../lib", tmp_path / "lib"))
    assert cfg.roots == (tmp_path / "lib",) * 3


def test_extensions_are_normalized():
    cfg = ScanConfig(extensions={".MP4", "Jpg", "flac"})
    assert cfg.extensions == frozenset({"mp4", "jpg", "flac"})
    assert cfg.should_include_extension("MP4")
    assert cfg.should_include_extension(".jpg")
    assert not cfg.should_include_extension("mkv")


def test_empty_allow_list_includes_everything():
    cfg = ScanConfig(extensions=())
    assert cfg.should_include_extension("xyz")
    assert cfg.should_include_extension("")


def test_effective_threads(monkeypatch):
    assert ScanConfig(num_threads=3).effective_threads() == 3

    monkeypatch.setattr("os.cpu_count", lambda: 6)
    assert ScanConfig().effective_threads() == 12

    monkeypatch.setattr("os.cpu_count", lambda: None)
    assert ScanConfig().effective_threads() == 4


def test_effective_max_depth():
    assert ScanConfig(max_depth=5).effective_max_depth() == 5
    assert ScanConfig(max_depth=5, recursive=False).effective_max_depth() == 1


@pytest.mark.parametrize("name, ignored", [
    (".hidden", True),
    (".git", True),
    ("node_modules", True),
    ("NODE_MODULES", True),
    ("$RECYCLE.BIN", True),
    ("System Volume Information", True),
    ("@eaDir", True),
    ("Photos", False),
    ("modules", False),
])
def test_should_ignore_dir(name, ignored):
    assert ScanConfig().should_ignore_dir(name) is ignored


def test_custom_ignore_list_is_case_insensitive():
    cfg = ScanConfig(ignore_dirs={"Proxies"})
    assert cfg.should_ignore_dir("proxies")
    assert not cfg.should_ignore_dir("node_modules")


def test_convenience_constructors():
    assert ScanConfig.video_only(["/v"]).extensions == config.VIDEO_EXTS
    assert ScanConfig.image_only(["/i"]).extensions == config.IMAGE_EXTS
    audio = ScanConfig.audio_only(["/a"], compute_hash=False)
    assert audio.extensions == config.AUDIO_EXTS
    assert audio.compute_hash is False


def test_config_is_immutable():
    cfg = ScanConfig(roots=("/media",))
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.max_depth = 10

    deeper = cfg.with_options(max_depth=10)
    assert deeper.max_depth == 10
    assert cfg.max_depth == 3
    assert deeper.roots == cfg.roots


@pytest.mark.parametrize("ext, expected", [
    ("mp4", MediaType.VIDEO),
    ("MKV", MediaType.VIDEO),
    (".rmvb", MediaType.VIDEO),
    ("jpeg", MediaType.IMAGE),
    ("TIF", MediaType.IMAGE),
    ("flac", MediaType.AUDIO),
    ("m4a", MediaType.AUDIO),
    ("xyz", MediaType.UNKNOWN),
    ("", MediaType.UNKNOWN),
])
def test_media_type_from_extension(ext, expected):
    assert MediaType.from_extension(ext) == expected


def test_status_parse_defaults_to_new():
    assert FileStatus.parse(None) == FileStatus.NEW
    assert FileStatus.parse("") == FileStatus.NEW
    assert FileStatus.parse("modified") == FileStatus.MODIFIED
    assert FileStatus.UNCHANGED.code == "u"
