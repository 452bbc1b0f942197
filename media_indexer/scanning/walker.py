import os
import stat as statmod
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from ..config import ScanConfig
from ..exceptions import ScanError, is_encodable


@dataclass(frozen=True)
class WalkEntry:
    path: Path
    depth: int
    is_dir: bool
    stat: Optional[os.stat_result] = None


def file_extension(name: str) -> str:
    """Lowercase extension without the dot ('' when there is none)."""
    return os.path.splitext(name)[1].lower().lstrip('.')


class DirectoryWalker:
    """
    Bounded-depth, depth-first walker built on os.scandir.

    Yields WalkEntry objects for directories and matching files, and
    ScanError objects for anything that could not be read. Errors never stop
    the walk; symlinks are never followed.
    """

    def __init__(self, config: ScanConfig):
        self.config = config

    def walk(self, root: Path) -> Iterator[Union[WalkEntry, ScanError]]:
        max_depth = self.config.effective_max_depth()

        try:
            root_stat = root.stat()
        except FileNotFoundError:
            yield ScanError.not_found(root)
            return
        except OSError as e:
            yield ScanError.from_walk_error(e, root)
            return

        if not is_encodable(root):
            yield ScanError.invalid_path(root)
            return

        if not statmod.S_ISDIR(root_stat.st_mode):
            # A single file given as root
            if statmod.S_ISREG(root_stat.st_mode) and self.config.should_include_extension(file_extension(root.name)):
                yield WalkEntry(root, 0, False, root_stat)
            return

        # The root itself is never subject to the ignore rules
        yield WalkEntry(root, 0, True, root_stat)
        if max_depth < 1:
            return

        stack: List[Tuple[Path, int]] = [(root, 0)]
        while stack:
            current, depth = stack.pop()
            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                yield ScanError.from_walk_error(e, current)
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name.lower())

            child_depth = depth + 1
            subdirs = []
            for entry in entries:
                result = self._visit(entry, child_depth)
                if result is None:
                    continue
                if isinstance(result, WalkEntry) and result.is_dir and child_depth < max_depth:
                    subdirs.append(result.path)
                yield result

            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(subdirs):
                stack.append((d, child_depth))

    def _visit(self, entry: os.DirEntry, depth: int) -> Optional[Union[WalkEntry, ScanError]]:
        path = Path(entry.path)
        try:
            if entry.is_dir(follow_symlinks=False):
                if self.config.should_ignore_dir(entry.name):
                    return None
                if not is_encodable(path):
                    return ScanError.invalid_path(path)
                return WalkEntry(path, depth, True)

            if entry.is_file(follow_symlinks=False):
                if not self.config.should_include_extension(file_extension(entry.name)):
                    return None
                if not is_encodable(path):
                    return ScanError.invalid_path(path)
                return WalkEntry(path, depth, False, entry.stat(follow_symlinks=False))
        except OSError as e:
            return ScanError.from_walk_error(e, path)

        # Symlinks, sockets, devices...
        return None
