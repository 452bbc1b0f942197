from dataclasses import dataclass, fields

from ..models import FileStatus, MediaType, ScanProgress


@dataclass
class ScanCounters:
    """
    Per-scan accumulator.

    Each worker batch fills its own instance; the coordinating thread merges
    them, so no instance is ever written by two threads.
    """
    files: int = 0
    dirs: int = 0
    video: int = 0
    image: int = 0
    audio: int = 0
    unknown: int = 0
    new: int = 0
    modified: int = 0
    unchanged: int = 0

    def record_dir(self):
        self.dirs += 1

    def record_file(self, media_type: MediaType, status: FileStatus):
        self.files += 1
        if media_type == MediaType.VIDEO:
            self.video += 1
        elif media_type == MediaType.IMAGE:
            self.image += 1
        elif media_type == MediaType.AUDIO:
            self.audio += 1
        else:
            self.unknown += 1

        if status == FileStatus.NEW:
            self.new += 1
        elif status == FileStatus.MODIFIED:
            self.modified += 1
        elif status == FileStatus.UNCHANGED:
            self.unchanged += 1

    def merge(self, other: "ScanCounters"):
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))

    def to_progress(self, current_dir: str, elapsed_ms: int) -> ScanProgress:
        return ScanProgress(
            scanned_files=self.files,
            scanned_dirs=self.dirs,
            video_count=self.video,
            image_count=self.image,
            audio_count=self.audio,
            current_dir=current_dir,
            elapsed_ms=elapsed_ms,
        )
