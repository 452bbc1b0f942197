"""
Progress events for long-running scans.

The traversal publishes sequence-numbered messages into a bounded
ProgressChannel; a consumer thread (JSON lines on stderr, or a tqdm bar for
interactive use) drains it. Progress messages are throttled, start/error/done
messages never are.
"""
import json
import logging
import queue
import sys
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional

from tqdm import tqdm

from . import config
from .config import ScanConfig
from .exceptions import ScanError
from .models import ScanProgress, ScanResult


class ScanPhase(Enum):
    SCAN = "scan"


# --- Wire messages ---
# Key names and order are a contract with existing consumers.

@dataclass(frozen=True)
class StartMessage:
    seq: int
    ts: int
    roots: List[str]
    recursive: bool
    max_depth: int
    compute_hash: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            '_t': 'start',
            'seq': self.seq,
            'ts': self.ts,
            'roots': list(self.roots),
            'recursive': self.recursive,
            'max_depth': self.max_depth,
            'compute_hash': self.compute_hash,
        }

    def to_json(self) -> str:
        return _dumps(self.to_dict())


@dataclass(frozen=True)
class ProgressMessage:
    seq: int
    ts: int
    phase: ScanPhase
    files: int
    dirs: int
    video_count: int
    image_count: int
    audio_count: int
    dir: str
    ms: int
    eta_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            '_t': 'p',
            'seq': self.seq,
            'ts': self.ts,
            'phase': self.phase.value,
            'f': self.files,
            'd': self.dirs,
            'v': self.video_count,
            'i': self.image_count,
            'a': self.audio_count,
            'dir': self.dir,
            'ms': self.ms,
        }
        if self.eta_ms is not None:
            data['eta_ms'] = self.eta_ms
        return data

    def to_json(self) -> str:
        return _dumps(self.to_dict())


@dataclass(frozen=True)
class ErrorProgressMessage:
    seq: int
    ts: int
    error_type: str
    message: str
    path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            '_t': 'err',
            'seq': self.seq,
            'ts': self.ts,
            'error_type': self.error_type,
            'message': self.message,
        }
        if self.path is not None:
            data['path'] = self.path
        return data

    def to_json(self) -> str:
        return _dumps(self.to_dict())


@dataclass(frozen=True)
class DoneMessage:
    seq: int
    ts: int
    total_files: int
    total_dirs: int
    new_files: int
    modified_files: int
    deleted_files: int
    error_count: int
    ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            '_t': 'done',
            'seq': self.seq,
            'ts': self.ts,
            'tf': self.total_files,
            'td': self.total_dirs,
            'nf': self.new_files,
            'mf': self.modified_files,
            'df': self.deleted_files,
            'ec': self.error_count,
            'ms': self.ms,
        }

    def to_json(self) -> str:
        return _dumps(self.to_dict())


def _dumps(data: Dict[str, Any]) -> str:
    return json.dumps(data, separators=(',', ':'), ensure_ascii=False)


# --- Channel ---

class ProgressChannel:
    """
    Bounded queue between the scan and whoever renders its progress.

    Progress messages are dropped when the queue is full. Start, error and
    done messages wait up to `put_timeout` seconds for room and are dropped
    after that, so a scan never stalls on a consumer that stopped reading.
    """
    _CLOSED = object()

    def __init__(self, maxsize: int = 1024, put_timeout: float = 1.0):
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self.put_timeout = put_timeout
        self.dropped = 0

    def publish(self, message) -> bool:
        try:
            if isinstance(message, ProgressMessage):
                self._queue.put_nowait(message)
            else:
                self._queue.put(message, timeout=self.put_timeout)
        except queue.Full:
            self.dropped += 1
            logging.debug(f"Progress channel full, dropped {type(message).__name__}")
            return False
        return True

    def close(self):
        try:
            self._queue.put(self._CLOSED, timeout=self.put_timeout)
        except queue.Full:
            logging.warning("Progress channel full, consumer was not signalled to stop")

    def __iter__(self) -> Iterator[Any]:
        while True:
            item = self._queue.get()
            if item is self._CLOSED:
                return
            yield item

    def drain(self) -> List[Any]:
        """Returns everything queued so far without blocking."""
        items = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return items
            if item is not self._CLOSED:
                items.append(item)


# --- Reporter ---

class ProgressReporter:
    """
    Emits scan events into a ProgressChannel.

    Sequence numbers and timestamps are local to one reporter (one scan) and
    only advance for messages actually emitted.
    """

    def __init__(self,
                 enabled: bool = True,
                 interval_ms: int = config.DEFAULT_PROGRESS_INTERVAL_MS,
                 channel: Optional[ProgressChannel] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.enabled = enabled
        self.interval_ms = interval_ms
        self.channel = channel if channel is not None else ProgressChannel()
        self._clock = clock
        self._start_time = clock()
        # Read without a lock; an occasional extra or skipped progress event is fine.
        self._last_report = self._start_time
        self._seq = 0
        self._seq_lock = threading.Lock()

    @classmethod
    def disabled(cls) -> "ProgressReporter":
        return cls(enabled=False)

    def is_enabled(self) -> bool:
        return self.enabled

    def should_report(self) -> bool:
        if not self.enabled:
            return False
        elapsed_ms = (self._clock() - self._last_report) * 1000
        return elapsed_ms >= self.interval_ms

    def next_seq(self) -> int:
        with self._seq_lock:
            seq = self._seq
            self._seq += 1
            return seq

    def current_timestamp(self) -> int:
        """Milliseconds since this reporter was created."""
        return int((self._clock() - self._start_time) * 1000)

    def report_start(self, scan_config: ScanConfig):
        if not self.enabled:
            return
        self.channel.publish(StartMessage(
            seq=self.next_seq(),
            ts=self.current_timestamp(),
            roots=[str(r) for r in scan_config.roots],
            recursive=scan_config.recursive,
            max_depth=scan_config.max_depth,
            compute_hash=scan_config.compute_hash,
        ))

    def report_progress(self,
                        progress: ScanProgress,
                        eta_ms: Optional[int] = None,
                        phase: ScanPhase = ScanPhase.SCAN) -> bool:
        """Returns True if a message was actually emitted (respects the interval)."""
        if not self.should_report():
            return False

        self._last_report = self._clock()
        self.channel.publish(ProgressMessage(
            seq=self.next_seq(),
            ts=self.current_timestamp(),
            phase=phase,
            files=progress.scanned_files,
            dirs=progress.scanned_dirs,
            video_count=progress.video_count,
            image_count=progress.image_count,
            audio_count=progress.audio_count,
            dir=progress.current_dir,
            ms=progress.elapsed_ms,
            eta_ms=eta_ms,
        ))
        return True

    def report_error(self, error: ScanError):
        if not self.enabled:
            return
        self.channel.publish(ErrorProgressMessage(
            seq=self.next_seq(),
            ts=self.current_timestamp(),
            error_type=error.kind.value,
            message=error.message,
            path=str(error.path) if error.path is not None else None,
        ))

    def report_done(self, result: ScanResult):
        if not self.enabled:
            return
        self.channel.publish(DoneMessage(
            seq=self.next_seq(),
            ts=self.current_timestamp(),
            total_files=result.total_files,
            total_dirs=result.total_dirs,
            new_files=result.new_files,
            modified_files=result.modified_files,
            deleted_files=result.deleted_files,
            error_count=result.error_count,
            ms=result.duration_ms,
        ))


# --- Consumers ---

class JsonLinesPrinter(threading.Thread):
    """Writes every message as one JSON line (stderr by default)."""

    def __init__(self, channel: ProgressChannel, stream=None):
        super().__init__(name="progress-jsonl", daemon=True)
        self.channel = channel
        self.stream = stream

    def run(self):
        stream = self.stream or sys.stderr
        for message in self.channel:
            stream.write(message.to_json() + "\n")
            stream.flush()


class ConsoleProgress(threading.Thread):
    """Renders the channel as a tqdm counter for interactive terminals."""

    def __init__(self, channel: ProgressChannel, stream=None):
        super().__init__(name="progress-console", daemon=True)
        self.channel = channel
        self.stream = stream

    def run(self):
        stream = self.stream or sys.stderr
        bar = tqdm(desc="Scanning", unit="file", file=stream, dynamic_ncols=True)
        try:
            for message in self.channel:
                if isinstance(message, ProgressMessage):
                    bar.n = message.files
                    bar.set_postfix(dirs=message.dirs, video=message.video_count,
                                    image=message.image_count, audio=message.audio_count)
                elif isinstance(message, ErrorProgressMessage):
                    bar.write(f"[{message.error_type}] {message.message}", file=stream)
                elif isinstance(message, DoneMessage):
                    bar.n = message.total_files
                    bar.set_postfix(new=message.new_files, modified=message.modified_files,
                                    deleted=message.deleted_files)
        finally:
            bar.close()
