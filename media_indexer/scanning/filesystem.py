import logging
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Set

from ..config import ScanConfig
from ..exceptions import ScanError, ScanErrorKind
from ..models import FileRecord, FileStatus, MediaType, ScannedFile, ScanResult, normalize_path
from ..progress import ProgressReporter
from .classifier import ChangeClassifier
from .counters import ScanCounters
from .hasher import FileHasher
from .walker import DirectoryWalker, WalkEntry, file_extension

# Batches allowed in flight per worker before the walker waits
IN_FLIGHT_PER_WORKER = 4


@dataclass
class BatchOutcome:
    """What one worker hands back for one directory batch."""
    files: List[ScannedFile] = field(default_factory=list)
    observed: List[str] = field(default_factory=list)
    counters: ScanCounters = field(default_factory=ScanCounters)
    errors: List[ScanError] = field(default_factory=list)


@dataclass
class _ScanState:
    # Owned by the coordinating thread only
    counters: ScanCounters
    classifier: ChangeClassifier
    started: float
    files: List[ScannedFile] = field(default_factory=list)
    observed: Set[str] = field(default_factory=set)
    errors: List[ScanError] = field(default_factory=list)
    pending: Dict[Future, Path] = field(default_factory=dict)
    current_dir: str = ""

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)


class DiskScanner:
    def __init__(self, config: ScanConfig, reporter: Optional[ProgressReporter] = None):
        self.config = config
        self.reporter = reporter if reporter is not None else ProgressReporter.disabled()
        self.walker = DirectoryWalker(config)
        self.hasher = FileHasher(config.large_file_threshold)

    def scan(self,
             snapshot: Optional[Mapping[str, FileRecord]] = None,
             counters: Optional[ScanCounters] = None) -> ScanResult:
        """
        Walks every configured root and classifies what it finds.

        Args:
            snapshot: Index contents from the previous scan. None means a full
                      scan where every file is new.
            counters: Accumulator to fill; a fresh one is used when omitted.

        The `done` event is not emitted here; callers send it once the result
        has been persisted.
        """
        state = _ScanState(
            counters=counters if counters is not None else ScanCounters(),
            classifier=ChangeClassifier(snapshot),
            started=time.monotonic(),
        )
        self.reporter.report_start(self.config)

        workers = self.config.effective_threads()
        mode = "incremental" if state.classifier.is_incremental else "full"
        logging.info(f"Starting {mode} scan of {len(self.config.roots)} root(s) with {workers} worker(s)")

        if workers <= 1:
            # Sequential mode: batches run inline on this thread
            self._walk_roots(state, None, workers)
        else:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scan") as executor:
                self._walk_roots(state, executor, workers)
                self._collect(state, return_when_all=True)

        deleted = state.classifier.deleted_paths(state.observed)
        state.files.sort(key=lambda f: f.key)
        c = state.counters

        result = ScanResult(
            total_files=c.files,
            total_dirs=c.dirs,
            new_files=c.new,
            modified_files=c.modified,
            unchanged_files=c.unchanged,
            deleted_files=len(deleted),
            files=tuple(state.files),
            deleted_paths=tuple(deleted),
            errors=tuple(state.errors),
            duration_ms=state.elapsed_ms(),
        )
        logging.info(
            f"Scan finished: {result.total_files} files in {result.total_dirs} dirs "
            f"(new={result.new_files}, modified={result.modified_files}, "
            f"unchanged={result.unchanged_files}, deleted={result.deleted_files}, "
            f"errors={result.error_count}) in {result.duration_ms} ms"
        )
        return result

    # --- Coordinator ---

    def _walk_roots(self, state: _ScanState, executor: Optional[ThreadPoolExecutor], workers: int):
        max_in_flight = workers * IN_FLIGHT_PER_WORKER
        batch_size = max(1, self.config.batch_size)

        for root in self.config.roots:
            state.current_dir = str(root)
            batch: List[WalkEntry] = []
            batch_dir: Optional[Path] = None

            for item in self.walker.walk(root):
                if isinstance(item, ScanError):
                    self._record_error(state, item)
                    continue

                if item.is_dir:
                    state.counters.record_dir()
                    state.current_dir = str(item.path)
                    self._emit_progress(state)
                    continue

                # Files of one directory arrive contiguously
                parent = item.path.parent
                if batch and (parent != batch_dir or len(batch) >= batch_size):
                    self._dispatch(state, executor, batch, max_in_flight)
                    batch = []
                batch_dir = parent
                batch.append(item)

            if batch:
                self._dispatch(state, executor, batch, max_in_flight)

    def _dispatch(self,
                  state: _ScanState,
                  executor: Optional[ThreadPoolExecutor],
                  batch: List[WalkEntry],
                  max_in_flight: int):
        if executor is None:
            self._merge(state, self._process_batch(batch, state.classifier))
            return

        future = executor.submit(self._process_batch, batch, state.classifier)
        state.pending[future] = batch[0].path.parent
        if len(state.pending) >= max_in_flight:
            self._collect(state, return_when_all=False)

    def _collect(self, state: _ScanState, return_when_all: bool):
        """Merges finished batches; waits for all of them or at least one."""
        while state.pending:
            done, _ = wait(state.pending, return_when=FIRST_COMPLETED)
            for future in done:
                directory = state.pending.pop(future)
                try:
                    outcome = future.result()
                except Exception as e:
                    logging.error(f"Failed to process directory {directory}: {e}")
                    self._record_error(state, ScanError(ScanErrorKind.UNKNOWN, directory, str(e)))
                    continue
                self._merge(state, outcome)
            if not return_when_all:
                return

    def _merge(self, state: _ScanState, outcome: BatchOutcome):
        state.counters.merge(outcome.counters)
        state.observed.update(outcome.observed)
        state.files.extend(outcome.files)
        for error in outcome.errors:
            self._record_error(state, error)
        self._emit_progress(state)

    def _record_error(self, state: _ScanState, error: ScanError):
        logging.warning(f"Scan error: {error}")
        state.errors.append(error)
        self.reporter.report_error(error)

    def _emit_progress(self, state: _ScanState):
        if not self.reporter.should_report():
            return
        progress = state.counters.to_progress(state.current_dir, state.elapsed_ms())
        eta_ms = progress.estimated_remaining_ms(state.classifier.expected_total)
        self.reporter.report_progress(progress, eta_ms=eta_ms)

    # --- Workers ---

    def _process_batch(self, batch: List[WalkEntry], classifier: ChangeClassifier) -> BatchOutcome:
        """Processes all files of one directory sequentially (HDD-friendly)."""
        outcome = BatchOutcome()
        for entry in batch:
            scanned = self._process_single_file(entry, classifier, outcome)
            if scanned is not None:
                outcome.files.append(scanned)
        return outcome

    def _process_single_file(self,
                             entry: WalkEntry,
                             classifier: ChangeClassifier,
                             outcome: BatchOutcome) -> Optional[ScannedFile]:
        """Classifies one file; returns it unless it is unchanged."""
        path = entry.path
        if entry.stat is None:
            try:
                st = path.stat()
            except OSError as e:
                outcome.errors.append(ScanError.from_os_error(e, path))
                return None
        else:
            st = entry.stat

        key = normalize_path(path)
        size = st.st_size
        mtime = int(st.st_mtime)
        ext = file_extension(path.name)

        status = classifier.classify(key, size, mtime)
        outcome.observed.append(key)
        outcome.counters.record_file(MediaType.from_extension(ext), status)
        if status == FileStatus.UNCHANGED:
            return None

        scanned = ScannedFile(
            path=path,
            name=path.name,
            size=size,
            mtime=mtime,
            ctime=int(getattr(st, 'st_birthtime', st.st_mtime)),
            extension=ext,
            status=status,
        )

        if self.config.compute_hash:
            hash_res = self.hasher.compute_hash(path)
            # Unreadable content keeps the file, tracked by size/mtime only
            if hash_res is not None:
                scanned.hash = hash_res.value
                scanned.is_partial_hash = hash_res.is_partial

        return scanned
