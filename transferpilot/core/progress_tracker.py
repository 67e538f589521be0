# transferpilot/core/progress_tracker.py

import logging
import threading
import time
from typing import Callable, Optional

from .interfaces.types import FileLeaf, TransferPhase, TransferProgress
from .utils import percent_of

logger = logging.getLogger(__name__)

ProgressSink = Callable[[TransferProgress], None]

DEFAULT_INTERVAL = 0.12


class ProgressTracker:
    """
    Thread-safe session counters pushed to a progress sink.

    Workers report bytes through per-file LeafProgress objects. Snapshots are
    throttled to one per min_interval seconds; phase changes are always
    emitted. Emission happens under the lock so the sink observes
    non-decreasing bytes_done and current_file values.
    """

    def __init__(self, sink: Optional[ProgressSink] = None, min_interval: float = DEFAULT_INTERVAL,
                 clock: Callable[[], float] = time.monotonic):
        self.sink = sink
        self.min_interval = min_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._last_emit: Optional[float] = None

        self.phase = TransferPhase.SCANNING
        self.current_file = 0
        self.total_files = 0
        self.current_path = ""
        self.bytes_done = 0
        self.bytes_total = 0

    def begin_scanning(self, current_path: str = "") -> None:
        with self._lock:
            self.phase = TransferPhase.SCANNING
            self.current_path = current_path
            self._emit(force=True)

    def start_copying(self, total_files: int, bytes_total: int, current_path: str = "") -> None:
        """Publish the session totals; every file must be known by now."""
        with self._lock:
            self.phase = TransferPhase.COPYING
            self.total_files = total_files
            self.bytes_total = bytes_total
            self.current_path = current_path
            self._emit(force=True)

    def start_file(self, leaf: FileLeaf) -> "LeafProgress":
        with self._lock:
            self.current_file += 1
            self.current_path = leaf.source_path
            self._emit()
        return LeafProgress(self, leaf)

    def add_bytes(self, count: int, current_path: Optional[str] = None,
                  phase: Optional[TransferPhase] = None) -> None:
        with self._lock:
            if count > 0:
                self.bytes_done += count
            if current_path is not None:
                self.current_path = current_path
            self._emit(phase=phase)

    def finish(self, phase: TransferPhase) -> TransferProgress:
        """Emit the terminal snapshot and return it."""
        with self._lock:
            self.phase = phase
            snapshot = self._emit(force=True)
        return snapshot

    def snapshot(self, phase: Optional[TransferPhase] = None) -> TransferProgress:
        phase = phase or self.phase
        percent = 100.0 if phase == TransferPhase.DONE else percent_of(self.bytes_done, self.bytes_total)
        return TransferProgress(
            phase=phase,
            current_file=self.current_file,
            total_files=self.total_files,
            current_path=self.current_path,
            bytes_done=self.bytes_done,
            bytes_total=self.bytes_total,
            percent=percent,
        )

    def _emit(self, force: bool = False, phase: Optional[TransferPhase] = None) -> TransferProgress:
        # caller holds self._lock
        snapshot = self.snapshot(phase)
        now = self._clock()
        if not force and self._last_emit is not None and now - self._last_emit < self.min_interval:
            return snapshot
        self._last_emit = now
        if self.sink is not None:
            try:
                self.sink(snapshot)
            except Exception as e:
                logger.warning(f"Failed to update progress display: {e}")
        return snapshot


class LeafProgress:
    """
    Byte accounting for one file.

    Keeps a high-water mark so a retried copy never counts bytes twice, and
    caps the contribution at the size measured during expansion.
    """

    def __init__(self, tracker: ProgressTracker, leaf: FileLeaf):
        self.tracker = tracker
        self.leaf = leaf
        self.reported = 0

    def __call__(self, phase: TransferPhase, done: int, total: int) -> None:
        if phase == TransferPhase.VERIFYING:
            self.tracker.add_bytes(0, self.leaf.source_path, phase=TransferPhase.VERIFYING)
            return
        done = min(done, self.leaf.size_bytes)
        delta = done - self.reported
        if delta > 0:
            self.reported = done
        self.tracker.add_bytes(delta, self.leaf.source_path)

    def complete(self) -> None:
        """Count whatever part of the file was not reported (skipped, failed, shrunk)."""
        remaining = self.leaf.size_bytes - self.reported
        self.reported = self.leaf.size_bytes
        self.tracker.add_bytes(remaining, self.leaf.source_path)
