# transferpilot/core/transfer_orchestrator.py

import logging
import os
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Set

from .cancellation import CancellationToken
from .config_manager import TransferConfig
from .conflict_resolver import ConflictResolver
from .directory_handler import DirectoryHandler
from .exceptions import CancellationError, FatalSessionError, TransferIoError, ValidationError
from .interfaces.storage_inter import StorageInterface
from .interfaces.types import (
    FileLeaf, LeafStatus, ManifestEntry, PickedItem, TransferOptions,
    TransferPhase, TransferSummary,
)
from .manifest import ManifestWriter
from .path_expander import PathExpander
from .preflight import PreflightScanner, required_bytes_for
from .progress_tracker import ProgressSink, ProgressTracker
from .transfer_executor import TransferExecutor
from .transfer_logger import TransferLogger, TRANSFER_LOG_FILENAME
from .utils import format_size, utc_timestamp
from .validation import validate_destination_mount

logger = logging.getLogger(__name__)

MAX_AUTO_WORKERS = 4


def resolve_worker_count(configured: int) -> int:
    """Configured pool size, or one derived from the CPU count when 0."""
    if configured and configured > 0:
        return configured
    return max(1, min(MAX_AUTO_WORKERS, os.cpu_count() or 1))


@dataclass
class TransferSession:
    """State of one run from start to a terminal phase."""
    session_id: str
    options: TransferOptions
    token: CancellationToken
    started_at: str
    session_dir: Optional[Path] = None
    session_date: str = ""
    total_files: int = 0
    total_bytes: int = 0
    copied_files: int = 0
    moved_files: int = 0
    skipped_files: int = 0
    error_files: int = 0
    fatal_error: Optional[FatalSessionError] = None
    started_monotonic: float = field(default_factory=time.monotonic)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def count(self, entry: ManifestEntry) -> None:
        with self._lock:
            if entry.status == LeafStatus.COPIED:
                self.copied_files += 1
            elif entry.status == LeafStatus.MOVED:
                self.moved_files += 1
            elif entry.status == LeafStatus.SKIPPED:
                self.skipped_files += 1
            else:
                self.error_files += 1

    def set_fatal(self, error: FatalSessionError) -> None:
        with self._lock:
            if self.fatal_error is None:
                self.fatal_error = error

    def summary(self, phase: TransferPhase) -> TransferSummary:
        with self._lock:
            return TransferSummary(
                started_at=self.started_at,
                finished_at=utc_timestamp(),
                duration_ms=int((time.monotonic() - self.started_monotonic) * 1000),
                total_files=self.total_files,
                total_bytes=self.total_bytes,
                copied_files=self.copied_files,
                moved_files=self.moved_files,
                skipped_files=self.skipped_files,
                error_files=self.error_files,
                output_session_dir=str(self.session_dir) if self.session_dir else "",
                phase=phase,
            )


class TransferOrchestrator:
    """
    Runs one transfer session.

    Phases go scanning -> copying (with verifying snapshots) -> done, or end in
    cancelled / error. Files are handed to a bounded thread pool; each worker
    resolves the destination conflict, copies or moves the file and records the
    outcome in the manifest. Cancellation is honoured before each dispatch;
    files already in flight always finish.
    """

    def __init__(self, config: TransferConfig, storage: StorageInterface,
                 expander: Optional[PathExpander] = None,
                 directory_handler: Optional[DirectoryHandler] = None):
        self.config = config
        self.storage = storage
        self.expander = expander or PathExpander(parallel=config.parallel_scan)
        self.directory_handler = directory_handler or DirectoryHandler(config)
        self.max_workers = resolve_worker_count(config.max_workers)

    def run(self, items: Iterable[PickedItem], options: TransferOptions,
            token: Optional[CancellationToken] = None,
            progress_sink: Optional[ProgressSink] = None) -> TransferSummary:
        """
        Execute a session and return its summary.

        Raises:
            FatalSessionError: When the session ends in phase error; the
                partial summary is attached as .summary
        """
        token = token or CancellationToken()
        now = datetime.now()
        session = TransferSession(
            session_id=now.strftime(self.config.session_timestamp_format),
            options=options,
            token=token,
            started_at=utc_timestamp(),
            session_date=now.strftime(self.config.date_folder_format),
        )
        tracker = ProgressTracker(progress_sink, min_interval=self.config.progress_interval_ms / 1000)
        tracker.begin_scanning(options.dest_mount_point)

        try:
            leaves = self._prepare(session, list(items))
            token.raise_if_cancelled("Transfer cancelled before copying started")
        except FatalSessionError as e:
            raise self._abort(session, tracker, e)
        except CancellationError as e:
            logger.info(str(e))
            tracker.finish(TransferPhase.CANCELLED)
            return session.summary(TransferPhase.CANCELLED)

        try:
            session.session_dir = self.directory_handler.create_session_directory(options, now)
            manifest = ManifestWriter(session.session_dir)
        except FatalSessionError as e:
            raise self._abort(session, tracker, e)
        except TransferIoError as e:
            raise self._abort(session, tracker, FatalSessionError(str(e), reason="session_dir")) from e

        self._write_pointers(session)
        transfer_log = TransferLogger(
            session.session_dir / TRANSFER_LOG_FILENAME if self.config.write_transfer_log else None
        )
        transfer_log.start_transfer(options, session.session_dir, session.total_files, session.total_bytes)

        tracker.start_copying(session.total_files, session.total_bytes)
        try:
            self._dispatch(session, leaves, manifest, transfer_log, tracker)
        finally:
            manifest.close()

        if session.fatal_error is not None:
            phase = TransferPhase.ERROR
        elif token.cancelled:
            phase = TransferPhase.CANCELLED
        else:
            phase = TransferPhase.DONE

        summary = session.summary(phase)
        transfer_log.complete_transfer(summary)
        tracker.finish(phase)
        logger.info(
            f"Transfer {phase.value}: {summary.copied_files} copied, {summary.moved_files} moved, "
            f"{summary.skipped_files} skipped, {summary.error_files} failed of {summary.total_files} "
            f"in {summary.duration_ms} ms"
        )

        if phase == TransferPhase.ERROR:
            error = session.fatal_error
            error.summary = summary
            raise error
        return summary

    def _prepare(self, session: TransferSession, items: List[PickedItem]) -> List[FileLeaf]:
        """Expand the items and check the destination can take them."""
        options = session.options
        try:
            validate_destination_mount(options.dest_mount_point)
        except ValidationError as e:
            raise FatalSessionError(f"Destination unavailable: {e}", reason="destination") from e

        leaves = self.expander.expand(items)
        session.total_files = len(leaves)
        session.total_bytes = sum(leaf.size_bytes for leaf in leaves if not leaf.is_error)

        scanner = PreflightScanner(self.storage, self.expander)
        avail = scanner.query_free_space(options.dest_mount_point)
        required = required_bytes_for(session.total_bytes,
                                      self.config.space_safety_margin_bytes,
                                      self.config.space_safety_margin_ratio)
        if avail < required:
            raise FatalSessionError(
                f"Not enough space on {options.dest_mount_point}: "
                f"need {format_size(required)}, {format_size(avail)} available",
                reason="space",
            )
        return leaves

    def _write_pointers(self, session: TransferSession) -> None:
        root_dir = session.session_dir.parent
        if self.config.write_readme:
            self.directory_handler.write_layout_readme(root_dir)
        if self.config.write_latest_pointer:
            self.directory_handler.update_latest_pointer(root_dir, session.session_dir)

    def _dispatch(self, session: TransferSession, leaves: List[FileLeaf], manifest: ManifestWriter,
                  transfer_log: TransferLogger, tracker: ProgressTracker) -> None:
        resolver = ConflictResolver()
        executor = TransferExecutor(
            session.options.dest_mount_point,
            verify_retries=self.config.verify_retries,
            chunk_size=self.config.chunk_size,
            buffer_size=self.config.buffer_size,
        )
        in_flight: Set[Future] = set()

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="transfer") as pool:
            for leaf in leaves:
                while len(in_flight) >= self.max_workers:
                    done, in_flight = wait(in_flight, return_when=FIRST_COMPLETED)
                    self._collect(session, done)
                if session.token.cancelled:
                    logger.info("Cancellation requested; no further files will be started")
                    break
                if session.fatal_error is not None:
                    break
                in_flight.add(pool.submit(
                    self._process_leaf, session, leaf, resolver, executor, manifest, transfer_log, tracker
                ))
            if in_flight:
                done, _ = wait(in_flight)
                self._collect(session, done)

    @staticmethod
    def _collect(session: TransferSession, done: Iterable[Future]) -> None:
        for future in done:
            try:
                future.result()
            except FatalSessionError as e:
                logger.error(f"Fatal transfer error: {e}")
                session.set_fatal(e)

    def _process_leaf(self, session: TransferSession, leaf: FileLeaf, resolver: ConflictResolver,
                      executor: TransferExecutor, manifest: ManifestWriter,
                      transfer_log: TransferLogger, tracker: ProgressTracker) -> ManifestEntry:
        options = session.options
        leaf_progress = tracker.start_file(leaf)
        started_at = utc_timestamp()
        candidate = None
        fatal = None
        try:
            if leaf.is_error:
                entry = executor.execute(leaf, None, options.copy_mode, options.verify_mode)
            else:
                candidate = self.directory_handler.destination_for(
                    leaf, session.session_dir, options, session.session_date
                )
                resolution = resolver.resolve(candidate, options.conflict_policy)
                if resolution.skip:
                    entry = self._leaf_entry(leaf, candidate, started_at, LeafStatus.SKIPPED,
                                             "destination exists")
                else:
                    entry = executor.execute(leaf, resolution.final_path, options.copy_mode,
                                             options.verify_mode, leaf_progress)
                    if entry.status == LeafStatus.ERROR and not os.path.lexists(resolution.final_path):
                        resolver.release(resolution.final_path)
        except FatalSessionError as e:
            fatal = e
            entry = self._leaf_entry(leaf, candidate, started_at, LeafStatus.ERROR, str(e))
        except TransferIoError as e:
            logger.error(f"Transfer failed for {leaf.source_path}: {e}")
            entry = self._leaf_entry(leaf, candidate, started_at, LeafStatus.ERROR, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error transferring {leaf.source_path}")
            entry = self._leaf_entry(leaf, candidate, started_at, LeafStatus.ERROR, f"unexpected error: {e}")
        finally:
            leaf_progress.complete()

        try:
            manifest.record(entry)
        except TransferIoError as e:
            if fatal is not None:
                logger.warning(f"Could not record {leaf.source_path} in the manifest: {e}")
                raise fatal
            raise FatalSessionError(f"Manifest could not be written: {e}", reason="destination") from e
        session.count(entry)
        transfer_log.log_entry(entry)
        if fatal is not None:
            raise fatal
        return entry

    @staticmethod
    def _leaf_entry(leaf: FileLeaf, dest: Optional[Path], started_at: str, status: LeafStatus,
                    message: Optional[str] = None) -> ManifestEntry:
        return ManifestEntry(
            source_path=leaf.source_path,
            dest_path=str(dest) if dest else "",
            size_bytes=leaf.size_bytes,
            started_at=started_at,
            finished_at=utc_timestamp(),
            status=status,
            error_message=message,
            category=leaf.category,
            extension=leaf.extension,
        )

    def _abort(self, session: TransferSession, tracker: ProgressTracker,
               error: FatalSessionError) -> FatalSessionError:
        """End the session in phase error before any file was dispatched."""
        logger.error(f"Transfer aborted: {error}")
        tracker.finish(TransferPhase.ERROR)
        error.summary = session.summary(TransferPhase.ERROR)
        return error
