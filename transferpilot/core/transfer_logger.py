# transferpilot/core/transfer_logger.py

import getpass
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from .interfaces.types import LeafStatus, ManifestEntry, TransferOptions, TransferSummary
from .utils import format_size, format_duration

logger = logging.getLogger(__name__)

TRANSFER_LOG_FILENAME = "transfer_log.txt"

class TransferLogger:
    """Human-readable log of one session, written next to the manifest."""

    def __init__(self, log_file: Optional[Path] = None):
        """
        Args:
            log_file: Path to the log file; None disables the log
        """
        self.log_file = log_file
        self.start_time = None
        self.is_open = False
        self._file_handle = None
        self._lock = threading.Lock()
        self._failures = []

    def start_transfer(self, options: TransferOptions, session_dir: Path,
                       total_files: int, total_size: int) -> datetime:
        """
        Write the session header.

        Returns:
            Transfer start time
        """
        self.start_time = datetime.now()
        if not self._open_log_file():
            return self.start_time

        self._write_line(f"Transfer started at {self.start_time.isoformat()}")
        self._write_line(f"Destination: {session_dir}")
        self._write_line(f"Mode: {options.copy_mode.value}")
        self._write_line(f"Conflict policy: {options.conflict_policy.value}")
        self._write_line(f"Verify: {options.verify_mode.value}")
        self._write_line(f"Files to transfer: {total_files}")
        self._write_line(f"Total size: {format_size(total_size)}")
        self._write_line("")
        return self.start_time

    def log_entry(self, entry: ManifestEntry) -> None:
        """Record one processed file."""
        if not self.is_open:
            return
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        if entry.status == LeafStatus.ERROR:
            lines = [f"[{timestamp}] Failed: {entry.source_path}",
                     f"    dest: {entry.dest_path or '-'}",
                     f"    error: {entry.error_message}"]
            with self._lock:
                self._failures.append(f"{entry.source_path}: {entry.error_message}")
        else:
            lines = [f"[{timestamp}] {entry.status.value.capitalize()}: {entry.source_path} -> {entry.dest_path}",
                     f"    size: {format_size(entry.size_bytes)}"]
            if entry.checksum:
                lines.append(f"    checksum: {entry.checksum}")
        self._write_line("\n".join(lines))

    def complete_transfer(self, summary: TransferSummary) -> None:
        """Write the summary block and close the file."""
        if not self.is_open:
            return
        try:
            end_time = datetime.now()
            self._write_line("")
            self._write_line(f"Transfer finished at {end_time.isoformat()} ({summary.phase.value})")
            self._write_line(f"Duration: {format_duration(summary.duration_ms / 1000)}")
            self._write_line(f"Files processed: {summary.processed_files}/{summary.total_files}")
            self._write_line(f"Copied: {summary.copied_files}")
            self._write_line(f"Moved: {summary.moved_files}")
            self._write_line(f"Skipped: {summary.skipped_files}")
            self._write_line(f"Failed: {summary.error_files}")
            self._write_line(f"Total size: {format_size(summary.total_bytes)}")
            if self._failures:
                self._write_line("Failures:")
                for i, failure in enumerate(self._failures[:10]):
                    self._write_line(f"  {i+1}. {failure}")
                if len(self._failures) > 10:
                    self._write_line(f"  ... and {len(self._failures) - 10} more")
            self._write_line(f"User: {self._current_user()}")
        finally:
            self._close_log_file()

    @staticmethod
    def _current_user() -> str:
        try:
            return getpass.getuser()
        except (KeyError, OSError):
            return "unknown"

    def _open_log_file(self) -> bool:
        """Open log file for writing."""
        if not self.log_file or self.is_open:
            return self.is_open
        try:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            self._file_handle = open(self.log_file, 'a', encoding='utf-8')
            self.is_open = True
            return True
        except OSError as e:
            logger.error(f"Failed to open transfer log {self.log_file}: {e}")
            return False

    def _close_log_file(self) -> None:
        with self._lock:
            if self._file_handle and self.is_open:
                try:
                    self._file_handle.close()
                except OSError as e:
                    logger.warning(f"Error closing log file: {e}")
                finally:
                    self._file_handle = None
                    self.is_open = False

    def _write_line(self, line: str) -> None:
        with self._lock:
            if not self._file_handle or not self.is_open:
                return
            try:
                self._file_handle.write(f"{line}\n")
                self._file_handle.flush()
            except OSError as e:
                logger.warning(f"Failed to write to transfer log: {e}")
