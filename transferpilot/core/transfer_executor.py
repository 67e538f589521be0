# transferpilot/core/transfer_executor.py

import errno
import logging
import os
from pathlib import Path
from typing import Callable, Optional

from .checksum import ChecksumCalculator
from .exceptions import FatalSessionError, TransferIoError, VerifyMismatchError
from .file_operations import (
    copy_file_streamed, delete_source, remove_partial, CHUNK_SIZE, BUFFER_SIZE,
    DESTINATION_SIDE, SOURCE_SIDE
)
from .interfaces.types import CopyMode, FileLeaf, LeafStatus, ManifestEntry, TransferPhase, VerifyMode
from .utils import utc_timestamp

logger = logging.getLogger(__name__)

# errno values meaning the destination device itself went away
DESTINATION_GONE_ERRNOS = frozenset(
    code for code in (
        getattr(errno, "ENODEV", None),
        getattr(errno, "ENXIO", None),
        getattr(errno, "ESTALE", None),
        getattr(errno, "ENOMEDIUM", None),
    ) if code is not None
)

# (phase, bytes_done_for_this_file, file_size)
LeafProgressCallback = Callable[[TransferPhase, int, int], None]


class TransferExecutor:
    """
    Copies or moves one file to its resolved destination and verifies it.

    Per-file failures are returned as ManifestEntry(status=error). Only failures
    showing that the destination itself is gone raise FatalSessionError.
    """

    def __init__(self, dest_mount_point, verify_retries: int = 0,
                 chunk_size: int = CHUNK_SIZE, buffer_size: int = BUFFER_SIZE):
        self.dest_mount_point = Path(dest_mount_point)
        self.verify_retries = max(0, verify_retries)
        self.chunk_size = chunk_size
        self.buffer_size = buffer_size
        self.checksum = ChecksumCalculator(chunk_size=chunk_size)

    @staticmethod
    def effective_verify_mode(mode: CopyMode, verify_mode: VerifyMode) -> VerifyMode:
        """A move never deletes its source on an unchecked copy."""
        if mode == CopyMode.MOVE and verify_mode == VerifyMode.NONE:
            return VerifyMode.SIZE
        return verify_mode

    def execute(self, leaf: FileLeaf, final_dest_path, mode: CopyMode, verify_mode: VerifyMode,
                progress_callback: Optional[LeafProgressCallback] = None) -> ManifestEntry:
        """
        Transfer one file and describe the outcome.

        final_dest_path may be None for an unreadable leaf, which is recorded
        as an error without touching the destination.

        Raises:
            FatalSessionError: If the destination volume is gone
        """
        final_dest_path = Path(final_dest_path) if final_dest_path else None
        verify_mode = self.effective_verify_mode(mode, verify_mode)
        started_at = utc_timestamp()
        source = Path(leaf.source_path)

        def entry(status: LeafStatus, size: int, error_message: Optional[str] = None,
                  checksum: Optional[str] = None) -> ManifestEntry:
            return ManifestEntry(
                source_path=leaf.source_path,
                dest_path=str(final_dest_path) if final_dest_path else "",
                size_bytes=size,
                started_at=started_at,
                finished_at=utc_timestamp(),
                status=status,
                error_message=error_message,
                checksum=checksum,
                category=leaf.category,
                extension=leaf.extension,
            )

        if leaf.is_error:
            return entry(LeafStatus.ERROR, 0, leaf.error)

        attempts = self.verify_retries + 1
        checksum = None
        size = leaf.size_bytes
        for attempt in range(1, attempts + 1):
            try:
                size, checksum = self._copy_and_verify(source, final_dest_path, verify_mode, progress_callback)
                break
            except VerifyMismatchError as e:
                remove_partial(final_dest_path)
                if attempt < attempts:
                    logger.warning(f"{e}; retrying ({attempt}/{self.verify_retries})")
                    continue
                logger.error(f"Verification failed for {source}: {e}")
                return entry(LeafStatus.ERROR, leaf.size_bytes, f"verify mismatch: {e}")
            except TransferIoError as e:
                self._raise_if_destination_gone(e)
                logger.error(f"Transfer failed for {source}: {e}")
                return entry(LeafStatus.ERROR, leaf.size_bytes, self._describe_failure(source, e))

        if mode == CopyMode.MOVE:
            try:
                delete_source(source)
            except TransferIoError as e:
                logger.error(f"Copied {source} but could not delete it: {e}")
                return entry(LeafStatus.ERROR, size, str(e), checksum)
            logger.debug(f"Moved {source} -> {final_dest_path}")
            return entry(LeafStatus.MOVED, size, checksum=checksum)

        logger.debug(f"Copied {source} -> {final_dest_path}")
        return entry(LeafStatus.COPIED, size, checksum=checksum)

    def _copy_and_verify(self, source: Path, dest: Path, verify_mode: VerifyMode,
                         progress_callback: Optional[LeafProgressCallback]):
        hash_obj = ChecksumCalculator.create_hash(verify_mode)

        def on_copy(done: int, total: int):
            if progress_callback:
                progress_callback(TransferPhase.COPYING, done, total)

        bytes_copied = copy_file_streamed(
            source, dest,
            hash_obj=hash_obj,
            progress_callback=on_copy,
            chunk_size=self.chunk_size,
            buffer_size=self.buffer_size,
        )
        source_checksum = hash_obj.hexdigest() if hash_obj is not None else None

        if verify_mode == VerifyMode.NONE:
            return bytes_copied, None

        if progress_callback:
            progress_callback(TransferPhase.VERIFYING, 0, bytes_copied)

        try:
            self._verify(source, dest, verify_mode, bytes_copied, source_checksum, progress_callback)
        except TransferIoError as e:
            if not isinstance(e, VerifyMismatchError):
                # an unverifiable copy is not kept
                remove_partial(dest)
            raise
        return bytes_copied, source_checksum

    def _verify(self, source: Path, dest: Path, verify_mode: VerifyMode, bytes_copied: int,
                source_checksum: Optional[str], progress_callback: Optional[LeafProgressCallback]) -> None:
        dest_size = self._destination_size(dest)
        if dest_size != bytes_copied:
            raise VerifyMismatchError(
                f"size mismatch for {dest}: expected {bytes_copied} bytes, found {dest_size}",
                source=str(source), destination=str(dest), expected=bytes_copied, actual=dest_size
            )

        if verify_mode.uses_digest:
            def on_verify(done: int, total: int):
                if progress_callback:
                    progress_callback(TransferPhase.VERIFYING, done, total)

            dest_checksum = self.checksum.calculate_file_checksum(dest, verify_mode, on_verify)
            if dest_checksum != source_checksum:
                raise VerifyMismatchError(
                    f"{verify_mode.value} mismatch for {dest}: expected {source_checksum}, got {dest_checksum}",
                    source=str(source), destination=str(dest),
                    expected=source_checksum, actual=dest_checksum
                )

    def _destination_size(self, dest: Path) -> int:
        try:
            return os.stat(dest).st_size
        except OSError as e:
            raise TransferIoError(f"Cannot stat copied file {dest}: {e.strerror or e}",
                                  destination=str(dest), errno=e.errno, side=DESTINATION_SIDE) from e

    def _raise_if_destination_gone(self, error: TransferIoError) -> None:
        # A vanished device on the source side only fails the one leaf
        device_gone = error.errno in DESTINATION_GONE_ERRNOS and error.side != SOURCE_SIDE
        if device_gone or not self.dest_mount_point.is_dir():
            raise FatalSessionError(
                f"Destination {self.dest_mount_point} is no longer available: {error}",
                reason="destination"
            ) from error

    @staticmethod
    def _describe_failure(source: Path, error: TransferIoError) -> str:
        if error.errno == errno.ENOENT and not os.path.lexists(source):
            return f"Source not found: {source}"
        return str(error)
