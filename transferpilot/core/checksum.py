# transferpilot/core/checksum.py

import hashlib
import logging
import xxhash
from pathlib import Path
from typing import Optional, Callable

from .exceptions import TransferIoError
from .interfaces.types import VerifyMode

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024

class ChecksumCalculator:
    """Creates hash objects and digests files for the digest verify modes"""

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.chunk_size = chunk_size

    @staticmethod
    def create_hash(verify_mode: VerifyMode):
        """
        Create a hash object for the given verify mode.

        Returns:
            hashlib.sha256 or xxhash.xxh64 object, or None for modes without a digest
        """
        if verify_mode == VerifyMode.SHA256:
            return hashlib.sha256()
        if verify_mode == VerifyMode.XXH64:
            return xxhash.xxh64()
        return None

    def calculate_file_checksum(
        self,
        file_path: Path,
        verify_mode: VerifyMode,
        progress_callback: Optional[Callable[[int, int], None]] = None
    ) -> str:
        """
        Hash a file in chunks.

        Args:
            file_path: File to hash
            verify_mode: SHA256 or XXH64
            progress_callback: Called with (bytes_processed, file_size)

        Returns:
            Hex digest

        Raises:
            TransferIoError: If the file cannot be read
        """
        hash_obj = self.create_hash(verify_mode)
        if hash_obj is None:
            raise ValueError(f"Verify mode {verify_mode.value} has no digest")

        bytes_processed = 0
        try:
            file_size = file_path.stat().st_size
            with open(file_path, 'rb') as f:
                while True:
                    chunk = f.read(self.chunk_size)
                    if not chunk:
                        break
                    hash_obj.update(chunk)
                    bytes_processed += len(chunk)
                    if progress_callback:
                        try:
                            progress_callback(bytes_processed, file_size)
                        except Exception as callback_err:
                            logger.warning(f"Progress callback error: {callback_err}")
        except OSError as e:
            raise TransferIoError(f"Failed to read {file_path} for checksum: {e.strerror or e}",
                                  source=str(file_path), errno=e.errno) from e

        checksum = hash_obj.hexdigest()
        logger.debug(f"{verify_mode.value} checksum for {file_path}: {checksum}")
        return checksum

    def verify_checksum(self, file_path: Path, expected_checksum: str, verify_mode: VerifyMode,
                        progress_callback: Optional[Callable[[int, int], None]] = None) -> bool:
        """
        Verify a file's checksum against an expected value.

        Returns:
            bool: True if checksum matches, False otherwise
        """
        if not expected_checksum:
            logger.error("No expected checksum provided")
            return False

        actual = self.calculate_file_checksum(file_path, verify_mode, progress_callback)
        matches = actual.lower() == expected_checksum.lower()
        if matches:
            logger.debug(f"Checksum verification successful: {file_path}")
        else:
            logger.error(f"Checksum verification failed for {file_path}. Expected: {expected_checksum}, Got: {actual}")
        return matches
