# transferpilot/core/file_operations.py

import logging
import os
import shutil
import threading
from pathlib import Path
from typing import Callable, Optional

from .exceptions import TransferIoError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1MB chunks
BUFFER_SIZE = 1024 * 1024
TEMP_FILE_EXTENSION = ".tppart"  # Temporary file extension during transfer

SOURCE_SIDE = "source"
DESTINATION_SIDE = "destination"


def temp_path_for(dst_path: Path) -> Path:
    """Sibling temp name unique per process and thread."""
    return dst_path.with_name(
        f".{dst_path.name}.{os.getpid()}-{threading.get_ident()}{TEMP_FILE_EXTENSION}"
    )


def remove_partial(path: Path) -> bool:
    """
    Remove a partially written or rejected destination file.

    Returns:
        bool: True if a file was removed
    """
    try:
        os.unlink(path)
        logger.debug(f"Removed partial file {path}")
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Could not remove partial file {path}: {e}")
        return False


def copy_file_streamed(
    src_path: Path,
    dst_path: Path,
    hash_obj=None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    chunk_size: int = CHUNK_SIZE,
    buffer_size: int = BUFFER_SIZE,
) -> int:
    """
    Copy a file through a temporary sibling, then move it into place.

    The data is flushed and fsynced before the rename, so dst_path either holds
    the complete copy or does not exist. An existing dst_path is replaced.

    Args:
        src_path: Source file path
        dst_path: Final destination path
        hash_obj: Optional hash object updated with every chunk read
        progress_callback: Called with (bytes_copied, file_size) after each chunk
        chunk_size: Read size
        buffer_size: Buffer size of the destination file object

    Returns:
        int: Number of bytes written

    Raises:
        TransferIoError: If the copy fails; the temporary file is removed
    """
    temp_dst_path = temp_path_for(dst_path)
    bytes_copied = 0
    side = DESTINATION_SIDE
    try:
        dst_path.parent.mkdir(parents=True, exist_ok=True)
        side = SOURCE_SIDE
        file_size = os.stat(src_path).st_size

        with open(src_path, 'rb') as src:
            side = DESTINATION_SIDE
            with open(temp_dst_path, 'wb', buffering=buffer_size) as dst:
                while True:
                    side = SOURCE_SIDE
                    chunk = src.read(chunk_size)
                    if not chunk:
                        break
                    side = DESTINATION_SIDE
                    dst.write(chunk)
                    if hash_obj is not None:
                        hash_obj.update(chunk)
                    bytes_copied += len(chunk)
                    if progress_callback:
                        progress_callback(bytes_copied, file_size)
                side = DESTINATION_SIDE
                dst.flush()
                os.fsync(dst.fileno())

        try:
            shutil.copystat(src_path, temp_dst_path)
        except OSError as e:
            logger.debug(f"Could not copy timestamps to {dst_path}: {e}")

        os.replace(temp_dst_path, dst_path)
        return bytes_copied

    except OSError as e:
        remove_partial(temp_dst_path)
        raise TransferIoError(
            f"Copy failed {src_path} -> {dst_path}: {e.strerror or e}",
            source=str(src_path), destination=str(dst_path), errno=e.errno, side=side
        ) from e
    except BaseException:
        remove_partial(temp_dst_path)
        raise


def delete_source(path: Path) -> None:
    """
    Delete a source file after a verified move.

    Raises:
        TransferIoError: If the file cannot be removed
    """
    try:
        os.unlink(path)
    except OSError as e:
        raise TransferIoError(f"Move cleanup failed: {e.strerror or e}",
                              source=str(path), errno=e.errno, side=SOURCE_SIDE) from e


def cleanup_temp_files(directory: Path) -> int:
    """
    Remove leftover temporary transfer files below a directory.

    Returns:
        int: Number of files removed
    """
    removed = 0
    for temp_file in Path(directory).rglob(f"*{TEMP_FILE_EXTENSION}"):
        if temp_file.is_file() and remove_partial(temp_file):
            removed += 1
    if removed:
        logger.info(f"Cleaned up {removed} temporary files in {directory}")
    return removed
