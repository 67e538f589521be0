# transferpilot/core/utils.py

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

def ensure_directory(path: Path) -> Path:
    """
    Ensure directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists

    Returns:
        Path: Same path that was passed in

    Raises:
        OSError: If directory cannot be created
    """
    path.mkdir(parents=True, exist_ok=True)
    return path

def format_size(size_bytes: int) -> str:
    """
    Format byte size into human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        str: Formatted size string (e.g., "1.23 MB")
    """
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size_bytes < 1024 or unit == 'TB':
            return f"{size_bytes:.2f} {unit}"
        size_bytes /= 1024

def format_duration(seconds: float) -> str:
    """Format seconds as H:MM:SS (or M:SS under an hour)."""
    seconds = int(max(0, seconds))
    h = seconds // 3600
    m = (seconds % 3600) // 60
    s = seconds % 60
    if h > 0:
        return f"{h}:{m:02}:{s:02}"
    return f"{m}:{s:02}"

def normalize_source_path(path: Union[str, Path]) -> str:
    """
    Normalize a user supplied path to the absolute form used as queue identity.

    The path is expanded (~) and made absolute without resolving symlinks, so a
    symlink and its target stay distinct entries.
    """
    return os.path.normpath(os.path.abspath(os.path.expanduser(str(path))))

def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")

def percent_of(done: int, total: int) -> float:
    """Percentage rounded to two decimals, clamped to 0..100. An empty total reports 0."""
    if total <= 0:
        return 0.0
    return round(min(done, total) * 100.0 / total, 2)
