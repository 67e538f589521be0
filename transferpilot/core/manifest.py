# transferpilot/core/manifest.py

import json
import logging
import os
import threading
from pathlib import Path
from typing import List

from .exceptions import TransferIoError
from .interfaces.types import ManifestEntry

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.json"

_EMPTY_ARRAY = b"[\n]\n"
_TAIL = b"\n]\n"


def _encode_entry(entry: ManifestEntry) -> bytes:
    data = entry.to_dict()
    try:
        return json.dumps(data, ensure_ascii=False).encode("utf-8")
    except UnicodeEncodeError:
        # undecodable file names are kept as \u escapes
        return json.dumps(data, ensure_ascii=True).encode("ascii")


class ManifestWriter:
    """
    Appends one entry per processed file to <session>/manifest.json.

    The file is a JSON array that stays valid after every append: each record
    overwrites only the closing bracket and is flushed and fsynced before
    record() returns, so a killed process still leaves a readable manifest.
    """

    def __init__(self, session_dir: Path, filename: str = MANIFEST_FILENAME):
        self.path = Path(session_dir) / filename
        self.count = 0
        self._lock = threading.Lock()
        try:
            self._fh = open(self.path, "w+b")
            self._fh.write(_EMPTY_ARRAY)
            self._sync()
        except OSError as e:
            raise TransferIoError(f"Cannot create manifest {self.path}: {e.strerror or e}",
                                  destination=str(self.path), errno=e.errno) from e
        logger.debug(f"Manifest created at {self.path}")

    def record(self, entry: ManifestEntry) -> None:
        """
        Append an entry durably.

        Raises:
            TransferIoError: If the manifest cannot be written
        """
        payload = _encode_entry(entry)
        with self._lock:
            if self._fh is None:
                raise TransferIoError(f"Manifest {self.path} is closed", destination=str(self.path))
            prefix = b",\n" if self.count else b"\n"
            try:
                self._fh.seek(-len(_TAIL), os.SEEK_END)
                self._fh.write(prefix + payload + _TAIL)
                self._fh.truncate()
                self._sync()
            except OSError as e:
                raise TransferIoError(f"Cannot write manifest {self.path}: {e.strerror or e}",
                                      destination=str(self.path), errno=e.errno) from e
            self.count += 1

    def close(self) -> None:
        with self._lock:
            if self._fh is not None:
                try:
                    self._fh.close()
                except OSError as e:
                    logger.warning(f"Error closing manifest {self.path}: {e}")
                self._fh = None

    def _sync(self) -> None:
        self._fh.flush()
        os.fsync(self._fh.fileno())

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def read_manifest(path: Path) -> List[ManifestEntry]:
    """Load a manifest written by ManifestWriter."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return [ManifestEntry.from_dict(item) for item in data]
