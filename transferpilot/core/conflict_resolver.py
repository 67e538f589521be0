# transferpilot/core/conflict_resolver.py

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Set

from .exceptions import TransferIoError
from .interfaces.types import ConflictPolicy

logger = logging.getLogger(__name__)

MAX_RENAME_ATTEMPTS = 9999


@dataclass(frozen=True)
class Resolution:
    """Proceed to final_path, or skip the file when final_path is None."""
    final_path: Optional[Path] = None

    @property
    def skip(self) -> bool:
        return self.final_path is None

    @classmethod
    def proceed(cls, final_path: Path) -> "Resolution":
        return cls(final_path=Path(final_path))

    @classmethod
    def skipped(cls) -> "Resolution":
        return cls(final_path=None)


def numbered_name(candidate: Path, n: int) -> Path:
    """'photo.jpg' -> 'photo (n).jpg'; dotfiles and extension-less names get the suffix at the end."""
    stem, suffix = candidate.stem, candidate.suffix
    if not stem:
        stem, suffix = candidate.name, ""
    return candidate.with_name(f"{stem} ({n}){suffix}")


class ConflictResolver:
    """
    Decides the final destination path for a file.

    Existence by path alone drives the decision; contents are never compared.
    Paths handed out during a session are remembered and treated as taken, so
    workers running in parallel never receive the same final path.
    """

    def __init__(self, max_attempts: int = MAX_RENAME_ATTEMPTS):
        self.max_attempts = max_attempts
        self._claimed: Set[str] = set()
        self._lock = threading.Lock()

    def resolve(self, candidate, policy: ConflictPolicy) -> Resolution:
        candidate = Path(candidate)
        with self._lock:
            if policy == ConflictPolicy.OVERWRITE:
                self._claimed.add(self._key(candidate))
                return Resolution.proceed(candidate)

            if not self._taken(candidate):
                self._claimed.add(self._key(candidate))
                return Resolution.proceed(candidate)

            if policy == ConflictPolicy.SKIP:
                logger.debug(f"Destination exists, skipping: {candidate}")
                return Resolution.skipped()

            for n in range(1, self.max_attempts + 1):
                renamed = numbered_name(candidate, n)
                if not self._taken(renamed):
                    self._claimed.add(self._key(renamed))
                    logger.debug(f"Destination exists, renamed {candidate.name} -> {renamed.name}")
                    return Resolution.proceed(renamed)

        raise TransferIoError(
            f"No free name for {candidate} after {self.max_attempts} attempts",
            destination=str(candidate),
        )

    def release(self, path) -> None:
        """Forget a claimed path whose file was never written."""
        with self._lock:
            self._claimed.discard(self._key(Path(path)))

    def _taken(self, path: Path) -> bool:
        return os.path.lexists(path) or self._key(path) in self._claimed

    @staticmethod
    def _key(path: Path) -> str:
        return os.path.normcase(os.path.abspath(path))
