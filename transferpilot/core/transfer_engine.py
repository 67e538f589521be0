# transferpilot/core/transfer_engine.py

import logging
import threading
from typing import Any, Callable, Iterable, List, Optional, Tuple

from .cancellation import CancellationToken
from .config_manager import TransferConfig
from .exceptions import ValidationError
from .interfaces.storage_inter import StorageInterface
from .interfaces.types import (
    ConflictPolicy, CopyMode, Preflight, QueueItem, TransferOptions,
    TransferPhase, TransferProgress, TransferSummary, VerifyMode, VolumeInfo,
)
from .path_expander import PathExpander
from .platform_manager import PlatformManager
from .preflight import PreflightScanner
from .state_manager import StateManager
from .transfer_orchestrator import TransferOrchestrator
from .transfer_queue import TransferQueue
from .utils import normalize_source_path
from .validation import coerce_picked_items, parse_enum

logger = logging.getLogger(__name__)

OPTION_OVERRIDES = ("dest_root_dir_name", "group_by_date", "group_by_type", "preserve_folder_structure")


class TransferEngine:
    """
    Entry point for front ends.

    Owns the transfer queue, runs preflight scans and transfer sessions, and
    lets another thread cancel the active session. At most one session runs
    at a time.
    """

    def __init__(self, config: Optional[TransferConfig] = None,
                 storage: Optional[StorageInterface] = None):
        self.config = config or TransferConfig()
        self.storage = storage or PlatformManager.create_storage()
        self.queue = TransferQueue()
        self.state = StateManager()
        self.expander = PathExpander(parallel=self.config.parallel_scan)
        self.orchestrator = TransferOrchestrator(self.config, self.storage, self.expander)
        self._lock = threading.Lock()
        self._active_token: Optional[CancellationToken] = None
        self._cached_preflight: Optional[Tuple[Tuple[int, str], Preflight]] = None

    def list_volumes(self) -> List[VolumeInfo]:
        """
        Raises:
            StorageError: If volumes cannot be enumerated
        """
        return self.storage.list_volumes()

    def preflight_scan(self, items: Iterable[Any], dest_mount_point: str) -> Preflight:
        """Read-only capacity/composition report for items going to dest_mount_point."""
        picked = coerce_picked_items(items)
        return self._scanner().scan(picked, dest_mount_point)

    def queue_preflight(self, dest_mount_point: str, refresh: bool = False) -> Preflight:
        """
        Preflight for the current queue.

        The result is cached against the queue revision and destination; any
        queue mutation or a different destination forces a new scan.
        """
        key = (self.queue.revision, normalize_source_path(dest_mount_point))
        with self._lock:
            cached = self._cached_preflight
        if not refresh and cached is not None and cached[0] == key:
            return cached[1]

        preflight = self.preflight_scan(self.queue.items(), dest_mount_point)
        with self._lock:
            # the queue may have changed while scanning
            if self.queue.revision == key[0]:
                self._cached_preflight = (key, preflight)
        return preflight

    @property
    def last_preflight(self) -> Optional[Preflight]:
        """Cached queue preflight, or None once the queue has changed since it was taken."""
        with self._lock:
            cached = self._cached_preflight
        if cached is None or cached[0][0] != self.queue.revision:
            return None
        return cached[1]

    def build_options(self, dest_mount_point: str, copy_mode=None, conflict_policy=None,
                      verify_mode=None, **overrides) -> TransferOptions:
        """Resolve request values against the configured defaults."""
        unknown = set(overrides) - set(OPTION_OVERRIDES)
        if unknown:
            name = sorted(unknown)[0]
            raise ValidationError(f"Unknown transfer option: {name}", field=name)
        if not dest_mount_point or not str(dest_mount_point).strip():
            raise ValidationError("No destination provided", field="dest_mount_point")

        mode = parse_enum(CopyMode, copy_mode or self.config.copy_mode, "copy_mode")
        values = {key: getattr(self.config, key) for key in OPTION_OVERRIDES}
        values.update({key: value for key, value in overrides.items() if value is not None})
        return TransferOptions(
            dest_mount_point=str(dest_mount_point),
            move_instead_of_copy=mode == CopyMode.MOVE,
            conflict_policy=parse_enum(ConflictPolicy, conflict_policy or self.config.conflict_policy,
                                       "conflict_policy"),
            verify_mode=parse_enum(VerifyMode, verify_mode or self.config.verify_mode, "verify_mode"),
            **values,
        )

    def start_transfer(self, items: Iterable[Any], dest_mount_point: str, copy_mode=None,
                       conflict_policy=None, verify_mode=None,
                       progress_sink: Optional[Callable[[TransferProgress], None]] = None,
                       **overrides) -> TransferSummary:
        """
        Run a transfer session to completion.

        Blocks until the session reaches a terminal phase; progress snapshots
        go to progress_sink from the calling and worker threads.

        Raises:
            ValidationError: If the request is malformed
            SessionBusyError: If a session is already active
            FatalSessionError: If the session ends in phase error
        """
        picked = coerce_picked_items(items)
        options = self.build_options(dest_mount_point, copy_mode, conflict_policy, verify_mode, **overrides)

        self.state.enter_transfer()
        token = CancellationToken()
        with self._lock:
            self._active_token = token
        try:
            logger.info(
                f"Starting {options.copy_mode.value} of {len(picked)} items to {options.dest_mount_point} "
                f"(conflicts: {options.conflict_policy.value}, verify: {options.verify_mode.value})"
            )
            summary = self.orchestrator.run(picked, options, token, progress_sink)
        finally:
            with self._lock:
                self._active_token = None
            self.state.exit_transfer()

        if summary.phase == TransferPhase.DONE:
            self.queue.clear()
        return summary

    def cancel_transfer(self) -> None:
        """Request the active session to stop; does nothing when no session is active."""
        with self._lock:
            token = self._active_token
        if token is None:
            logger.debug("Cancel requested with no active transfer")
            return
        token.cancel()

    @property
    def is_transferring(self) -> bool:
        return self.state.is_transfer()

    def add_dropped_paths(self, paths: Iterable[str]) -> List[QueueItem]:
        """Queue raw filesystem paths; blanks and already queued paths are ignored."""
        added = self.queue.add_many(paths or [])
        logger.info(f"Added {len(added)} dropped paths to the queue")
        return added

    def clear_queue(self) -> None:
        self.queue.clear()

    def _scanner(self) -> PreflightScanner:
        return PreflightScanner(
            self.storage, self.expander,
            margin_bytes=self.config.space_safety_margin_bytes,
            margin_ratio=self.config.space_safety_margin_ratio,
        )
