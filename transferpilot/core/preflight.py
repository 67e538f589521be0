# transferpilot/core/preflight.py

import hashlib
import logging
import os
from collections import Counter
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .exceptions import StorageError
from .interfaces.storage_inter import StorageInterface
from .interfaces.types import FileLeaf, ItemKind, PickedItem, Preflight
from .path_expander import PathExpander
from .utils import normalize_source_path

logger = logging.getLogger(__name__)


def required_bytes_for(total_bytes: int, margin_bytes: int = 0, margin_ratio: float = 0.0) -> int:
    """Bytes that must be free for total_bytes to fit, including the safety margin."""
    return total_bytes + max(0, margin_bytes) + int(total_bytes * max(0.0, margin_ratio))


def snapshot_key_for(items: Iterable[PickedItem], dest_mount_point) -> str:
    """Fingerprint of an item list and destination; any change yields a new key."""
    digest = hashlib.sha256()
    for item in items:
        digest.update(f"{item.kind.value}\0{normalize_source_path(item.path)}\n".encode("utf-8", "surrogateescape"))
    digest.update(f"->{normalize_source_path(dest_mount_point)}".encode("utf-8", "surrogateescape"))
    return digest.hexdigest()


class PreflightScanner:
    """
    Read-only capacity and composition check.

    Never writes to the filesystem and reserves nothing; a later transfer may
    still fail to fit if free space shrinks in between.
    """

    def __init__(self, storage: StorageInterface, expander: Optional[PathExpander] = None,
                 margin_bytes: int = 0, margin_ratio: float = 0.0):
        self.storage = storage
        self.expander = expander or PathExpander()
        self.margin_bytes = margin_bytes
        self.margin_ratio = margin_ratio

    def scan(self, items: List[PickedItem], dest_mount_point) -> Preflight:
        leaves = self.expander.expand(items)
        preflight, _ = self.summarize(items, leaves, dest_mount_point)
        return preflight

    def scan_with_leaves(self, items: List[PickedItem], dest_mount_point) -> Tuple[Preflight, List[FileLeaf]]:
        """Same as scan() but also hands back the expanded leaves."""
        leaves = self.expander.expand(items)
        return self.summarize(items, leaves, dest_mount_point)

    def summarize(self, items: List[PickedItem], leaves: List[FileLeaf],
                  dest_mount_point) -> Tuple[Preflight, List[FileLeaf]]:
        readable = [leaf for leaf in leaves if not leaf.is_error]
        unreadable = [leaf.source_path for leaf in leaves if leaf.is_error]

        total_bytes = sum(leaf.size_bytes for leaf in readable)
        by_category = Counter(leaf.category for leaf in readable)
        by_extension = Counter(f".{leaf.extension}" if leaf.extension != "noext" else "noext"
                               for leaf in readable)
        total_folders = sum(1 for item in items if item.kind == ItemKind.FOLDER)

        dest_avail = self.query_free_space(dest_mount_point)
        required = required_bytes_for(total_bytes, self.margin_bytes, self.margin_ratio)

        preflight = Preflight(
            total_files=len(readable),
            total_folders=total_folders,
            total_bytes=total_bytes,
            dest_avail_bytes=dest_avail,
            will_fit=dest_avail >= required,
            by_category=dict(sorted(by_category.items())),
            by_extension=dict(sorted(by_extension.items())),
            required_bytes=required,
            unreadable_paths=unreadable,
            snapshot_key=snapshot_key_for(items, dest_mount_point),
        )
        logger.info(
            f"Preflight: {preflight.total_files} files, {preflight.total_bytes} bytes, "
            f"{dest_avail} bytes free at {dest_mount_point}, will_fit={preflight.will_fit}"
        )
        if unreadable:
            logger.warning(f"Preflight found {len(unreadable)} unreadable paths")
        return preflight, leaves

    def query_free_space(self, dest_mount_point) -> int:
        """Free bytes at the destination; 0 when the figure cannot be obtained."""
        try:
            return int(self.storage.get_free_space(Path(os.path.expanduser(str(dest_mount_point)))))
        except StorageError as e:
            logger.warning(f"Could not read free space for {dest_mount_point}: {e}")
            return 0
