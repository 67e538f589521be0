# transferpilot/core/transfer_queue.py

import logging
import os
import threading
import uuid
from typing import Dict, Iterable, List, Optional

from .interfaces.types import ItemKind, QueueItem
from .utils import normalize_source_path

logger = logging.getLogger(__name__)


class TransferQueue:
    """
    Ordered set of picked paths.

    Identity is the normalized absolute source path, so re-adding a path is a
    no-op. Every mutation bumps revision, which callers use to detect stale
    preflight results.
    """

    def __init__(self):
        self._items: Dict[str, QueueItem] = {}
        self._lock = threading.Lock()
        self.revision = 0

    def add(self, path, kind: Optional[ItemKind] = None) -> Optional[QueueItem]:
        """
        Add a path; kind is detected from the filesystem when not given.

        Returns:
            The new QueueItem, or None when the path is blank or already queued
        """
        if path is None or not str(path).strip():
            return None
        key = normalize_source_path(path)
        if kind is None:
            kind = ItemKind.FOLDER if os.path.isdir(key) else ItemKind.FILE

        with self._lock:
            if key in self._items:
                logger.debug(f"Already queued: {key}")
                return None
            item = QueueItem(id=str(uuid.uuid4()), kind=kind, path=key)
            if kind == ItemKind.FILE:
                try:
                    item.size_bytes = os.stat(key).st_size
                    item.file_count = 1
                except OSError:
                    pass
            self._items[key] = item
            self.revision += 1
        logger.debug(f"Queued {kind.value}: {key}")
        return item

    def add_many(self, paths: Iterable) -> List[QueueItem]:
        added = []
        for path in paths:
            item = self.add(path)
            if item is not None:
                added.append(item)
        return added

    def remove(self, item_id: str) -> bool:
        with self._lock:
            for key, item in self._items.items():
                if item.id == item_id:
                    del self._items[key]
                    self.revision += 1
                    return True
        return False

    def clear(self) -> None:
        with self._lock:
            if self._items:
                self._items.clear()
                self.revision += 1

    def items(self) -> List[QueueItem]:
        with self._lock:
            return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, path) -> bool:
        return normalize_source_path(path) in self._items
