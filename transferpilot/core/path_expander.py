# transferpilot/core/path_expander.py

import logging
import os
import stat
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional

from .categories import categorize, extension_of, OTHER
from .exceptions import PathError
from .interfaces.types import FileLeaf, ItemKind, PickedItem
from .utils import normalize_source_path

logger = logging.getLogger(__name__)


def error_leaf(path: str, message: str) -> FileLeaf:
    """Leaf standing in for a path that could not be read."""
    return FileLeaf(
        source_path=path,
        size_bytes=0,
        category=OTHER,
        extension=extension_of(path),
        error=message,
    )


def _is_regular_file(path: str) -> bool:
    """False for FIFOs, sockets and device nodes; a failed lstat is left to _file_leaf."""
    try:
        return stat.S_ISREG(os.lstat(path).st_mode)
    except OSError:
        return True


class PathExpander:
    """
    Expands picked files and folders into the concrete files to transfer.

    A picked file yields exactly one leaf; a picked folder yields one leaf per
    regular file found by a depth-first walk. Symlinks are never followed and
    symlinked entries are not collected, nor are FIFOs, sockets or device
    nodes inside a folder; picking one directly gives an error leaf.
    Unreadable paths produce error leaves instead of aborting the expansion.
    Output order is stable for a fixed filesystem: items keep their input
    order and each directory is walked in name order.
    """

    def __init__(self, parallel: bool = True, max_workers: int = 4):
        self.parallel = parallel
        self.max_workers = max(1, max_workers)

    def expand(self, items: Iterable[PickedItem]) -> List[FileLeaf]:
        items = list(items)
        if self.parallel and len(items) > 1:
            workers = min(self.max_workers, len(items))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="expand") as pool:
                # map() keeps input order
                results = list(pool.map(self.expand_item, items))
        else:
            results = [self.expand_item(item) for item in items]

        leaves = [leaf for result in results for leaf in result]
        errors = sum(1 for leaf in leaves if leaf.is_error)
        logger.debug(f"Expanded {len(items)} items into {len(leaves)} files ({errors} unreadable)")
        return leaves

    def expand_item(self, item: PickedItem) -> List[FileLeaf]:
        path = normalize_source_path(item.path)
        try:
            if item.kind == ItemKind.FOLDER:
                return self._expand_folder(path)
            return [self._file_leaf(path)]
        except PathError as e:
            logger.warning(f"Skipping unreadable source {path}: {e}")
            return [error_leaf(path, str(e))]

    def _file_leaf(self, path: str, folder_rel: Optional[str] = None) -> FileLeaf:
        try:
            st = os.stat(path)
        except FileNotFoundError as e:
            raise PathError(f"Source not found: {path}", path=path) from e
        except OSError as e:
            raise PathError(f"Cannot read source {path}: {e.strerror or e}", path=path) from e

        if stat.S_ISDIR(st.st_mode):
            raise PathError(f"Source is a directory, expected a file: {path}", path=path)
        if not stat.S_ISREG(st.st_mode):
            raise PathError(f"Not a regular file: {path}", path=path)
        if not os.access(path, os.R_OK):
            raise PathError(f"No read permission: {path}", path=path)

        category, ext = categorize(path)
        return FileLeaf(
            source_path=path,
            size_bytes=st.st_size,
            category=category,
            extension=ext,
            folder_rel=folder_rel,
        )

    def _expand_folder(self, root: str) -> List[FileLeaf]:
        if not os.path.exists(root):
            raise PathError(f"Source not found: {root}", path=root)
        if not os.path.isdir(root):
            raise PathError(f"Source is not a folder: {root}", path=root)

        top_name = Path(root).name or root.strip(os.sep) or "root"
        leaves: List[FileLeaf] = []

        def on_walk_error(err: OSError):
            failed = err.filename or root
            leaves.append(error_leaf(str(failed), f"Cannot read folder {failed}: {err.strerror or err}"))
            logger.warning(f"Cannot read folder {failed}: {err}")

        for dirpath, dirnames, filenames in os.walk(root, onerror=on_walk_error, followlinks=False):
            # in-place sort fixes the descent order
            dirnames.sort()
            for name in sorted(filenames):
                file_path = os.path.join(dirpath, name)
                if os.path.islink(file_path):
                    logger.debug(f"Not following symlink {file_path}")
                    continue
                if not _is_regular_file(file_path):
                    logger.debug(f"Skipping special file {file_path}")
                    continue
                rel = os.path.relpath(file_path, root)
                folder_rel = Path(top_name, rel).as_posix()
                try:
                    leaves.append(self._file_leaf(file_path, folder_rel=folder_rel))
                except PathError as e:
                    logger.warning(f"Skipping unreadable source {file_path}: {e}")
                    leaf = error_leaf(file_path, str(e))
                    leaf.folder_rel = folder_rel
                    leaves.append(leaf)
        return leaves
