# transferpilot/core/directory_handler.py

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from .categories import FOLDERS, CATEGORY_FOLDERS
from .config_manager import TransferConfig
from .exceptions import FatalSessionError
from .interfaces.types import FileLeaf, TransferOptions

logger = logging.getLogger(__name__)

README_FILENAME = "README.txt"
LATEST_POINTER_FILENAME = "_latest.txt"
MAX_SESSION_SUFFIX = 1000

README_TEXT = """\
TransferPilot output

Folder layout:
  {root}/<YYYY-MM-DD_HHMMSS>/          one folder per transfer session
    <YYYY-MM-DD>/                      when grouping by date is enabled
      <category>/                      when grouping by type is enabled
      Folders/<picked folder>/...      picked folders, when preserving folder structure
    manifest.json                      one record per processed file
    transfer_log.txt                   human-readable session log

Categories: {categories}

Pointers:
  {root}/_latest.txt -> most recent session folder
"""


class DirectoryHandler:
    """Creates session directories and maps files to their place inside them"""

    def __init__(self, config: Optional[TransferConfig] = None):
        """
        Args:
            config: TransferConfig with the session layout settings
        """
        self.config = config or TransferConfig()

    def _sanitize_name(self, name: str) -> str:
        """Create safe directory name from input"""
        sanitized = re.sub(r'[<>:"/\\|?*\x00-\x1f]', '', name).strip()
        return sanitized if sanitized not in ("", ".", "..") else "unnamed"

    def create_session_directory(self, options: TransferOptions, now: Optional[datetime] = None) -> Path:
        """
        Create <mount>/<root>/<timestamp>, adding _2, _3... when the name is taken.

        Raises:
            FatalSessionError: If the directory cannot be created
        """
        now = now or datetime.now()
        root_dir = Path(options.dest_mount_point) / self._sanitize_name(options.dest_root_dir_name)
        base_name = now.strftime(self.config.session_timestamp_format)

        try:
            root_dir.mkdir(parents=True, exist_ok=True)
            for n in range(1, MAX_SESSION_SUFFIX + 1):
                session_dir = root_dir / (base_name if n == 1 else f"{base_name}_{n}")
                try:
                    session_dir.mkdir()
                except FileExistsError:
                    continue
                logger.info(f"Created session directory {session_dir}")
                return session_dir
        except OSError as e:
            raise FatalSessionError(f"Cannot create session directory under {root_dir}: {e.strerror or e}",
                                    reason="session_dir") from e

        raise FatalSessionError(f"No free session directory name for {base_name} under {root_dir}",
                                reason="session_dir")

    def destination_for(self, leaf: FileLeaf, session_dir: Path, options: TransferOptions,
                        session_date: str) -> Path:
        """
        Candidate destination for a file, before conflict resolution.

        Files from a picked folder keep their tree under Folders/ when
        preserve_folder_structure is set; everything else goes to its
        category folder (or the session root when grouping by type is off).
        """
        target = Path(session_dir)
        if options.group_by_date:
            target = target / session_date

        if options.preserve_folder_structure and leaf.folder_rel:
            if options.group_by_type:
                target = target / FOLDERS
            return target.joinpath(*leaf.folder_rel.split("/"))

        if options.group_by_type:
            target = target / leaf.category
        return target / Path(leaf.source_path).name

    def write_layout_readme(self, root_dir: Path) -> None:
        """Write <root>/README.txt once; failures are only logged."""
        readme = Path(root_dir) / README_FILENAME
        if readme.exists():
            return
        try:
            readme.write_text(
                README_TEXT.format(root=Path(root_dir).name, categories=", ".join(CATEGORY_FOLDERS[1:])),
                encoding="utf-8",
            )
            logger.debug(f"Wrote {readme}")
        except OSError as e:
            logger.warning(f"Could not write {readme}: {e}")

    def update_latest_pointer(self, root_dir: Path, session_dir: Path) -> None:
        pointer = Path(root_dir) / LATEST_POINTER_FILENAME
        try:
            pointer.write_text(f"{session_dir}\n", encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not update {pointer}: {e}")
