# transferpilot/platform/windows/storage_win.py

import os
import logging
import shutil
import string
import win32api
import win32file
from pathlib import Path
from typing import List, Optional

from transferpilot.core.exceptions import StorageError
from transferpilot.core.interfaces.storage_inter import StorageInterface
from transferpilot.core.interfaces.types import VolumeInfo

logger = logging.getLogger(__name__)

VOLUME_DRIVE_TYPES = (win32file.DRIVE_FIXED, win32file.DRIVE_REMOVABLE, win32file.DRIVE_REMOTE)

class WindowsStorage(StorageInterface):
    """Volume queries using drive letters"""

    def list_volumes(self) -> List[VolumeInfo]:
        volumes = []
        bitmask = win32api.GetLogicalDrives()
        for letter in string.ascii_uppercase:
            present = bitmask & 1
            bitmask >>= 1
            if not present:
                continue
            root = f"{letter}:\\"
            drive_type = win32file.GetDriveType(root)
            if drive_type not in VOLUME_DRIVE_TYPES:
                continue
            try:
                usage = shutil.disk_usage(root)
            except OSError as e:
                # empty card readers and disconnected shares
                logger.debug(f"Skipping {root}: {e}")
                continue
            label, fs_type = self._volume_information(root)
            volumes.append(VolumeInfo(
                name=label or f"Local Disk ({letter}:)",
                mount_point=root,
                fs_type=fs_type,
                total_bytes=usage.total,
                avail_bytes=usage.free,
                removable=drive_type == win32file.DRIVE_REMOVABLE,
            ))
        return volumes

    def get_free_space(self, path: Path) -> int:
        try:
            return shutil.disk_usage(str(path)).free
        except OSError as e:
            raise StorageError(f"Unable to get free space for {path}: {e.strerror or e}",
                               path=path, error_type="mount") from e

    def is_drive_mounted(self, path: Path) -> bool:
        root = os.path.splitdrive(str(path))[0] + "\\"
        return os.path.exists(root)

    @staticmethod
    def _volume_information(root: str):
        try:
            info = win32api.GetVolumeInformation(root)
            return info[0], info[4]
        except win32api.error as e:
            logger.debug(f"Unable to get volume info for {root}: {e}")
            return None, None
