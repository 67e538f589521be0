# transferpilot/platform/posix/storage_posix.py

import logging
import os
import re
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Dict, List, Optional

from transferpilot.core.exceptions import StorageError
from transferpilot.core.interfaces.storage_inter import StorageInterface
from transferpilot.core.interfaces.types import VolumeInfo

logger = logging.getLogger(__name__)

# Filesystem  1024-blocks  Used  Available  Capacity  Mounted on
DF_LINE = re.compile(r"^(?P<fs>.+?)\s+(?P<total>\d+)\s+(?P<used>\d+)\s+(?P<avail>\d+)\s+(?P<cap>\d+%|-)\s+(?P<mount>/.*)$")

PSEUDO_FS_TYPES = {
    "proc", "sysfs", "devtmpfs", "devpts", "tmpfs", "securityfs", "cgroup", "cgroup2",
    "pstore", "debugfs", "tracefs", "configfs", "fusectl", "mqueue", "hugetlbfs",
    "overlay", "squashfs", "autofs", "devfs", "nullfs", "binfmt_misc", "bpf", "efivarfs",
}

SYSTEM_MOUNT_PREFIXES = ("/dev", "/proc", "/sys", "/run", "/snap", "/boot", "/System/Volumes", "/private/var/vm")

REMOVABLE_MOUNT_PREFIXES = ("/Volumes/", "/media/", "/run/media/", "/mnt/")


def parse_df_output(output: str) -> List[Dict[str, object]]:
    """
    Parse `df -kP` output into rows of filesystem, total/avail bytes and mount point.

    Sizes are reported in 1024-byte blocks and converted to bytes.
    """
    rows = []
    for line in output.splitlines()[1:]:
        match = DF_LINE.match(line.strip())
        if not match:
            logger.debug(f"Unparsed df line: {line!r}")
            continue
        rows.append({
            "filesystem": match.group("fs"),
            "total_bytes": int(match.group("total")) * 1024,
            "avail_bytes": int(match.group("avail")) * 1024,
            "mount_point": match.group("mount"),
        })
    return rows


def is_removable_mount(mount_point: str) -> bool:
    return mount_point.startswith(REMOVABLE_MOUNT_PREFIXES)


def is_system_mount(mount_point: str) -> bool:
    if mount_point.startswith("/run/media/"):
        return False
    return any(mount_point == prefix or mount_point.startswith(prefix + "/") for prefix in SYSTEM_MOUNT_PREFIXES)


class PosixStorage(StorageInterface):
    """Volume queries for Linux and macOS"""

    def list_volumes(self) -> List[VolumeInfo]:
        try:
            result = subprocess.run(["df", "-kP"], capture_output=True, text=True, check=False)
        except OSError as e:
            raise StorageError(f"Failed to run df to list volumes: {e}") from e
        if result.returncode != 0 and not result.stdout:
            raise StorageError(f"df failed listing volumes: {result.stderr.strip()}")

        fs_types = self._mount_types()
        volumes = []
        for row in parse_df_output(result.stdout):
            mount = row["mount_point"]
            fs_type = fs_types.get(mount)
            if fs_type in PSEUDO_FS_TYPES or is_system_mount(mount):
                continue
            volumes.append(VolumeInfo(
                name=Path(mount).name or "/",
                mount_point=mount,
                fs_type=fs_type,
                total_bytes=row["total_bytes"],
                avail_bytes=row["avail_bytes"],
                removable=is_removable_mount(mount),
            ))
        logger.debug(f"Found {len(volumes)} volumes")
        return volumes

    def get_free_space(self, path: Path) -> int:
        path = Path(path)
        try:
            usage = shutil.disk_usage(path)
        except OSError as e:
            raise StorageError(f"Unable to get free space for {path}: {e.strerror or e}", path=path) from e
        logger.debug(f"Free space at {path}: {usage.free} bytes")
        return usage.free

    def is_drive_mounted(self, path: Path) -> bool:
        path = Path(path)
        try:
            return path.is_dir() and os.access(path, os.R_OK | os.X_OK)
        except OSError as e:
            logger.warning(f"Error checking mount status for {path}: {e}")
            return False

    @staticmethod
    def _mount_types() -> Dict[str, str]:
        """Mount point -> filesystem type, from /proc/mounts or the mount command."""
        types: Dict[str, str] = {}
        proc_mounts = Path("/proc/mounts")
        try:
            if proc_mounts.exists():
                for line in proc_mounts.read_text().splitlines():
                    parts = line.split()
                    if len(parts) >= 3:
                        # spaces in mount points are octal-escaped
                        types[parts[1].replace("\\040", " ")] = parts[2]
            elif sys.platform == "darwin":
                output = subprocess.run(["mount"], capture_output=True, text=True, check=False).stdout
                for line in output.splitlines():
                    match = re.match(r"^.+? on (?P<mount>/.*?) \((?P<type>[^,)]+)", line)
                    if match:
                        types[match.group("mount")] = match.group("type")
        except OSError as e:
            logger.debug(f"Could not read filesystem types: {e}")
        return types
