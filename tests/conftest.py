# tests/conftest.py
"""
Pytest configuration for TransferPilot tests.
Defines fixtures used across multiple test modules.
"""
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional
import logging
import os
import shutil
import socket
import tempfile
import pytest

from transferpilot.core.config_manager import TransferConfig
from transferpilot.core.exceptions import StorageError
from transferpilot.core.interfaces.storage_inter import StorageInterface
from transferpilot.core.interfaces.types import ItemKind, PickedItem, VolumeInfo

MB = 1024 * 1024


class FakeStorage(StorageInterface):
    """Storage double reporting a fixed amount of free space."""

    def __init__(self, free_bytes: int = 100 * MB, volumes: Optional[List[VolumeInfo]] = None,
                 fail: bool = False):
        self.free_bytes = free_bytes
        self.volumes = volumes or []
        self.fail = fail
        self.queried: List[Path] = []

    def list_volumes(self) -> List[VolumeInfo]:
        return list(self.volumes)

    def get_free_space(self, path: Path) -> int:
        self.queried.append(Path(path))
        if self.fail:
            raise StorageError(f"Unable to get free space for {path}", path=path)
        return self.free_bytes

    def is_drive_mounted(self, path: Path) -> bool:
        return Path(path).is_dir()


def write_file(path: Path, size: int, fill: bytes = b"x") -> Path:
    """Create a file of exactly size bytes."""
    path.parent.mkdir(parents=True, exist_ok=True)
    pattern = (fill * (size // len(fill) + 1))[:size]
    path.write_bytes(pattern)
    return path


@pytest.fixture
def fake_storage() -> FakeStorage:
    """Storage with 100 MB free."""
    return FakeStorage()


@pytest.fixture
def dest_mount(tmp_path: Path) -> Path:
    """
    Empty directory standing in for a mounted destination volume.

    Returns:
        Path: The destination mount point.
    """
    dest = tmp_path / "dest"
    dest.mkdir()
    return dest


@pytest.fixture
def sample_tree(tmp_path: Path) -> Dict[str, Any]:
    """
    Three 1 MB photos picked as files plus a folder holding two 2 MB PDFs.

    Returns:
        Dict with the source root, the picked items and the expected byte total.
    """
    src = tmp_path / "src"
    photos = [write_file(src / f"IMG_000{i}.jpg", MB, fill=bytes([65 + i])) for i in range(1, 4)]
    docs = src / "docs"
    write_file(docs / "contract.pdf", 2 * MB, fill=b"c")
    write_file(docs / "invoice.pdf", 2 * MB, fill=b"i")

    items = [PickedItem(ItemKind.FILE, str(photo)) for photo in photos]
    items.append(PickedItem(ItemKind.FOLDER, str(docs)))
    return {
        "root": src,
        "photos": photos,
        "docs": docs,
        "items": items,
        "total_bytes": 7_340_032,
    }


@pytest.fixture
def transfer_config() -> TransferConfig:
    """Configuration with unthrottled progress and a small pool."""
    return TransferConfig(max_workers=2, progress_interval_ms=0, chunk_size=256 * 1024)


@pytest.fixture
def mocked_logging() -> Iterator[None]:
    """Fixture to patch logging for testing."""
    # Store original logger level
    original_level = logging.getLogger().level
    logging.getLogger().setLevel(logging.CRITICAL)
    yield
    logging.getLogger().setLevel(original_level)


@pytest.fixture
def mock_display_interface(mocker) -> Any:
    """
    Provide a mock DisplayInterface.
    Returns:
        Mocked DisplayInterface instance.
    """
    mock_display = mocker.Mock()
    mock_display.show_progress = mocker.Mock()
    mock_display.show_preflight = mocker.Mock()
    mock_display.show_summary = mocker.Mock()
    mock_display.show_error = mocker.Mock()
    return mock_display


@pytest.fixture
def make_storage():
    """Factory for FakeStorage instances: make_storage(free_bytes, volumes=None, fail=False)."""
    return FakeStorage


@pytest.fixture
def make_file():
    """Factory writing a file of a given size: make_file(path, size, fill=b'x')."""
    return write_file


@pytest.fixture
def special_files() -> Iterator[Dict[str, Path]]:
    """
    A folder holding one regular file, a FIFO and a bound Unix socket.

    Created under a short temporary prefix since socket paths are length limited.
    """
    if not hasattr(os, "mkfifo") or not hasattr(socket, "AF_UNIX"):
        pytest.skip("FIFOs and Unix sockets are POSIX only")
    root = Path(tempfile.mkdtemp(prefix="tp"))
    folder = root / "card"
    folder.mkdir()
    regular = write_file(folder / "a.txt", 10)
    fifo = folder / "pipe"
    os.mkfifo(fifo)
    sock_path = folder / "sock"
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.bind(str(sock_path))
    sock.close()
    try:
        yield {"root": root, "folder": folder, "regular": regular, "fifo": fifo, "socket": sock_path}
    finally:
        shutil.rmtree(root, ignore_errors=True)
