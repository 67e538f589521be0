# transferpilot/core/interfaces/types.py
from enum import Enum
from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, List, Any


class ItemKind(Enum):
    """Kind of a picked/queued path"""
    FILE = "file"
    FOLDER = "folder"


class CopyMode(Enum):
    COPY = "copy"
    MOVE = "move"


class ConflictPolicy(Enum):
    """Rule for a destination path that already exists"""
    RENAME = "rename"
    OVERWRITE = "overwrite"
    SKIP = "skip"


class VerifyMode(Enum):
    """Post-copy verification performed for each file"""
    NONE = "none"
    SIZE = "size"
    SHA256 = "sha256"
    XXH64 = "xxh64"

    @property
    def uses_digest(self) -> bool:
        return self in (VerifyMode.SHA256, VerifyMode.XXH64)


class TransferPhase(Enum):
    """Phase reported in progress snapshots"""
    SCANNING = "scanning"
    COPYING = "copying"
    VERIFYING = "verifying"
    DONE = "done"
    CANCELLED = "cancelled"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (TransferPhase.DONE, TransferPhase.CANCELLED, TransferPhase.ERROR)


class LeafStatus(Enum):
    """Outcome of one file"""
    COPIED = "copied"
    MOVED = "moved"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class PickedItem:
    kind: ItemKind
    path: str


@dataclass
class QueueItem:
    id: str
    kind: ItemKind
    path: str
    size_bytes: Optional[int] = None
    file_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


@dataclass
class FileLeaf:
    """A single concrete file produced by expanding a picked file or folder.

    folder_rel is set for files found inside a picked folder and holds
    '<picked folder name>/<path inside folder>'. error is set when the path
    could not be read; such leaves carry no size.
    """
    source_path: str
    size_bytes: int
    category: str
    extension: str
    folder_rel: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


@dataclass
class Preflight:
    """
    Totals for a queue before anything is copied.

    total_files and total_bytes count readable leaves only; unreadable ones
    are listed in unreadable_paths. A session over the same queue records
    each unreadable leaf as a failed file and counts it in
    TransferSummary.total_files, which therefore equals
    total_files + len(unreadable_paths).
    """
    total_files: int
    total_folders: int
    total_bytes: int
    dest_avail_bytes: int
    will_fit: bool
    by_category: Dict[str, int] = field(default_factory=dict)
    by_extension: Dict[str, int] = field(default_factory=dict)
    required_bytes: int = 0
    unreadable_paths: List[str] = field(default_factory=list)
    snapshot_key: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TransferOptions:
    """Resolved option set for one session; immutable once the session starts"""
    dest_mount_point: str
    dest_root_dir_name: str = "Transfers"
    move_instead_of_copy: bool = False
    group_by_date: bool = True
    group_by_type: bool = True
    preserve_folder_structure: bool = False
    conflict_policy: ConflictPolicy = ConflictPolicy.RENAME
    verify_mode: VerifyMode = VerifyMode.SIZE

    @property
    def copy_mode(self) -> CopyMode:
        return CopyMode.MOVE if self.move_instead_of_copy else CopyMode.COPY


@dataclass
class ManifestEntry:
    source_path: str
    dest_path: str
    size_bytes: int
    started_at: str
    finished_at: str
    status: LeafStatus
    error_message: Optional[str] = None
    checksum: Optional[str] = None
    category: Optional[str] = None
    extension: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManifestEntry":
        values = dict(data)
        values["status"] = LeafStatus(values["status"])
        return cls(**values)


@dataclass
class TransferProgress:
    phase: TransferPhase
    current_file: int
    total_files: int
    current_path: str
    bytes_done: int
    bytes_total: int
    percent: float

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["phase"] = self.phase.value
        return data


@dataclass
class TransferSummary:
    started_at: str
    finished_at: str
    duration_ms: int
    total_files: int
    total_bytes: int
    copied_files: int
    moved_files: int
    skipped_files: int
    error_files: int
    output_session_dir: str
    phase: TransferPhase = TransferPhase.DONE

    @property
    def processed_files(self) -> int:
        return self.copied_files + self.moved_files + self.skipped_files + self.error_files

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["phase"] = self.phase.value
        return data


@dataclass
class VolumeInfo:
    name: str
    mount_point: str
    total_bytes: int
    avail_bytes: int
    fs_type: Optional[str] = None
    removable: Optional[bool] = None
