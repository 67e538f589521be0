# transferpilot/core/interfaces/storage_inter.py
from abc import ABC, abstractmethod
from typing import List
from pathlib import Path

from .types import VolumeInfo

class StorageInterface(ABC):
    """Abstract base class for volume queries"""
    
    @abstractmethod
    def list_volumes(self) -> List[VolumeInfo]:
        """Get the mounted volumes a transfer can target"""
        pass
    
    @abstractmethod
    def get_free_space(self, path: Path) -> int:
        """Get the bytes available to the current user on the volume holding path.

        Raises:
            StorageError: If the figure cannot be obtained
        """
        pass
    
    @abstractmethod
    def is_drive_mounted(self, path: Path) -> bool:
        """Check if a mount point is present and reachable"""
        pass
