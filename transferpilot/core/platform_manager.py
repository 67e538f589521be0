# transferpilot/core/platform_manager.py
import platform
import logging

from .interfaces.display import DisplayInterface
from .interfaces.storage_inter import StorageInterface
from .exceptions import ConfigError, DisplayError, StorageError

logger = logging.getLogger(__name__)

class PlatformManager:
    """Factory class for creating platform-specific implementations"""

    SUPPORTED_PLATFORMS = {"darwin", "windows", "linux"}

    @staticmethod
    def get_platform() -> str:
        """
        Get the current platform identifier

        Raises:
            ConfigError: If running on an unsupported platform
        """
        system = platform.system().lower()
        if system not in PlatformManager.SUPPORTED_PLATFORMS:
            raise ConfigError(
                f"Unsupported platform: {system}",
                config_key="platform",
                invalid_value=system,
            )
        return system

    @classmethod
    def create_storage(cls) -> StorageInterface:
        """
        Create the appropriate storage implementation for the current platform

        Raises:
            StorageError: If the implementation cannot be loaded
            ConfigError: If platform is not supported
        """
        platform_name = cls.get_platform()
        try:
            if platform_name == "windows":
                from transferpilot.platform.windows.storage_win import WindowsStorage
                return WindowsStorage()
            from transferpilot.platform.posix.storage_posix import PosixStorage
            return PosixStorage()
        except ImportError as e:
            raise StorageError(
                f"Failed to import storage implementation for {platform_name}",
                error_type="import",
                device=platform_name
            ) from e

    @classmethod
    def create_display(cls) -> DisplayInterface:
        """
        Create the terminal display

        Raises:
            DisplayError: If display creation fails
        """
        try:
            from transferpilot.core.rich_display import RichDisplay
            return RichDisplay()
        except ImportError as e:
            raise DisplayError(
                "Failed to initialize Rich display",
                display_type="rich",
                error_type="initialization"
            ) from e
