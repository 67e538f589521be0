# transferpilot/core/config_manager.py

import logging
import shutil
import yaml
from pathlib import Path
from typing import List, Optional, Dict, Any, ClassVar
from pydantic import BaseModel, field_validator
import sys
import os

from .exceptions import ConfigError
from transferpilot import __version__

logger = logging.getLogger(__name__)

_COPY_MODES = ("copy", "move")
_CONFLICT_POLICIES = ("rename", "overwrite", "skip")
_VERIFY_MODES = ("none", "size", "sha256", "xxh64")

class TransferConfig(BaseModel):
    """Configuration settings for TransferPilot using Pydantic for validation"""

    # Configuration sections for organized YAML output
    CONFIG_SECTIONS: ClassVar[Dict[str, List[str]]] = {
        "# Transfer defaults - used when a request does not override them": [
            "version", "dest_root_dir_name", "copy_mode", "conflict_policy",
            "verify_mode", "group_by_date", "group_by_type",
            "preserve_folder_structure"
        ],
        "# Session layout": [
            "session_timestamp_format", "date_folder_format", "write_readme",
            "write_latest_pointer", "write_transfer_log"
        ],
        "# Safety settings": [
            "space_safety_margin_bytes", "space_safety_margin_ratio", "verify_retries"
        ],
        "# Performance settings": [
            "max_workers", "buffer_size", "chunk_size",
            "progress_interval_ms", "parallel_scan"
        ],
        "# Logging settings": [
            "log_level", "log_file_rotation", "log_file_max_size"
        ]
    }

    version: str = __version__
    # Transfer defaults
    dest_root_dir_name: str = "Transfers"
    copy_mode: str = "copy"
    conflict_policy: str = "rename"
    verify_mode: str = "size"
    group_by_date: bool = True
    group_by_type: bool = True
    preserve_folder_structure: bool = False

    # Session layout
    session_timestamp_format: str = "%Y-%m-%d_%H%M%S"
    date_folder_format: str = "%Y-%m-%d"
    write_readme: bool = True
    write_latest_pointer: bool = True
    write_transfer_log: bool = True

    # Safety
    space_safety_margin_bytes: int = 0
    space_safety_margin_ratio: float = 0.0
    verify_retries: int = 0

    # Performance
    max_workers: int = 0  # 0 = derive from CPU count
    buffer_size: int = 1024 * 1024  # 1MB default
    chunk_size: int = 1024 * 1024
    progress_interval_ms: int = 120
    parallel_scan: bool = True

    # Logging settings
    log_level: str = "INFO"
    log_file_rotation: int = 5  # Number of log files to keep
    log_file_max_size: int = 10  # MB

    @field_validator('dest_root_dir_name')
    def validate_dest_root_dir_name(cls, v):
        """Root folder must be a single, non-empty path component"""
        v = v.strip()
        if not v or v in (".", "..") or "/" in v or "\\" in v:
            return "Transfers"
        return v

    @field_validator('copy_mode')
    def validate_copy_mode(cls, v):
        v = v.lower()
        return v if v in _COPY_MODES else "copy"

    @field_validator('conflict_policy')
    def validate_conflict_policy(cls, v):
        v = v.lower()
        return v if v in _CONFLICT_POLICIES else "rename"

    @field_validator('verify_mode')
    def validate_verify_mode(cls, v):
        v = v.lower()
        return v if v in _VERIFY_MODES else "size"

    @field_validator('space_safety_margin_bytes', 'verify_retries')
    def validate_non_negative(cls, v):
        return max(0, v)

    @field_validator('space_safety_margin_ratio')
    def validate_margin_ratio(cls, v):
        """Clamp ratio to 0..1"""
        return min(max(0.0, v), 1.0)

    @field_validator('max_workers')
    def validate_max_workers(cls, v):
        if v < 0:
            return 0
        return min(v, 64)

    @field_validator('buffer_size', 'chunk_size')
    def validate_buffer_size(cls, v):
        """Ensure buffer size is reasonable"""
        if v < 4096:  # 4KB minimum
            return 4096
        if v > 100 * 1024 * 1024:  # 100MB maximum
            return 100 * 1024 * 1024
        return v

    @field_validator('progress_interval_ms')
    def validate_progress_interval(cls, v):
        return max(0, v)

    @field_validator('log_level')
    def validate_log_level(cls, v):
        """Validate log level"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v = v.upper()
        if v not in valid_levels:
            return 'INFO'
        return v

    def save_to_yaml_with_sections(self, file_handle):
        """
        Save configuration to YAML file with organized sections.

        Args:
            file_handle: Open file handle to write to
        """
        config_dict = self.model_dump(mode="json")

        for section_comment, field_names in self.CONFIG_SECTIONS.items():
            file_handle.write(f"\n{section_comment}\n")
            section_dict = {k: config_dict[k] for k in field_names if k in config_dict}
            yaml.dump(section_dict, file_handle, default_flow_style=False, sort_keys=False)

    def get(self, key, default=None):
        """
        Get configuration value with fallback.

        Args:
            key: Configuration key
            default: Default value if key doesn't exist

        Returns:
            Configuration value or default
        """
        return getattr(self, key, default)


class ConfigManager:
    """Config manager backed by a YAML file in the user's app-data directory"""

    @staticmethod
    def get_appdata_dir() -> Path:
        """
        Get the platform-appropriate appdata/config directory for TransferPilot.
        Returns:
            Path: The directory path for storing user data (config, logs, etc.)
        """
        if sys.platform == "win32":
            base = Path(os.getenv("APPDATA", Path.home() / "AppData" / "Roaming"))
            return base / "TransferPilot"
        elif sys.platform == "darwin":
            return Path.home() / "Library" / "Application Support" / "TransferPilot"
        else:
            # Linux and other POSIX
            return Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config")) / "transferpilot"

    DEFAULT_CONFIG_PATHS = [
        get_appdata_dir.__func__() / "config.yml",
    ]

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Optional path to configuration file
        """
        self.config_path = config_path
        self.config = None

    def load_config(self) -> TransferConfig:
        """
        Load configuration from file or create default.

        Returns:
            TransferConfig: Validated configuration object
        """
        config_file = self._find_config_file()
        try:
            if config_file and config_file.exists():
                with open(config_file, 'r') as f:
                    config_data = yaml.safe_load(f)
                if config_data:
                    if not isinstance(config_data, dict):
                        raise ConfigError(f"Configuration root must be a mapping, got {type(config_data).__name__}")
                    config_data = {k: v for k, v in config_data.items() if not isinstance(k, str) or not k.startswith('#')}
                else:
                    config_data = {}
                file_version = config_data.get("version")
                if file_version != __version__:
                    self._backup_config(config_file)
                    logger.warning(f"Config version mismatch: file has {file_version}, program is {__version__}. Migrating config.")
                    config_data = self._migrate_config(config_data)
                    self.save_config(TransferConfig.model_validate(config_data))
                self.config = TransferConfig.model_validate(config_data)
                logger.info(f"Loaded configuration from {config_file}")
                missing_fields = set(TransferConfig.model_fields.keys()) - set(config_data.keys())
                if missing_fields:
                    logger.info(f"Adding missing config fields to {config_file}: {missing_fields}")
                    self.save_config()
            else:
                self.config = TransferConfig()
                self._write_config_file(config_file, "Created default configuration")
        except Exception as e:
            logger.error(f"Error loading config: {e}")
            self.config = TransferConfig()
        return self.config

    def _backup_config(self, config_file: Path):
        """
        Backup the existing config file before migration.
        """
        try:
            backup_path = config_file.with_suffix(config_file.suffix + ".bak")
            if config_file.exists():
                shutil.copy2(config_file, backup_path)
                logger.info(f"Backed up config to {backup_path}")
        except OSError as e:
            logger.error(f"Failed to backup config: {e}")

    def _migrate_config(self, config_data: dict) -> dict:
        """
        Migrate an old config dict to the current version.
        Drops unknown fields and fills in missing ones with defaults. User values are
        kept unless they fail validation.
        """
        defaults = TransferConfig()
        migrated = {}
        for k in TransferConfig.model_fields.keys():
            if k in config_data:
                try:
                    test_config = TransferConfig(**{k: config_data[k]})
                    migrated[k] = getattr(test_config, k)
                except Exception:
                    migrated[k] = getattr(defaults, k)
            else:
                migrated[k] = getattr(defaults, k)
        migrated["version"] = __version__
        return migrated

    def _find_config_file(self) -> Path:
        """
        Find existing config file from possible locations.

        Returns:
            Path to configuration file
        """
        if self.config_path:
            return self.config_path
        for path in self.DEFAULT_CONFIG_PATHS:
            if path.exists():
                return path
        return self.DEFAULT_CONFIG_PATHS[0]

    def save_config(self, config: Optional[TransferConfig] = None):
        """
        Save configuration to file.

        Args:
            config: Configuration to save, uses self.config if None
        """
        if config is not None:
            self.config = config

        if self.config is None:
            logger.error("No configuration to save")
            return

        self._write_config_file(self._find_config_file(), "Saved configuration")

    def _write_config_file(self, config_file: Path, action: str) -> None:
        try:
            config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(config_file, "w", encoding="utf-8") as f:
                self.config.save_to_yaml_with_sections(f)
            logger.info(f"{action} at {config_file}")
        except OSError as e:
            logger.error(f"Failed to write config {config_file}: {e}", exc_info=True)

    def update_config(self, updates: Dict[str, Any]) -> TransferConfig:
        """
        Update configuration with new values.

        Args:
            updates: Dictionary of key-value pairs to update

        Returns:
            TransferConfig: Updated configuration

        Raises:
            ConfigError: If an update names an unknown setting
        """
        if self.config is None:
            self.config = TransferConfig()

        unknown = set(updates) - set(TransferConfig.model_fields.keys())
        if unknown:
            key = sorted(unknown)[0]
            raise ConfigError(f"Unknown configuration setting: {key}", config_key=key)

        config_dict = self.config.model_dump()
        config_dict.update(updates)
        self.config = TransferConfig.model_validate(config_dict)
        self.save_config()
        return self.config
