"""Configuration management for LFS Scanner."""

import json
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".lfs-scanner"
CONFIG_FILE_NAME = "config.json"


class ScannerConfig(BaseModel):
    """Settings for the scan pipelines."""

    git_binary: str = Field(default="git", description="git executable to run")
    channel_buffer_size: int = Field(
        default=100,
        description="Capacity of the bounded channels between pipeline stages",
    )
    safe_directory: bool = Field(
        default=True,
        description="Mark the repository as a git safe.directory for every scan",
    )
    remote: Optional[str] = Field(
        default=None,
        description="Only treat commits on this remote as pushed (default: any remote)",
    )
    include_paths: List[str] = Field(
        default_factory=list, description="Default include patterns for log scans"
    )
    exclude_paths: List[str] = Field(
        default_factory=list, description="Default exclude patterns for log scans"
    )

    @field_validator("channel_buffer_size")
    @classmethod
    def validate_channel_buffer_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("channel_buffer_size must be at least 1")
        return v

    @field_validator("git_binary")
    @classmethod
    def validate_git_binary(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("git_binary cannot be empty")
        return v.strip()


class ConfigManager:
    """Loads and saves .lfs-scanner/config.json."""

    def __init__(self, config_path: Path):
        self.config_path = config_path
        self._config: Optional[ScannerConfig] = None

    def load(self) -> ScannerConfig:
        """Load configuration from file, falling back to defaults."""
        if not self.config_path.exists():
            self._config = ScannerConfig()
            return self._config

        try:
            with open(self.config_path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read {self.config_path}: {e}") from e

        try:
            self._config = ScannerConfig(**data)
        except (ValidationError, TypeError) as e:
            raise ConfigError(f"Invalid configuration in {self.config_path}: {e}") from e

        logger.debug(f"Loaded configuration from {self.config_path}")
        return self._config

    def save(self, config: Optional[ScannerConfig] = None) -> None:
        """Write configuration to file."""
        if config is not None:
            self._config = config
        if self._config is None:
            self._config = ScannerConfig()

        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w") as f:
            json.dump(self._config.model_dump(), f, indent=2, sort_keys=True)

    def get_config(self) -> ScannerConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self.load()
        if self._config is None:
            raise RuntimeError("Failed to load configuration")
        return self._config

    @staticmethod
    def find_config_path(start_dir: Optional[Path] = None) -> Optional[Path]:
        """Find .lfs-scanner/config.json by walking up the directory tree.

        Args:
            start_dir: Directory to start searching from (default: current directory)

        Returns:
            Path to config.json if found, None otherwise
        """
        current = (start_dir or Path.cwd()).resolve()
        for path in [current] + list(current.parents):
            config_path = path / CONFIG_DIR_NAME / CONFIG_FILE_NAME
            if config_path.exists():
                return config_path
        return None

    @classmethod
    def create_with_backtrack(cls, start_dir: Optional[Path] = None) -> "ConfigManager":
        """Create a ConfigManager for the nearest config file.

        Uses <start_dir>/.lfs-scanner/config.json when none is found.
        """
        config_path = cls.find_config_path(start_dir)
        if config_path is None:
            start = start_dir or Path.cwd()
            config_path = start / CONFIG_DIR_NAME / CONFIG_FILE_NAME
        return cls(config_path)
