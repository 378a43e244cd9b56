"""
Configuration for workspace filesystem access.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SearchBackendType(str, Enum):
    """Available grep backends."""

    RIPGREP = "ripgrep"
    PYTHON = "python"


class FileSystemConfig(BaseSettings):
    """
    Configuration for sandboxed workspace operations.

    Values can be passed directly, loaded from a YAML/JSON file, or read
    from ``WORKSPACE_TOOLKIT_*`` environment variables.

    Example:
        ```python
        config = FileSystemConfig(
            allow_write=False,
            search_backend="python",
        )

        # Load from file
        config = FileSystemConfig.from_file("~/.workspace-toolkit.yaml")
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="WORKSPACE_TOOLKIT_",
        extra="forbid",
    )

    max_file_size_bytes: int = Field(
        default=10_000_000,  # 10 MB
        ge=0,
        description="Maximum file size that can be read (bytes)",
    )

    allow_write: bool = Field(
        default=True,
        description="Allow write and edit operations",
    )

    max_write_size_bytes: int = Field(
        default=10_000_000,  # 10 MB
        ge=0,
        description="Maximum size for content being written (bytes)",
    )

    follow_symlinks: bool = Field(
        default=False,
        description="Follow symbolic links while walking directories",
    )

    encoding: str = Field(
        default="utf-8",
        description="Text encoding used for reading and writing files",
    )

    search_backend: SearchBackendType = Field(
        default=SearchBackendType.RIPGREP,
        description="Backend used by grep (ripgrep or python)",
    )

    ripgrep_path: str = Field(
        default="rg",
        description="Name or path of the ripgrep executable",
    )

    search_timeout_seconds: Optional[float] = Field(
        default=30.0,
        gt=0,
        le=300.0,
        description="Timeout for search operations (seconds, None = no timeout)",
    )

    max_line_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        description="Longest single line accepted from the search backend (bytes)",
    )

    @field_validator("ripgrep_path")
    @classmethod
    def expand_ripgrep_path(cls, v: str) -> str:
        """Expand ``~`` in explicit executable paths."""
        if "/" in v:
            return str(Path(v).expanduser())
        return v

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "FileSystemConfig":
        """
        Load configuration from a YAML or JSON file.

        File format (YAML):
            ```yaml
            allow_write: false
            search_backend: python
            search_timeout_seconds: 10
            ```

        Args:
            path: Path to configuration file

        Returns:
            Loaded FileSystemConfig instance

        Raises:
            FileNotFoundError: If the config file doesn't exist
        """
        path = Path(path).expanduser().resolve()

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        content = path.read_text()

        if path.suffix == ".json":
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)

        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FileSystemConfig":
        """Create configuration from a dictionary."""
        return cls(**data)

    def __repr__(self) -> str:
        return (
            f"FileSystemConfig("
            f"allow_write={self.allow_write}, "
            f"backend={self.search_backend.value}, "
            f"max_size={self.max_file_size_bytes})"
        )
