"""
Restricted file reader for workspace access.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from workspace_toolkit.filesystem.config import FileSystemConfig
from workspace_toolkit.filesystem.exceptions import (
    DirectoryRequiredError,
    FileRequiredError,
    FileSizeLimitExceededError,
    PathNotFoundError,
)
from workspace_toolkit.filesystem.models import FileInfo
from workspace_toolkit.filesystem.paths import display_path, resolve, to_relative

logger = logging.getLogger(__name__)


class RestrictedFileReader:
    """
    File reader confined to a workspace root.

    All paths are relative to the root; anything resolving outside it
    (``..``, absolute paths, escaping symlinks) is rejected.

    Usage:
        reader = RestrictedFileReader(Path("/tmp/workspace"))

        try:
            content = reader.read_file("src/main.py")
        except FileSystemError as e:
            print(f"Read failed: {e}")
    """

    def __init__(self, root: Path, config: Optional[FileSystemConfig] = None):
        """
        Initialize the file reader.

        Args:
            root: Workspace root directory
            config: Filesystem access configuration
        """
        self.root = Path(root).expanduser().resolve()
        self.config = config or FileSystemConfig()

    def read_file(self, relative_path: str) -> str:
        """
        Read a text file from the workspace.

        Args:
            relative_path: Path relative to the workspace root

        Returns:
            File contents as string

        Raises:
            PathEscapeError: If the path leaves the workspace
            PathNotFoundError: If the file doesn't exist
            FileRequiredError: If the path is not a regular file
            FileSizeLimitExceededError: If the file is too large
        """
        resolved_path = resolve(
            self.root,
            relative_path,
            message=f"Path traversal detected: {relative_path} is outside workspace",
        )

        if not resolved_path.exists():
            raise PathNotFoundError(relative_path)

        if not resolved_path.is_file():
            raise FileRequiredError(relative_path)

        file_size = resolved_path.stat().st_size
        if file_size > self.config.max_file_size_bytes:
            logger.warning(
                f"File too large: {resolved_path} ({file_size} bytes > "
                f"{self.config.max_file_size_bytes} bytes)"
            )
            raise FileSizeLimitExceededError(
                relative_path, file_size, self.config.max_file_size_bytes
            )

        content = resolved_path.read_text(encoding=self.config.encoding)
        logger.debug(f"Read file: {resolved_path} ({file_size} bytes)")
        return content

    def list_directory(self, relative_path: str = "") -> list[FileInfo]:
        """
        List the entries of a workspace directory.

        Directories come first, then files; each group is sorted by name.

        Args:
            relative_path: Directory relative to the workspace root (default: root)

        Returns:
            List of FileInfo entries

        Raises:
            PathEscapeError: If the path leaves the workspace
            PathNotFoundError: If the directory doesn't exist
            DirectoryRequiredError: If the path is not a directory
        """
        resolved_dir = resolve(self.root, relative_path)

        if not resolved_dir.exists():
            raise PathNotFoundError(display_path(relative_path), "Directory not found")

        if not resolved_dir.is_dir():
            raise DirectoryRequiredError(display_path(relative_path))

        entries = []
        for item in resolved_dir.iterdir():
            try:
                stat = item.stat()
            except OSError as e:
                # Dangling symlinks and entries removed mid-listing.
                logger.warning(f"Skipping entry {item}: {e}")
                continue
            entries.append(
                FileInfo(
                    name=item.name,
                    path=to_relative(self.root, item),
                    is_directory=item.is_dir(),
                    size=stat.st_size,
                    modified_time=datetime.fromtimestamp(stat.st_mtime),
                )
            )

        entries.sort(key=lambda info: (not info.is_directory, info.name))
        logger.debug(f"Listed {len(entries)} entries in {resolved_dir}")
        return entries
