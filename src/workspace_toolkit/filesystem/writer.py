"""
Restricted file writer for workspace file creation and editing.
"""

import logging
from pathlib import Path
from typing import Optional

from workspace_toolkit.filesystem.config import FileSystemConfig
from workspace_toolkit.filesystem.exceptions import (
    EditError,
    FileAccessDeniedError,
    FileRequiredError,
    FileSizeLimitExceededError,
    InvalidPathError,
    PathNotFoundError,
)
from workspace_toolkit.filesystem.paths import resolve

logger = logging.getLogger(__name__)


class RestrictedFileWriter:
    """
    File writer confined to a workspace root.

    Usage:
        writer = RestrictedFileWriter(Path("/tmp/workspace"))
        writer.write_file("notes/todo.txt", "Hello, world!")
        writer.edit_file("notes/todo.txt", "world", "workspace")
    """

    def __init__(self, root: Path, config: Optional[FileSystemConfig] = None):
        """
        Initialize the file writer.

        Args:
            root: Workspace root directory
            config: Filesystem access configuration
        """
        self.root = Path(root).expanduser().resolve()
        self.config = config or FileSystemConfig()

    def write_file(self, relative_path: str, content: str) -> None:
        """
        Write content to a file, creating or overwriting it.

        Parent directories are created as needed.

        Args:
            relative_path: Path relative to the workspace root
            content: Content to write

        Raises:
            FileAccessDeniedError: If writes are disabled
            PathEscapeError: If the path leaves the workspace
            FileRequiredError: If the path is an existing directory
            FileSizeLimitExceededError: If content is too large
        """
        self._check_write_enabled(relative_path)
        resolved_path = resolve(self.root, relative_path, message="Path escapes workspace")

        if resolved_path.is_dir():
            raise FileRequiredError(relative_path, "Path is a directory, not a file")

        content_bytes = content.encode(self.config.encoding)
        if len(content_bytes) > self.config.max_write_size_bytes:
            logger.warning(
                f"Content too large: {len(content_bytes)} bytes > "
                f"{self.config.max_write_size_bytes} bytes"
            )
            raise FileSizeLimitExceededError(
                relative_path, len(content_bytes), self.config.max_write_size_bytes
            )

        if not resolved_path.parent.exists():
            resolved_path.parent.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Created parent directories for {resolved_path}")

        resolved_path.write_bytes(content_bytes)
        logger.info(f"Wrote file: {resolved_path} ({len(content_bytes)} bytes)")

    def edit_file(
        self,
        relative_path: str,
        old_string: str,
        new_string: str,
        replace_all: bool = False,
    ) -> int:
        """
        Replace ``old_string`` with ``new_string`` in a file.

        Without ``replace_all`` the old string must occur exactly once.

        Args:
            relative_path: Path relative to the workspace root
            old_string: Exact text to replace
            new_string: Replacement text
            replace_all: Replace every occurrence

        Returns:
            Number of replacements made

        Raises:
            InvalidPathError: If no path was given
            EditError: If the edit is empty, a no-op, or ambiguous
            PathEscapeError: If the path leaves the workspace
            PathNotFoundError: If the file doesn't exist
            FileRequiredError: If the path is a directory
        """
        if not relative_path:
            raise InvalidPathError("", "Relative path is required")
        if not old_string:
            raise EditError("Old string cannot be empty")
        if old_string == new_string:
            raise EditError("Old string and new string are identical")

        self._check_write_enabled(relative_path)
        resolved_path = resolve(
            self.root,
            relative_path,
            message="Path traversal detected - path must be within workspace",
        )

        if not resolved_path.exists():
            raise PathNotFoundError(relative_path)
        if resolved_path.is_dir():
            raise FileRequiredError(relative_path, "Path is a directory, not a file")

        # newline="" keeps CRLF files byte-for-byte outside the edited span.
        with open(resolved_path, "r", encoding=self.config.encoding, newline="") as f:
            content = f.read()

        occurrences = content.count(old_string)
        if occurrences == 0:
            raise EditError("Old string not found in file")
        if occurrences > 1 and not replace_all:
            raise EditError(
                "Multiple occurrences found. Use replaceAll option to replace all occurrences."
            )

        new_content = content.replace(old_string, new_string)
        with open(resolved_path, "w", encoding=self.config.encoding, newline="") as f:
            f.write(new_content)
        logger.info(f"Edited file: {resolved_path} ({occurrences} replacements)")
        return occurrences

    def _check_write_enabled(self, relative_path: str) -> None:
        if not self.config.allow_write:
            logger.warning(f"Write access denied to {relative_path}: writes disabled")
            raise FileAccessDeniedError(relative_path, "Write operations are disabled")
