"""
Glob pattern matching over the workspace tree.

Supported syntax:
    *     any run of characters except ``/``
    **/   zero or more complete path segments
    **    any characters including ``/``
    ?     exactly one character except ``/``

Character classes (``[...]``) and brace alternatives (``{a,b}``) are not
supported; brackets and braces match themselves literally.
"""

import logging
import os
import re
from collections.abc import Iterator
from pathlib import Path
from typing import Optional

from workspace_toolkit.filesystem.config import FileSystemConfig
from workspace_toolkit.filesystem.exceptions import (
    DirectoryRequiredError,
    InvalidPatternError,
    PathNotFoundError,
)
from workspace_toolkit.filesystem.paths import (
    display_path,
    is_within_directory,
    normalize_separators,
    resolve,
    to_relative,
)

logger = logging.getLogger(__name__)


def compile_glob(pattern: str) -> re.Pattern:
    """
    Translate a glob pattern into a compiled regular expression.

    The result must be applied with ``fullmatch`` against a path that uses
    ``/`` separators.

    Raises:
        InvalidPatternError: If the pattern is empty
    """
    if not pattern:
        raise InvalidPatternError("Pattern is required")

    pattern = normalize_separators(pattern)
    parts = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "*":
            if pattern.startswith("**/", i):
                parts.append("(?:.*/)?")
                i += 3
                continue
            if pattern.startswith("**", i):
                parts.append(".*")
                i += 2
                continue
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(char))
        i += 1

    return re.compile("".join(parts), re.DOTALL)


def iter_files(
    directory: Path,
    *,
    root: Optional[Path] = None,
    follow_symlinks: bool = False,
    include_hidden: bool = True,
) -> Iterator[Path]:
    """
    Yield every regular file below ``directory`` in path order.

    Directories are descended into but never yielded. A directory that
    cannot be read is logged and skipped; the walk continues with its
    siblings.

    Args:
        directory: Directory to walk
        root: When following symlinks, targets outside this directory are skipped
        follow_symlinks: Whether to follow symbolic links
        include_hidden: Whether to include entries whose name starts with "."
    """
    root = root or directory

    def walk(current: Path, ancestors: frozenset) -> Iterator[Path]:
        # A followed link back into an ancestor would loop forever.
        if follow_symlinks:
            real = current.resolve()
            if real in ancestors:
                logger.debug(f"Skipping symlink cycle at {current}")
                return
            ancestors = ancestors | {real}

        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.warning(f"Skipping unreadable directory {current}: {e}")
            return

        for entry in entries:
            if not include_hidden and entry.name.startswith("."):
                continue
            path = Path(entry.path)
            try:
                if entry.is_symlink():
                    if not follow_symlinks:
                        continue
                    if not is_within_directory(path.resolve(), root):
                        logger.debug(f"Skipping symlink leaving the workspace: {path}")
                        continue
                is_dir = entry.is_dir(follow_symlinks=follow_symlinks)
                is_file = not is_dir and entry.is_file(follow_symlinks=follow_symlinks)
            except OSError as e:
                logger.warning(f"Skipping unreadable entry {path}: {e}")
                continue
            if is_dir:
                yield from walk(path, ancestors)
            elif is_file:
                yield path

    yield from walk(directory, frozenset())


class GlobMatcher:
    """
    Find workspace files matching a glob pattern.

    Patterns are matched against paths relative to the search directory,
    while results are always returned relative to the workspace root.

    Usage:
        matcher = GlobMatcher(Path("/tmp/workspace"))
        matcher.match("**/*.py")           # ["pkg/a.py", "setup.py"]
        matcher.match("*.py", path="pkg")  # ["pkg/a.py"]
    """

    def __init__(self, root: Path, config: Optional[FileSystemConfig] = None):
        self.root = Path(root).expanduser().resolve()
        self.config = config or FileSystemConfig()

    def match(self, pattern: str, path: Optional[str] = None) -> list[str]:
        """
        Return sorted root-relative paths of files matching ``pattern``.

        Args:
            pattern: Glob pattern
            path: Directory to search in, relative to the root (default: root)

        Raises:
            InvalidPatternError: If the pattern is empty
            PathEscapeError: If ``path`` leaves the workspace
            PathNotFoundError: If the search directory does not exist
            DirectoryRequiredError: If the search path is not a directory
        """
        regex = compile_glob(pattern)
        base = self._resolve_directory(path)

        results = []
        for file_path in iter_files(
            base, root=self.root, follow_symlinks=self.config.follow_symlinks
        ):
            relative_to_base = normalize_separators(os.path.relpath(file_path, base))
            if regex.fullmatch(relative_to_base):
                results.append(to_relative(self.root, file_path))

        results.sort()
        logger.info(f"glob {pattern!r} in {display_path(path)} matched {len(results)} files")
        return results

    def _resolve_directory(self, path: Optional[str]) -> Path:
        base = resolve(self.root, path)
        if not base.exists():
            raise PathNotFoundError(display_path(path), "Directory not found")
        if not base.is_dir():
            raise DirectoryRequiredError(display_path(path))
        return base
