"""
Path helpers that keep every operation inside the workspace root.
"""

import os
from pathlib import Path
from typing import Optional, Union

from workspace_toolkit.filesystem.exceptions import InvalidPathError, PathEscapeError

PathLike = Union[str, Path]


def is_within_directory(path: Path, directory: Path) -> bool:
    """Check if path is within directory (prevents path traversal)."""
    try:
        path.relative_to(directory)
        return True
    except ValueError:
        return False


def resolve(root: Path, relative: Optional[PathLike] = None, message: Optional[str] = None) -> Path:
    """
    Resolve a workspace-relative path to an absolute path inside ``root``.

    Symbolic links are resolved before the containment check, so a link
    pointing outside the workspace is rejected like ``../`` would be.

    Args:
        root: Workspace root (already resolved)
        relative: Path relative to the root; empty or None means the root
        message: Error message to use when the path escapes the root

    Returns:
        Absolute, resolved path

    Raises:
        PathEscapeError: If the path resolves outside the root
        InvalidPathError: If the path cannot be resolved
    """
    relative = "" if relative is None else str(relative)
    try:
        resolved = (root / relative).resolve()
    except (OSError, RuntimeError) as e:
        raise InvalidPathError(relative, f"Cannot resolve path: {e}")

    if not is_within_directory(resolved, root):
        if message is None:
            raise PathEscapeError(relative)
        raise PathEscapeError(relative, message)
    return resolved


def to_relative(root: Path, path: PathLike) -> str:
    """
    Express ``path`` relative to ``root`` using ``/`` separators.

    Relative inputs are interpreted against ``root``. The path is only
    normalized lexically so symlinked entries keep their visible name.
    """
    absolute = os.path.normpath(os.path.join(root, path))
    relative = os.path.relpath(absolute, root)
    return normalize_separators(relative)


def normalize_separators(path: str) -> str:
    """Convert host separators to ``/``."""
    if os.sep != "/":
        path = path.replace(os.sep, "/")
    if os.altsep and os.altsep != "/":
        path = path.replace(os.altsep, "/")
    return path


def display_path(relative: Optional[PathLike]) -> str:
    """Path as echoed back in error messages ("." for the root)."""
    return str(relative) if relative else "."
