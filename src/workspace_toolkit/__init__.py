"""
Workspace Toolkit - sandboxed filesystem tools for AI agents.

This package gives agent frameworks read, write, edit, list, glob and
grep access to a single workspace directory, with every path checked
against the workspace root.
"""

__version__ = "0.1.0"

from workspace_toolkit.filesystem import (
    FileSystemConfig,
    FileSystemError,
    GrepOptions,
    LLMFileSystemTools,
    OperationResult,
    OutputMode,
    Workspace,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "FileSystemConfig",
    # Workspace
    "Workspace",
    "OperationResult",
    "FileSystemError",
    # Grep
    "GrepOptions",
    "OutputMode",
    # LLM tools
    "LLMFileSystemTools",
]
