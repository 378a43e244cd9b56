"""
Sandboxed filesystem primitives for AI agents.

This module provides read, write, edit, list, glob and grep operations
confined to a workspace directory, returning structured results that
can be exposed to LLMs through function calling.
"""

from workspace_toolkit.filesystem.backend import (
    PythonSearchBackend,
    RipgrepBackend,
    SearchBackend,
    SearchRequest,
)
from workspace_toolkit.filesystem.config import FileSystemConfig, SearchBackendType
from workspace_toolkit.filesystem.exceptions import (
    DirectoryRequiredError,
    EditError,
    ErrorKind,
    FileAccessDeniedError,
    FileRequiredError,
    FileSizeLimitExceededError,
    FileSystemError,
    InvalidPathError,
    InvalidPatternError,
    PathEscapeError,
    PathNotFoundError,
    SearchBackendMissingError,
    SearchError,
)
from workspace_toolkit.filesystem.matcher import GlobMatcher, compile_glob
from workspace_toolkit.filesystem.models import (
    ContentResult,
    CountResult,
    FileInfo,
    FilesWithMatchesResult,
    GrepCount,
    GrepFileMatches,
    GrepMatch,
    GrepOptions,
    GrepResult,
    OperationResult,
    OutputMode,
)
from workspace_toolkit.filesystem.reader import RestrictedFileReader
from workspace_toolkit.filesystem.search import SearchReconciler
from workspace_toolkit.filesystem.tools import LLMFileSystemTools
from workspace_toolkit.filesystem.workspace import Workspace
from workspace_toolkit.filesystem.writer import RestrictedFileWriter

__all__ = [
    # Configuration
    "FileSystemConfig",
    "SearchBackendType",
    # Exceptions
    "ErrorKind",
    "FileSystemError",
    "FileAccessDeniedError",
    "FileSizeLimitExceededError",
    "InvalidPathError",
    "PathEscapeError",
    "PathNotFoundError",
    "DirectoryRequiredError",
    "FileRequiredError",
    "InvalidPatternError",
    "EditError",
    "SearchError",
    "SearchBackendMissingError",
    # Models
    "OperationResult",
    "FileInfo",
    "OutputMode",
    "GrepOptions",
    "GrepMatch",
    "GrepFileMatches",
    "GrepCount",
    "ContentResult",
    "FilesWithMatchesResult",
    "CountResult",
    "GrepResult",
    # Components
    "GlobMatcher",
    "compile_glob",
    "SearchReconciler",
    "SearchBackend",
    "SearchRequest",
    "RipgrepBackend",
    "PythonSearchBackend",
    "RestrictedFileReader",
    "RestrictedFileWriter",
    "Workspace",
    "LLMFileSystemTools",
]
