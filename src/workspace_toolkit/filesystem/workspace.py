"""
Workspace facade binding all filesystem primitives to one root.

Every method returns an ``OperationResult``; failures are reported as
values and never raised to the caller.
"""

import logging
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError

from workspace_toolkit.filesystem.backend import SearchBackend
from workspace_toolkit.filesystem.config import FileSystemConfig
from workspace_toolkit.filesystem.exceptions import ErrorKind, FileSystemError
from workspace_toolkit.filesystem.matcher import GlobMatcher
from workspace_toolkit.filesystem.models import FileInfo, GrepOptions, OperationResult
from workspace_toolkit.filesystem.reader import RestrictedFileReader
from workspace_toolkit.filesystem.search import SearchReconciler
from workspace_toolkit.filesystem.writer import RestrictedFileWriter

logger = logging.getLogger(__name__)


class Workspace:
    """
    Sandboxed filesystem operations on a single workspace directory.

    Usage:
        workspace = Workspace("/tmp/workspace")

        result = workspace.glob("**/*.py")
        if result.success:
            print(result.data)

        result = await workspace.grep({"pattern": "TODO", "output_mode": "count"})
    """

    def __init__(
        self,
        root: Union[str, Path],
        config: Optional[FileSystemConfig] = None,
        backend: Optional[SearchBackend] = None,
    ):
        self.root = Path(root).expanduser().resolve()
        self.config = config or FileSystemConfig()
        self.reader = RestrictedFileReader(self.root, self.config)
        self.writer = RestrictedFileWriter(self.root, self.config)
        self.matcher = GlobMatcher(self.root, self.config)
        self.search = SearchReconciler(self.root, self.config, backend)

    def read(self, path: str) -> OperationResult[str]:
        """Read a file's contents."""
        return self._call("read", self.reader.read_file, path)

    def write(self, path: str, content: str) -> OperationResult[None]:
        """Write content to a file (creates or overwrites)."""
        return self._call("write", self.writer.write_file, path, content)

    def edit(
        self, path: str, old_string: str, new_string: str, replace_all: bool = False
    ) -> OperationResult[None]:
        """Replace a substring in a file."""
        result = self._call(
            "edit", self.writer.edit_file, path, old_string, new_string, replace_all
        )
        if result.success:
            result.data = None
        return result

    def glob(self, pattern: str, path: Optional[str] = None) -> OperationResult[list[str]]:
        """Find files matching a glob pattern."""
        return self._call("glob", self.matcher.match, pattern, path)

    def list(self, path: str = "") -> OperationResult[list[FileInfo]]:
        """List the contents of a directory."""
        return self._call("list", self.reader.list_directory, path)

    async def grep(
        self, options: Union[GrepOptions, dict[str, Any]]
    ) -> OperationResult[Any]:
        """Search file contents for a regular expression."""
        try:
            if not isinstance(options, GrepOptions):
                options = GrepOptions.model_validate(options)
            return OperationResult.ok(await self.search.search(options))
        except ValidationError as e:
            return OperationResult.fail(
                f"Invalid grep options: {_summarize(e)}", ErrorKind.INVALID_OPTIONS
            )
        except FileSystemError as e:
            logger.warning(f"grep failed: {e}")
            return OperationResult.fail(e)
        except Exception as e:
            logger.error(f"grep unexpected error: {e}")
            return OperationResult.fail(str(e))

    def _call(self, name: str, func, *args: Any) -> OperationResult:
        try:
            return OperationResult.ok(func(*args))
        except FileSystemError as e:
            logger.warning(f"{name} failed: {e}")
            return OperationResult.fail(e)
        except Exception as e:
            logger.error(f"{name} unexpected error: {e}")
            return OperationResult.fail(str(e))

    def __repr__(self) -> str:
        return f"Workspace(root={str(self.root)!r}, config={self.config!r})"


def _summarize(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "options"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)
