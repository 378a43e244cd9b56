"""
Tests for sandboxed workspace access.
"""

import json
import os
import tempfile
from pathlib import Path

import pytest
from pydantic import ValidationError

from workspace_toolkit.filesystem import (
    DirectoryRequiredError,
    EditError,
    ErrorKind,
    FileAccessDeniedError,
    FileRequiredError,
    FileSizeLimitExceededError,
    FileSystemConfig,
    InvalidPathError,
    LLMFileSystemTools,
    OperationResult,
    PathEscapeError,
    PathNotFoundError,
    RestrictedFileReader,
    RestrictedFileWriter,
    SearchBackendType,
    Workspace,
)
from workspace_toolkit.filesystem.paths import display_path, resolve, to_relative


@pytest.fixture
def temp_dir():
    """Create a temporary workspace with a few files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir).resolve()
        (root / "subdir").mkdir()
        (root / "hello.txt").write_text("Hello, world!\n")
        (root / "subdir" / "code.py").write_text("def main():\n    return 1\n")
        yield root


@pytest.fixture
def config():
    """Create a test filesystem configuration."""
    return FileSystemConfig(
        max_file_size_bytes=1000,
        max_write_size_bytes=100,
        search_backend="python",
        search_timeout_seconds=5.0,
    )


@pytest.fixture
def reader(temp_dir, config):
    """Create a RestrictedFileReader instance."""
    return RestrictedFileReader(temp_dir, config)


@pytest.fixture
def writer(temp_dir, config):
    """Create a RestrictedFileWriter instance."""
    return RestrictedFileWriter(temp_dir, config)


@pytest.fixture
def workspace(temp_dir, config):
    """Create a Workspace instance."""
    return Workspace(temp_dir, config)


@pytest.fixture
def llm_tools(workspace):
    """Create a LLMFileSystemTools instance."""
    return LLMFileSystemTools(workspace)


class TestFileSystemConfig:
    """Test FileSystemConfig."""

    def test_default_config(self):
        """Test default configuration."""
        config = FileSystemConfig()
        assert config.allow_write is True
        assert config.max_file_size_bytes == 10_000_000
        assert config.follow_symlinks is False
        assert config.search_backend == SearchBackendType.RIPGREP
        assert config.ripgrep_path == "rg"
        assert config.search_timeout_seconds == 30.0

    def test_from_yaml_file(self, temp_dir):
        """Test loading configuration from YAML."""
        config_file = temp_dir / "config.yaml"
        config_file.write_text(
            "allow_write: false\n"
            "search_backend: python\n"
            "search_timeout_seconds: 10\n"
        )

        config = FileSystemConfig.from_file(config_file)
        assert config.allow_write is False
        assert config.search_backend == SearchBackendType.PYTHON
        assert config.search_timeout_seconds == 10.0

    def test_from_json_file(self, temp_dir):
        """Test loading configuration from JSON."""
        config_file = temp_dir / "config.json"
        config_file.write_text(json.dumps({"max_file_size_bytes": 42, "follow_symlinks": True}))

        config = FileSystemConfig.from_file(config_file)
        assert config.max_file_size_bytes == 42
        assert config.follow_symlinks is True

    def test_empty_yaml_file_uses_defaults(self, temp_dir):
        config_file = temp_dir / "empty.yaml"
        config_file.write_text("")

        assert FileSystemConfig.from_file(config_file).allow_write is True

    def test_missing_file(self, temp_dir):
        with pytest.raises(FileNotFoundError):
            FileSystemConfig.from_file(temp_dir / "nope.yaml")

    def test_environment_variables(self, monkeypatch):
        """Test WORKSPACE_TOOLKIT_* environment variables."""
        monkeypatch.setenv("WORKSPACE_TOOLKIT_ALLOW_WRITE", "false")
        monkeypatch.setenv("WORKSPACE_TOOLKIT_SEARCH_BACKEND", "python")

        config = FileSystemConfig()
        assert config.allow_write is False
        assert config.search_backend == SearchBackendType.PYTHON

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError):
            FileSystemConfig.from_dict({"allowed_directories": ["/tmp"]})

    def test_timeout_bounds(self):
        with pytest.raises(ValidationError):
            FileSystemConfig(search_timeout_seconds=0)
        with pytest.raises(ValidationError):
            FileSystemConfig(search_timeout_seconds=301)
        assert FileSystemConfig(search_timeout_seconds=None).search_timeout_seconds is None

    def test_ripgrep_path_expanded(self):
        config = FileSystemConfig(ripgrep_path="~/bin/rg")
        assert config.ripgrep_path == str(Path.home() / "bin" / "rg")
        assert FileSystemConfig(ripgrep_path="rg").ripgrep_path == "rg"


class TestPaths:
    """Test workspace path helpers."""

    def test_resolve_inside(self, temp_dir):
        assert resolve(temp_dir, "subdir/code.py") == temp_dir / "subdir" / "code.py"
        assert resolve(temp_dir, "") == temp_dir
        assert resolve(temp_dir, None) == temp_dir
        assert resolve(temp_dir, "subdir/../hello.txt") == temp_dir / "hello.txt"

    def test_resolve_parent_escape(self, temp_dir):
        with pytest.raises(PathEscapeError) as exc_info:
            resolve(temp_dir, "../outside.txt")
        assert str(exc_info.value) == "Path traversal detected: path must be within workspace"

    def test_resolve_absolute_path_escape(self, temp_dir):
        with pytest.raises(PathEscapeError):
            resolve(temp_dir, "/etc/passwd")

    def test_resolve_absolute_path_inside(self, temp_dir):
        assert resolve(temp_dir, str(temp_dir / "hello.txt")) == temp_dir / "hello.txt"

    def test_resolve_custom_message(self, temp_dir):
        with pytest.raises(PathEscapeError, match="Custom message"):
            resolve(temp_dir, "..", message="Custom message")

    def test_resolve_symlink_escape(self, temp_dir):
        """A symlink pointing outside the root is rejected."""
        with tempfile.TemporaryDirectory() as outside:
            os.symlink(outside, temp_dir / "link")
            with pytest.raises(PathEscapeError):
                resolve(temp_dir, "link")

    def test_to_relative(self, temp_dir):
        assert to_relative(temp_dir, temp_dir / "subdir" / "code.py") == "subdir/code.py"
        assert to_relative(temp_dir, "subdir/./code.py") == "subdir/code.py"
        assert to_relative(temp_dir, temp_dir) == "."

    def test_display_path(self):
        assert display_path("") == "."
        assert display_path(None) == "."
        assert display_path("src") == "src"


class TestRestrictedFileReader:
    """Test RestrictedFileReader."""

    def test_read_file(self, reader):
        """Test reading a file."""
        assert reader.read_file("hello.txt") == "Hello, world!\n"
        assert reader.read_file("subdir/code.py").startswith("def main")

    def test_read_outside_workspace(self, reader):
        """Test that traversal is rejected with the offending path."""
        with pytest.raises(PathEscapeError) as exc_info:
            reader.read_file("../../etc/passwd")
        assert str(exc_info.value) == "Path traversal detected: ../../etc/passwd is outside workspace"

    def test_read_nonexistent_file(self, reader):
        with pytest.raises(PathNotFoundError) as exc_info:
            reader.read_file("missing.txt")
        assert str(exc_info.value) == "File not found: missing.txt"

    def test_read_directory(self, reader):
        with pytest.raises(FileRequiredError) as exc_info:
            reader.read_file("subdir")
        assert str(exc_info.value) == "Path is not a file: subdir"

    def test_read_file_too_large(self, reader, temp_dir):
        """Test that large files are rejected."""
        (temp_dir / "large.txt").write_text("x" * 2000)

        with pytest.raises(FileSizeLimitExceededError) as exc_info:
            reader.read_file("large.txt")
        assert exc_info.value.size == 2000
        assert exc_info.value.limit == 1000

    def test_list_root(self, reader):
        """Directories are listed first."""
        entries = reader.list_directory()
        assert [(e.name, e.is_directory) for e in entries] == [
            ("subdir", True),
            ("hello.txt", False),
        ]
        assert entries[1].path == "hello.txt"
        assert entries[1].size == len("Hello, world!\n")

    def test_list_subdirectory(self, reader):
        entries = reader.list_directory("subdir")
        assert [e.path for e in entries] == ["subdir/code.py"]

    def test_list_skips_dangling_symlink(self, reader, temp_dir):
        os.symlink(temp_dir / "gone", temp_dir / "dangling")
        assert "dangling" not in [e.name for e in reader.list_directory()]

    def test_list_missing_directory(self, reader):
        with pytest.raises(PathNotFoundError) as exc_info:
            reader.list_directory("nope")
        assert str(exc_info.value) == "Directory not found: nope"

    def test_list_file(self, reader):
        with pytest.raises(DirectoryRequiredError) as exc_info:
            reader.list_directory("hello.txt")
        assert str(exc_info.value) == "Not a directory: hello.txt"

    def test_list_outside_workspace(self, reader):
        with pytest.raises(PathEscapeError):
            reader.list_directory("..")


class TestRestrictedFileWriter:
    """Test RestrictedFileWriter."""

    def test_write_new_file(self, writer, temp_dir):
        """Parent directories are created."""
        writer.write_file("new/nested/file.txt", "content")
        assert (temp_dir / "new" / "nested" / "file.txt").read_text() == "content"

    def test_overwrite(self, writer, temp_dir):
        writer.write_file("hello.txt", "replaced")
        assert (temp_dir / "hello.txt").read_text() == "replaced"

    def test_write_outside_workspace(self, writer):
        with pytest.raises(PathEscapeError) as exc_info:
            writer.write_file("../escape.txt", "x")
        assert str(exc_info.value) == "Path escapes workspace"

    def test_write_to_directory(self, writer):
        with pytest.raises(FileRequiredError) as exc_info:
            writer.write_file("subdir", "x")
        assert str(exc_info.value) == "Path is a directory, not a file: subdir"

    def test_write_too_large(self, writer):
        with pytest.raises(FileSizeLimitExceededError):
            writer.write_file("big.txt", "x" * 101)

    def test_write_disabled(self, temp_dir):
        writer = RestrictedFileWriter(temp_dir, FileSystemConfig(allow_write=False))
        with pytest.raises(FileAccessDeniedError) as exc_info:
            writer.write_file("new.txt", "x")
        assert str(exc_info.value) == "Write operations are disabled: new.txt"
        assert not (temp_dir / "new.txt").exists()

    def test_edit_single_occurrence(self, writer, temp_dir):
        assert writer.edit_file("hello.txt", "world", "workspace") == 1
        assert (temp_dir / "hello.txt").read_text() == "Hello, workspace!\n"

    def test_edit_replace_all(self, writer, temp_dir):
        (temp_dir / "repeat.txt").write_text("a b a b a")
        assert writer.edit_file("repeat.txt", "a", "c", replace_all=True) == 3
        assert (temp_dir / "repeat.txt").read_text() == "c b c b c"

    def test_edit_multiple_occurrences_rejected(self, writer, temp_dir):
        (temp_dir / "repeat.txt").write_text("a b a")
        with pytest.raises(EditError) as exc_info:
            writer.edit_file("repeat.txt", "a", "c")
        assert str(exc_info.value) == (
            "Multiple occurrences found. Use replaceAll option to replace all occurrences."
        )
        assert (temp_dir / "repeat.txt").read_text() == "a b a"

    def test_edit_preserves_line_endings(self, writer, temp_dir):
        (temp_dir / "crlf.txt").write_bytes(b"one\r\ntwo\r\n")
        writer.edit_file("crlf.txt", "two", "three")
        assert (temp_dir / "crlf.txt").read_bytes() == b"one\r\nthree\r\n"

    @pytest.mark.parametrize(
        "path,old,new,error,message",
        [
            ("", "a", "b", InvalidPathError, "Relative path is required"),
            ("hello.txt", "", "b", EditError, "Old string cannot be empty"),
            ("hello.txt", "same", "same", EditError, "Old string and new string are identical"),
            (
                "../x.txt",
                "a",
                "b",
                PathEscapeError,
                "Path traversal detected - path must be within workspace",
            ),
            ("missing.txt", "a", "b", PathNotFoundError, "File not found: missing.txt"),
            ("subdir", "a", "b", FileRequiredError, "Path is a directory, not a file: subdir"),
            ("hello.txt", "absent", "b", EditError, "Old string not found in file"),
        ],
    )
    def test_edit_errors(self, writer, path, old, new, error, message):
        with pytest.raises(error) as exc_info:
            writer.edit_file(path, old, new)
        assert str(exc_info.value) == message

    def test_edit_disabled(self, temp_dir):
        writer = RestrictedFileWriter(temp_dir, FileSystemConfig(allow_write=False))
        with pytest.raises(FileAccessDeniedError):
            writer.edit_file("hello.txt", "world", "there")
        assert (temp_dir / "hello.txt").read_text() == "Hello, world!\n"


class TestWorkspace:
    """Test the Workspace facade."""

    def test_read(self, workspace):
        result = workspace.read("hello.txt")
        assert result.success is True
        assert result.data == "Hello, world!\n"
        assert result.error is None

    def test_read_failure_is_a_value(self, workspace):
        result = workspace.read("missing.txt")
        assert isinstance(result, OperationResult)
        assert result.success is False
        assert result.error == "File not found: missing.txt"
        assert result.error_kind == ErrorKind.NOT_FOUND

    def test_write_and_edit(self, workspace, temp_dir):
        assert workspace.write("a/b.txt", "one two").success
        result = workspace.edit("a/b.txt", "two", "three")
        assert result.success
        assert result.data is None
        assert (temp_dir / "a" / "b.txt").read_text() == "one three"

    def test_edit_failure(self, workspace):
        result = workspace.edit("hello.txt", "absent", "x")
        assert not result.success
        assert result.error == "Old string not found in file"
        assert result.error_kind == ErrorKind.EDIT_FAILED

    def test_write_escape(self, workspace):
        result = workspace.write("../x.txt", "x")
        assert not result.success
        assert result.error == "Path escapes workspace"
        assert result.error_kind == ErrorKind.PATH_ESCAPE

    def test_list(self, workspace):
        result = workspace.list()
        assert result.success
        assert [e.name for e in result.data] == ["subdir", "hello.txt"]

    def test_glob(self, workspace):
        result = workspace.glob("**/*.py")
        assert result.success
        assert result.data == ["subdir/code.py"]

    def test_glob_errors(self, workspace):
        assert workspace.glob("").error == "Pattern is required"
        assert workspace.glob("*", "nope").error == "Directory not found: nope"
        assert workspace.glob("*", "hello.txt").error == "Not a directory: hello.txt"
        assert workspace.glob("*", "../..").error == (
            "Path traversal detected: path must be within workspace"
        )

    @pytest.mark.asyncio
    async def test_grep(self, workspace):
        result = await workspace.grep({"pattern": "return", "output_mode": "content"})
        assert result.success
        assert result.data.data[0].path == "subdir/code.py"
        assert result.data.data[0].matches[0].line == 2

    @pytest.mark.asyncio
    async def test_grep_invalid_options(self, workspace):
        result = await workspace.grep({"pattern": "x", "output_mode": "lines"})
        assert not result.success
        assert result.error.startswith("Invalid grep options: ")
        assert result.error_kind == ErrorKind.INVALID_OPTIONS

        result = await workspace.grep({"pattern": "x", "-C": -1})
        assert result.error_kind == ErrorKind.INVALID_OPTIONS

        result = await workspace.grep({"pattern": "x", "unknown": True})
        assert result.error_kind == ErrorKind.INVALID_OPTIONS

    @pytest.mark.asyncio
    async def test_grep_camel_case_options(self, workspace):
        """camelCase option names are accepted alongside the short flags."""
        result = await workspace.grep(
            {
                "pattern": "RETURN",
                "output_mode": "content",
                "caseInsensitive": True,
                "showLineNumbers": False,
                "contextBefore": 1,
                "contextAfter": 0,
                "headLimit": 1,
            }
        )
        assert result.success
        found = result.data.data[0].matches[0]
        assert found.line == 2
        assert found.column is None
        assert found.before_context == ["def main():"]

        result = await workspace.grep(
            {"pattern": "return", "output_mode": "content", "contextAround": 1}
        )
        assert result.data.data[0].matches[0].before_context == ["def main():"]

    @pytest.mark.asyncio
    async def test_grep_empty_pattern(self, workspace):
        result = await workspace.grep({"pattern": ""})
        assert not result.success
        assert result.error == "pattern is required"
        assert result.error_kind == ErrorKind.INVALID_PATTERN

    @pytest.mark.asyncio
    async def test_grep_escape(self, workspace):
        result = await workspace.grep({"pattern": "x", "path": "../"})
        assert result.error == "Search path must be within workspace"


class TestLLMFileSystemTools:
    """Test LLMFileSystemTools."""

    def test_get_tool_schemas(self, llm_tools):
        """Test getting tool schemas."""
        schemas = llm_tools.get_tool_schemas()
        names = [s["function"]["name"] for s in schemas]
        assert names == ["read_file", "list_directory", "glob", "grep", "write_file", "edit_file"]
        for schema in schemas:
            assert schema["type"] == "function"
            assert "description" in schema["function"]
            assert "parameters" in schema["function"]

    def test_grep_schema_uses_short_flags(self, llm_tools):
        grep = next(s for s in llm_tools.get_tool_schemas() if s["function"]["name"] == "grep")
        properties = grep["function"]["parameters"]["properties"]
        assert {"pattern", "-i", "-n", "-B", "-A", "-C", "head_limit"} <= set(properties)
        assert grep["function"]["parameters"]["required"] == ["pattern"]

    def test_write_tools_hidden_when_disabled(self, temp_dir):
        tools = LLMFileSystemTools(Workspace(temp_dir, FileSystemConfig(allow_write=False)))
        names = [s["function"]["name"] for s in tools.get_tool_schemas()]
        assert "write_file" not in names
        assert "edit_file" not in names

    @pytest.mark.asyncio
    async def test_execute_read_file(self, llm_tools):
        result = await llm_tools.execute_tool("read_file", {"path": "hello.txt"})
        assert result == {"success": True, "data": "Hello, world!\n"}

    @pytest.mark.asyncio
    async def test_execute_failure(self, llm_tools):
        result = await llm_tools.execute_tool("read_file", {"path": "missing.txt"})
        assert result == {
            "success": False,
            "error": "File not found: missing.txt",
            "error_kind": "not_found",
        }

    @pytest.mark.asyncio
    async def test_execute_glob(self, llm_tools):
        result = await llm_tools.execute_tool("glob", {"pattern": "**/*"})
        assert result["data"] == ["hello.txt", "subdir/code.py"]

    @pytest.mark.asyncio
    async def test_execute_list_directory(self, llm_tools):
        result = await llm_tools.execute_tool("list_directory", {})
        assert [entry["name"] for entry in result["data"]] == ["subdir", "hello.txt"]
        assert isinstance(result["data"][0]["modified_time"], str)

    @pytest.mark.asyncio
    async def test_execute_grep_content(self, llm_tools):
        result = await llm_tools.execute_tool(
            "grep",
            {"pattern": "return", "output_mode": "content", "-B": 1},
        )
        assert result["success"] is True
        assert result["data"]["mode"] == "content"
        found = result["data"]["data"][0]["matches"][0]
        assert found["line"] == 2
        assert found["column"] == 5
        assert found["beforeContext"] == ["def main():"]
        assert "afterContext" not in found

    @pytest.mark.asyncio
    async def test_execute_write_and_edit(self, llm_tools, temp_dir):
        result = await llm_tools.execute_tool("write_file", {"path": "n.txt", "content": "abc"})
        assert result == {"success": True}

        result = await llm_tools.execute_tool(
            "edit_file",
            {"path": "n.txt", "old_string": "b", "new_string": "B", "replace_all": True},
        )
        assert result["success"] is True
        assert (temp_dir / "n.txt").read_text() == "aBc"

    @pytest.mark.asyncio
    async def test_execute_bad_arguments(self, llm_tools):
        result = await llm_tools.execute_tool("read_file", {"file": "hello.txt"})
        assert result["success"] is False
        assert result["error_kind"] == "invalid_options"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, llm_tools):
        with pytest.raises(ValueError, match="Unknown tool: delete_file"):
            await llm_tools.execute_tool("delete_file", {"path": "hello.txt"})

    @pytest.mark.asyncio
    async def test_write_tool_unavailable_when_disabled(self, temp_dir):
        tools = LLMFileSystemTools(Workspace(temp_dir, FileSystemConfig(allow_write=False)))
        with pytest.raises(ValueError, match="Unknown tool: write_file"):
            await tools.execute_tool("write_file", {"path": "x.txt", "content": "x"})

    def test_get_summary(self, llm_tools, temp_dir):
        summary = llm_tools.get_summary()
        assert summary["root"] == str(temp_dir)
        assert summary["allow_write"] is True
        assert summary["max_file_size_mb"] == 0.001
        assert summary["search_backend"] == "python"
        assert summary["search_timeout_seconds"] == 5.0
        assert "grep" in summary["tools"]
