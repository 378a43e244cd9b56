"""
Unified LLM filesystem tools interface.

Provides a high-level interface for LLMs to interact with a workspace
through function calling (OpenAI function calling format).
"""

import logging
from typing import Any

from workspace_toolkit.filesystem.exceptions import ErrorKind
from workspace_toolkit.filesystem.models import GrepOptions, OperationResult
from workspace_toolkit.filesystem.workspace import Workspace

logger = logging.getLogger(__name__)


def _function(name: str, description: str, parameters: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": parameters,
        },
    }


class LLMFileSystemTools:
    """
    Workspace operations exposed for LLM function calling.

    Usage:
        tools = LLMFileSystemTools(Workspace("/tmp/workspace"))

        # Get tool schemas for LLM
        schemas = tools.get_tool_schemas()

        # Execute tool call
        result = await tools.execute_tool(
            tool_name="glob",
            arguments={"pattern": "**/*.py"}
        )
    """

    def __init__(self, workspace: Workspace):
        """
        Initialize LLM filesystem tools.

        Args:
            workspace: Workspace the tools operate on
        """
        self.workspace = workspace

    def get_tool_schemas(self) -> list[dict[str, Any]]:
        """
        Get OpenAI function calling schemas for all available tools.

        Write tools are only included when the configuration allows writes.

        Returns:
            List of tool schemas in OpenAI format
        """
        schemas = [
            _function(
                "read_file",
                "Read the contents of a file in the workspace.",
                {
                    "type": "object",
                    "properties": {
                        "path": {
                            "type": "string",
                            "description": "Path to the file, relative to the workspace root",
                        },
                    },
                    "required": ["path"],
                },
            ),
            _function(
                "list_directory",
                "List files and directories in a workspace directory. "
                "Directories are listed first.",
                {
                    "type": "object",
                    "properties": {
                        "path": {
                            "type": "string",
                            "description": "Directory relative to the workspace root (default: root)",
                        },
                    },
                },
            ),
            _function(
                "glob",
                "Find files by glob pattern. Supports *, ** and ?. "
                "Returns paths relative to the workspace root, sorted.",
                {
                    "type": "object",
                    "properties": {
                        "pattern": {
                            "type": "string",
                            "description": "Glob pattern (e.g., '**/*.py', 'src/*.ts')",
                        },
                        "path": {
                            "type": "string",
                            "description": "Directory to search in (default: workspace root)",
                        },
                    },
                    "required": ["pattern"],
                },
            ),
            _function(
                "grep",
                "Search file contents with a regular expression. "
                "Returns matching files, match counts, or matching lines with context.",
                GrepOptions.model_json_schema(by_alias=True),
            ),
        ]

        if self.workspace.config.allow_write:
            schemas.extend([
                _function(
                    "write_file",
                    "Write content to a file. Creates the file and parent directories "
                    "if they don't exist, overwrites if it does.",
                    {
                        "type": "object",
                        "properties": {
                            "path": {
                                "type": "string",
                                "description": "Path to the file, relative to the workspace root",
                            },
                            "content": {
                                "type": "string",
                                "description": "Content to write to the file",
                            },
                        },
                        "required": ["path", "content"],
                    },
                ),
                _function(
                    "edit_file",
                    "Replace an exact string in a file. The old string must be unique "
                    "unless replace_all is set.",
                    {
                        "type": "object",
                        "properties": {
                            "path": {
                                "type": "string",
                                "description": "Path to the file, relative to the workspace root",
                            },
                            "old_string": {
                                "type": "string",
                                "description": "Text to replace",
                            },
                            "new_string": {
                                "type": "string",
                                "description": "Replacement text",
                            },
                            "replace_all": {
                                "type": "boolean",
                                "description": "Replace all occurrences (default: false)",
                            },
                        },
                        "required": ["path", "old_string", "new_string"],
                    },
                ),
            ])

        return schemas

    async def execute_tool(
        self, tool_name: str, arguments: dict[str, Any]
    ) -> dict[str, Any]:
        """
        Execute a tool call from an LLM.

        Args:
            tool_name: Name of the tool to execute
            arguments: Tool arguments (from LLM function call)

        Returns:
            Serialized OperationResult

        Raises:
            ValueError: If tool name is unknown
        """
        workspace = self.workspace
        handlers = {
            "read_file": workspace.read,
            "list_directory": workspace.list,
            "glob": workspace.glob,
        }
        if workspace.config.allow_write:
            handlers["write_file"] = workspace.write
            handlers["edit_file"] = workspace.edit

        if tool_name == "grep":
            result = await workspace.grep(arguments)
        elif tool_name in handlers:
            try:
                result = handlers[tool_name](**arguments)
            except TypeError as e:
                logger.warning(f"LLM {tool_name} called with bad arguments: {e}")
                result = OperationResult.fail(
                    f"Invalid arguments for {tool_name}: {e}", ErrorKind.INVALID_OPTIONS
                )
        else:
            raise ValueError(f"Unknown tool: {tool_name}")

        if not result.success:
            logger.warning(f"LLM {tool_name} failed: {result.error}")
        return result.model_dump(mode="json", by_alias=True, exclude_none=True)

    def get_summary(self) -> dict[str, Any]:
        """
        Get a summary of the workspace tool configuration.

        Returns:
            Dict with configuration summary
        """
        config = self.workspace.config
        return {
            "root": str(self.workspace.root),
            "allow_write": config.allow_write,
            "max_file_size_mb": config.max_file_size_bytes / 1_000_000,
            "max_write_size_mb": config.max_write_size_bytes / 1_000_000,
            "follow_symlinks": config.follow_symlinks,
            "search_backend": config.search_backend.value,
            "search_timeout_seconds": config.search_timeout_seconds,
            "tools": [schema["function"]["name"] for schema in self.get_tool_schemas()],
        }
