"""Tools registry for dispatching model tool calls."""

from collections.abc import Callable, Iterable
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from code_agent.models.llm import CacheControl, LLMToolDefinition, ToolResultBlock
from code_agent.tools.base import ToolDefinition, ToolError, ToolErrorKind
from code_agent.tools.edit_file import create_edit_file_tool
from code_agent.tools.list_files import create_list_files_tool
from code_agent.tools.read_file import create_read_file_tool
from code_agent.utils.logging import get_logger

logger = get_logger(__name__)

TOOL_NOT_FOUND = "tool not found"

ToolTracer = Callable[[str, dict[str, Any]], None]


class ToolsRegistry:
    """Fixed set of tools, built once and never modified afterwards."""

    def __init__(self, tools: Iterable[ToolDefinition], tracer: ToolTracer | None = None):
        """Initialize the registry.

        Args:
            tools: Tool definitions; names must be unique
            tracer: Called with the tool name and raw input before each invocation
        """
        registered: dict[str, ToolDefinition] = {}
        for tool in tools:
            if tool.name in registered:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            registered[tool.name] = tool

        self._tools = MappingProxyType(registered)
        self._tracer = tracer

    def definitions(self) -> list[LLMToolDefinition]:
        """Tool catalog sent to the backend, in registration order.

        The last entry is marked for prompt caching so the whole catalog is cached.
        """
        tools = list(self._tools.values())
        return [
            LLMToolDefinition(
                name=tool.name,
                description=tool.description,
                input_schema=tool.get_json_schema(),
                cache_control=CacheControl() if i == len(tools) - 1 else None,
            )
            for i, tool in enumerate(tools)
        ]

    def dispatch(self, tool_use_id: str, name: str, tool_input: dict[str, Any]) -> ToolResultBlock:
        """Run one tool invocation and capture its outcome as a tool result.

        Never raises for tool-level problems: an unknown name, invalid input and
        handler failures all come back as ``is_error=True`` results.
        """
        tool = self._tools.get(name)
        if tool is None:
            logger.warning(f"Unknown tool requested: {name}")
            return ToolResultBlock(tool_use_id=tool_use_id, content=TOOL_NOT_FOUND, is_error=True)

        if self._tracer:
            self._tracer(name, tool_input)
        logger.debug(f"Executing tool: {name} with input: {tool_input}")

        try:
            params = tool.parse_input(tool_input)
        except ValidationError as e:
            outcome: str | ToolError = ToolError(ToolErrorKind.INVALID_INPUT, f"Invalid input for {name}: {e}")
        else:
            try:
                outcome = tool.handler(params)
            except Exception as e:
                logger.exception(f"Tool {name} raised")
                outcome = ToolError(ToolErrorKind.IO_ERROR, str(e) or type(e).__name__)

        if isinstance(outcome, ToolError):
            logger.info(f"Tool {name} failed ({outcome.kind.value}): {outcome.message}")
            return ToolResultBlock(tool_use_id=tool_use_id, content=outcome.message, is_error=True)

        logger.debug(f"Tool {name} succeeded: {outcome[:100]}")
        return ToolResultBlock(tool_use_id=tool_use_id, content=outcome, is_error=False)

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools


def create_default_registry(root: Path | None = None, tracer: ToolTracer | None = None) -> ToolsRegistry:
    """Build the registry of built-in file tools rooted at ``root`` (default: working directory)."""
    workspace = root if root is not None else Path.cwd()
    return ToolsRegistry(
        [
            create_read_file_tool(workspace),
            create_list_files_tool(workspace),
            create_edit_file_tool(workspace),
        ],
        tracer=tracer,
    )
