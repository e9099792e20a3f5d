"""Tool registry for managing and dispatching tools."""

import logging
from collections.abc import Iterable
from typing import Any

from .base import Tool, ToolResult

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Name-indexed set of tools offered to the model for one turn.

    Dispatch never raises: unknown tools, invalid arguments and tool
    exceptions all come back as a failed ToolResult the model can read.
    """

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool. Names must be unique."""
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' already registered")
        self._tools[tool.name] = tool

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list_tools(self) -> list[str]:
        """Registered tool names, in registration order."""
        return list(self._tools)

    def get_tools_schema(self) -> list[dict[str, Any]]:
        """Function-calling schemas for every registered tool."""
        return [tool.get_schema() for tool in self._tools.values()]

    async def dispatch(self, tool_name: str, args: dict[str, Any]) -> ToolResult:
        """Validate the arguments and run the named tool."""
        tool = self._tools.get(tool_name)
        if tool is None:
            return ToolResult.failure(f"Unknown tool: {tool_name}")

        valid, error = tool.validate_args(args)
        if not valid:
            logger.info(f"Rejected {tool_name} call: {error}")
            return ToolResult.failure(error or "Invalid arguments")

        try:
            return await tool.execute(**args)
        except Exception as e:
            logger.exception(f"Error executing tool {tool_name}")
            return ToolResult.failure(f"Tool execution failed: {e}")
