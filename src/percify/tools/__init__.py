"""Tool registry and tool implementations."""

from .base import Tool, ToolResult
from .registry import ToolRegistry
from .research import ResearchWebTool, extract_snippet
from .schedule import CancelScheduledTaskTool, GetScheduledTasksTool, ScheduleTaskTool

__all__ = [
    "CancelScheduledTaskTool",
    "GetScheduledTasksTool",
    "ResearchWebTool",
    "ScheduleTaskTool",
    "Tool",
    "ToolResult",
    "ToolRegistry",
    "extract_snippet",
]
