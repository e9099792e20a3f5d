"""Tools for scheduling, listing, and canceling tasks."""

import json
import logging
from typing import Any

from ..scheduler import ScheduleKind, ScheduleRequest, TaskScheduler
from .base import Tool, ToolResult

logger = logging.getLogger(__name__)


class ScheduleTaskTool(Tool):
    """Tool for scheduling a task to run later."""

    def __init__(
        self,
        scheduler: TaskScheduler,
        session_id: str,
        profile_key: str | None = None,
    ) -> None:
        """Initialize the tool for one session.

        Args:
            scheduler: The shared TaskScheduler.
            session_id: Session the scheduled task reports back to.
            profile_key: Avatar profile that owns the task, defaults to session_id.
        """
        self.scheduler = scheduler
        self.session_id = session_id
        self.profile_key = profile_key or session_id

    @property
    def name(self) -> str:
        return "schedule_task"

    @property
    def description(self) -> str:
        return "A tool to schedule a task to be executed at a later time"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "description": {
                    "type": "string",
                    "description": "What should happen when the task runs",
                },
                "when": {
                    "type": "object",
                    "description": "When the task should run",
                    "properties": {
                        "type": {
                            "type": "string",
                            "enum": [kind.value for kind in ScheduleKind],
                            "description": (
                                "'scheduled' for a date, 'delayed' for a delay in "
                                "seconds, 'cron' for a recurring task, 'no-schedule' "
                                "if no time was given"
                            ),
                        },
                        "date": {
                            "type": "string",
                            "description": "ISO 8601 date, for 'scheduled'",
                        },
                        "delayInSeconds": {
                            "type": "number",
                            "description": "Delay in seconds, for 'delayed'",
                        },
                        "cron": {
                            "type": "string",
                            "description": "Crontab expression, for 'cron'",
                        },
                    },
                    "required": ["type"],
                },
            },
            "required": ["description", "when"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        """Schedule the task."""
        description = kwargs.get("description", "")
        when_data = kwargs.get("when") or {}

        try:
            when = ScheduleRequest.from_dict(when_data)
        except (TypeError, ValueError) as e:
            return ToolResult.failure(f"Error scheduling task: {e}")

        if when.kind is ScheduleKind.NO_SCHEDULE:
            return ToolResult.failure("Not a valid schedule input")

        try:
            task = self.scheduler.schedule(
                self.session_id, when, description, profile_key=self.profile_key
            )
        except ValueError as e:
            logger.error(f"error scheduling task: {e}")
            return ToolResult.failure(f"Error scheduling task: {e}")

        return ToolResult(
            success=True,
            output=f'Task scheduled for type "{when.kind.value}" : {when.input}',
            metadata={"task": task.to_dict()},
        )


class GetScheduledTasksTool(Tool):
    """Tool for listing the profile's scheduled tasks."""

    def __init__(self, scheduler: TaskScheduler, profile_key: str) -> None:
        self.scheduler = scheduler
        self.profile_key = profile_key

    @property
    def name(self) -> str:
        return "get_scheduled_tasks"

    @property
    def description(self) -> str:
        return "List all tasks that have been scheduled"

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}, "required": []}

    async def execute(self, **kwargs: Any) -> ToolResult:
        tasks = self.scheduler.list_tasks(self.profile_key)
        if not tasks:
            return ToolResult(success=True, output="No scheduled tasks found.")

        data = [task.to_dict() for task in tasks]
        return ToolResult(
            success=True,
            output=json.dumps(data, ensure_ascii=False, indent=2),
            metadata={"tasks": data},
        )


class CancelScheduledTaskTool(Tool):
    """Tool for canceling a scheduled task by id."""

    def __init__(self, scheduler: TaskScheduler, profile_key: str) -> None:
        self.scheduler = scheduler
        self.profile_key = profile_key

    @property
    def name(self) -> str:
        return "cancel_scheduled_task"

    @property
    def description(self) -> str:
        return "Cancel a scheduled task using its ID"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "taskId": {
                    "type": "string",
                    "description": "The ID of the task to cancel",
                },
            },
            "required": ["taskId"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        task_id = kwargs.get("taskId", "")

        if not self.scheduler.cancel(self.profile_key, task_id):
            return ToolResult.failure(f"Error canceling task {task_id}: task not found")

        return ToolResult(
            success=True,
            output=f"Task {task_id} has been successfully canceled.",
        )
