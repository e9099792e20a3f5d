"""Task scheduling."""

from .manager import ScheduledTask, ScheduleKind, ScheduleRequest, TaskScheduler

__all__ = ["ScheduleKind", "ScheduleRequest", "ScheduledTask", "TaskScheduler"]
