"""Task scheduling delegated to APScheduler."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

logger = logging.getLogger(__name__)

TaskCallback = Callable[[str, str, str], Awaitable[None]]


class ScheduleKind(str, Enum):
    """How a task's run time is specified."""

    SCHEDULED = "scheduled"
    DELAYED = "delayed"
    CRON = "cron"
    NO_SCHEDULE = "no-schedule"


@dataclass(frozen=True)
class ScheduleRequest:
    """When a task should run."""

    kind: ScheduleKind
    date: datetime | None = None
    delay_in_seconds: float | None = None
    cron: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScheduleRequest:
        """Parse the `when` object of a schedule_task call.

        Raises:
            ValueError: If the type is unknown or its field is missing.
        """
        kind = ScheduleKind(data.get("type"))

        if kind is ScheduleKind.SCHEDULED:
            raw_date = data.get("date")
            if not raw_date:
                raise ValueError("'date' is required for scheduled tasks")
            date = datetime.fromisoformat(str(raw_date).replace("Z", "+00:00"))
            if date.tzinfo is None:
                date = date.replace(tzinfo=timezone.utc)
            return cls(kind=kind, date=date)

        if kind is ScheduleKind.DELAYED:
            delay = data.get("delayInSeconds")
            if isinstance(delay, bool) or not isinstance(delay, (int, float)):
                raise ValueError("'delayInSeconds' must be a number")
            return cls(kind=kind, delay_in_seconds=delay)

        if kind is ScheduleKind.CRON:
            cron = data.get("cron")
            if not cron:
                raise ValueError("'cron' is required for cron tasks")
            return cls(kind=kind, cron=str(cron))

        return cls(kind=kind)

    @property
    def input(self) -> str:
        """The user-facing schedule value."""
        if self.kind is ScheduleKind.SCHEDULED and self.date:
            return self.date.isoformat()
        if self.kind is ScheduleKind.DELAYED:
            return f"{self.delay_in_seconds:g}"
        if self.kind is ScheduleKind.CRON:
            return self.cron or ""
        return ""


@dataclass(frozen=True)
class ScheduledTask:
    """A task registered with the scheduler."""

    id: str
    session_id: str
    profile_key: str
    description: str
    trigger: str
    next_run_time: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "trigger": self.trigger,
            "nextRunTime": self.next_run_time.isoformat() if self.next_run_time else None,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskScheduler:
    """Schedules tasks and fires a callback when they are due.

    Tasks belong to an avatar profile: they are listed and canceled by
    profile key, and report back to the session that created them.
    """

    def __init__(
        self,
        callback: TaskCallback | None = None,
        scheduler: AsyncIOScheduler | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the scheduler.

        Args:
            callback: Awaited with (session_id, description, profile_key)
                when a task fires.
            scheduler: The APScheduler instance to delegate to.
            clock: Current time, used to resolve delayed tasks.
        """
        self._callback = callback
        self._scheduler = scheduler or AsyncIOScheduler()
        self._clock = clock

    def set_callback(self, callback: TaskCallback) -> None:
        """Set the callback invoked when a task fires."""
        self._callback = callback

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        """Start processing jobs. Must be called with an event loop running."""
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Scheduler started")

    def shutdown(self) -> None:
        """Stop processing jobs."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    def _build_trigger(self, when: ScheduleRequest) -> BaseTrigger:
        if when.kind is ScheduleKind.SCHEDULED:
            assert when.date is not None
            if when.date <= self._clock():
                raise ValueError(f"Scheduled date is in the past: {when.date.isoformat()}")
            return DateTrigger(run_date=when.date)

        if when.kind is ScheduleKind.DELAYED:
            assert when.delay_in_seconds is not None
            if when.delay_in_seconds <= 0:
                raise ValueError("Delay must be positive")
            return DateTrigger(run_date=self._clock() + timedelta(seconds=when.delay_in_seconds))

        if when.kind is ScheduleKind.CRON:
            assert when.cron is not None
            return CronTrigger.from_crontab(when.cron)

        raise ValueError("Not a valid schedule input")

    def schedule(
        self,
        session_id: str,
        when: ScheduleRequest,
        description: str,
        profile_key: str | None = None,
    ) -> ScheduledTask:
        """Register a task owned by profile_key, which defaults to the session id.

        Raises:
            ValueError: If the schedule is not valid.
        """
        trigger = self._build_trigger(when)
        job = self._scheduler.add_job(
            self._fire,
            trigger,
            kwargs={
                "session_id": session_id,
                "profile_key": profile_key or session_id,
                "description": description,
            },
            id=uuid.uuid4().hex[:12],
            name=description,
        )
        logger.info(f"Scheduled task {job.id} ({when.kind.value}: {when.input})")
        return self._to_task(job)

    def list_tasks(self, profile_key: str) -> list[ScheduledTask]:
        """List the tasks owned by a profile."""
        return [
            self._to_task(job)
            for job in self._scheduler.get_jobs()
            if job.kwargs.get("profile_key") == profile_key
        ]

    def cancel(self, profile_key: str, task_id: str) -> bool:
        """Cancel a profile's task. Returns False if it does not exist."""
        job = self._scheduler.get_job(task_id)
        if job is None or job.kwargs.get("profile_key") != profile_key:
            return False

        try:
            self._scheduler.remove_job(task_id)
        except JobLookupError:
            return False

        logger.info(f"Canceled task {task_id}")
        return True

    async def _fire(self, session_id: str, profile_key: str, description: str) -> None:
        logger.info(f"Running scheduled task for {session_id}: {description}")
        if self._callback is None:
            logger.warning("No callback registered, dropping scheduled task")
            return

        try:
            await self._callback(session_id, description, profile_key)
        except Exception:
            logger.exception(f"Scheduled task failed for {session_id}")

    def _to_task(self, job: Any) -> ScheduledTask:
        return ScheduledTask(
            id=job.id,
            session_id=job.kwargs["session_id"],
            profile_key=job.kwargs["profile_key"],
            description=job.kwargs["description"],
            trigger=str(job.trigger),
            # Pending jobs have no next_run_time until the scheduler starts
            next_run_time=getattr(job, "next_run_time", None),
        )
