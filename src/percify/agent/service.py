"""Avatar agent: wires sessions, tools, scheduler, and the agent loop."""

from __future__ import annotations

import logging
import os
from collections.abc import Awaitable, Callable

from groq import AsyncGroq

from ..avatar import AgentState, AvatarStore, GetAvatarStateTool, SaveAvatarProfileTool, SaveMemoryTool
from ..logging import JSONLLogger, get_logger
from ..scheduler import TaskScheduler
from ..session import SessionManager
from ..tools import (
    CancelScheduledTaskTool,
    GetScheduledTasksTool,
    ResearchWebTool,
    ScheduleTaskTool,
    ToolRegistry,
)
from .loop import AgentConfig, AgentLoop, AgentResult

logger = logging.getLogger(__name__)

TaskNotifier = Callable[[str, AgentResult], Awaitable[None]]

SCHEDULED_TASK_PREFIX = "Running scheduled task: "


class AvatarAgent:
    """Chat assistant that keeps a persistent avatar persona per profile.

    Callers serialize work per chat through the SessionManager lock:
    ``run_turn`` must only be called while holding it. Scheduled tasks take
    the lock themselves and wait their turn.
    """

    def __init__(
        self,
        sessions: SessionManager,
        scheduler: TaskScheduler | None = None,
        research_tool: ResearchWebTool | None = None,
        config: AgentConfig | None = None,
        groq_client: AsyncGroq | None = None,
        event_logger: JSONLLogger | None = None,
        notifier: TaskNotifier | None = None,
        history_limit: int = 20,
    ) -> None:
        self.sessions = sessions
        self.scheduler = scheduler or TaskScheduler()
        self.scheduler.set_callback(self.execute_task)
        self.research_tool = research_tool or ResearchWebTool()
        self.config = config or AgentConfig()
        self.client = groq_client or AsyncGroq(api_key=os.getenv("GROQ_API_KEY"))
        self.event_logger = event_logger or get_logger()
        self.notifier = notifier
        self.history_limit = history_limit

    def build_registry(self, chat_id: str, store: AvatarStore) -> ToolRegistry:
        """Create the tool set bound to one chat's avatar store."""
        profile_key = self.sessions.profile_key(chat_id)
        return ToolRegistry([
            SaveAvatarProfileTool(store),
            SaveMemoryTool(store),
            self.research_tool,
            GetAvatarStateTool(store),
            ScheduleTaskTool(self.scheduler, chat_id, profile_key),
            GetScheduledTasksTool(self.scheduler, profile_key),
            CancelScheduledTaskTool(self.scheduler, profile_key),
        ])

    def get_store(self, chat_id: str) -> AvatarStore:
        """The avatar store bound to a chat."""
        return self.sessions.get_store(self.sessions.profile_key(chat_id))

    def get_avatar_state(self, chat_id: str) -> AgentState:
        """The avatar and most recent memories for a chat."""
        return self.get_store(chat_id).snapshot()

    async def run_turn(self, chat_id: str, message: str) -> AgentResult:
        """Run one conversation turn. The caller must hold the chat's lock."""
        store = self.get_store(chat_id)
        before = store.state

        self.sessions.add_message(chat_id, "user", message)
        # Exclude the current message from history
        history = self.sessions.get_messages(chat_id, limit=self.history_limit, for_llm=True)[:-1]

        agent = AgentLoop(
            self.build_registry(chat_id, store),
            self.config,
            groq_client=self.client,
            store=store,
            event_logger=self.event_logger,
        )
        result = await agent.run(message, chat_id=chat_id, history=history or None)
        self.sessions.add_message(chat_id, "assistant", result.response)

        after = store.state
        if after.avatar != before.avatar:
            self.event_logger.log_avatar_updated(
                after.avatar.to_dict() if after.avatar else None, chat_id=chat_id
            )
        if after.memories != before.memories:
            self.event_logger.log_memory_stored(len(after.memories), chat_id=chat_id)

        return result

    async def execute_task(
        self,
        chat_id: str,
        description: str,
        profile_key: str | None = None,
    ) -> AgentResult:
        """Run a scheduled task as a user turn and notify the front end.

        The task runs against the profile it was scheduled under, even if the
        chat has been reset since.
        """
        self.event_logger.log_task_fired(description, chat_id=chat_id)

        await self.sessions.wait_acquire(chat_id)
        try:
            if profile_key is not None:
                self.sessions.bind_profile(chat_id, profile_key)
            result = await self.run_turn(chat_id, f"{SCHEDULED_TASK_PREFIX}{description}")
        finally:
            self.sessions.release(chat_id)

        if self.notifier is not None:
            await self.notifier(chat_id, result)
        return result
