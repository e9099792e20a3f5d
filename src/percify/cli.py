"""CLI interface for Percify."""

import asyncio
import os
import uuid

from groq import AsyncGroq

from .agent import AgentResult, AvatarAgent, StopReason
from .avatar import AgentState, StateRepository
from .config import PercifyConfig, config_from_env
from .logging import configure_logger, get_logger
from .scheduler import TaskScheduler
from .session import SessionManager
from .tools import ResearchWebTool

BANNER = """
╔══════════════════════════════════════════╗
║        🪞 Percify Avatar Co-Pilot        ║
╚══════════════════════════════════════════╝

Commands:
  /exit, /quit  - Exit the CLI
  /reset        - Clear the conversation (avatar and memories are kept)
  /avatar       - Show the avatar profile and recent memories
  /tasks        - List scheduled tasks
  /help         - Show this help

Type your message and press Enter.
"""


def format_avatar_state(state: AgentState) -> str:
    """Format an avatar snapshot for display."""
    lines = []
    avatar = state.avatar
    if avatar:
        lines.append(f"Avatar: {avatar.display_name} ({avatar.tone.value})")
        lines.append(f"  Bio: {avatar.bio or 'Not set'}")
        lines.append(f"  Expertise: {', '.join(avatar.expertise_tags) or 'None specified'}")
    else:
        lines.append("No avatar profile set yet.")

    if state.memories:
        lines.append("Recent memories:")
        lines.extend(f"  [{m.type.value}] {m.content}" for m in state.memories)
    else:
        lines.append("No memories stored yet.")

    return "\n".join(lines)


class CLI:
    """Interactive command-line interface for Percify."""

    def __init__(
        self,
        config: PercifyConfig | None = None,
        agent: AvatarAgent | None = None,
    ) -> None:
        self.config = config or config_from_env()
        self.logger = get_logger()

        if agent is None:
            self.repository = StateRepository(self.config.state_db_path)
            self.repository.init_db()
            sessions = SessionManager(self.config.session, repository=self.repository)
            agent = AvatarAgent(
                sessions,
                scheduler=TaskScheduler(),
                research_tool=ResearchWebTool(
                    source_url=self.config.research.source_url,
                    timeout=self.config.research.timeout,
                ),
                config=self.config.agent,
                groq_client=AsyncGroq(api_key=os.getenv("GROQ_API_KEY")),
                event_logger=self.logger,
            )
        else:
            self.repository = agent.sessions.repository

        self.agent = agent
        self.agent.notifier = self._notify_task
        self.sessions = agent.sessions
        self.chat_id = self._new_chat_id()
        self._start_session()

    def _new_chat_id(self) -> str:
        """Generate a new chat ID."""
        return f"cli-{uuid.uuid4().hex[:8]}"

    def _start_session(self) -> None:
        """Bind the current chat to the configured avatar profile."""
        self.sessions.bind_profile(self.chat_id, self.config.profile_key)
        self.logger.set_chat_id(self.chat_id)
        self.logger.log("session_start", chat_id=self.chat_id, profile=self.config.profile_key)

    async def _reset(self) -> None:
        """Clear the conversation and start a new chat."""
        old_chat_id = self.chat_id
        await self.sessions.destroy_session(old_chat_id)

        self.chat_id = self._new_chat_id()
        self._start_session()
        self.logger.log("session_reset", old_chat_id=old_chat_id, chat_id=self.chat_id)
        print(f"\n✓ Conversation cleared. New chat_id: {self.chat_id}")

    def _format_response(self, response: str, stop_reason: StopReason, turns: int) -> str:
        """Format the agent's response for display."""
        output = ["\n" + "─" * 40]
        output.append(response)
        output.append("─" * 40)

        if stop_reason != StopReason.COMPLETE:
            output.append(f"⚠ Stopped: {stop_reason.value} (turns: {turns})")

        return "\n".join(output)

    async def _notify_task(self, chat_id: str, result: AgentResult) -> None:
        """Print the outcome of a scheduled task."""
        print("\n⏰ Scheduled task")
        print(self._format_response(result.response, result.stop_reason, result.turns))

    def _format_tasks(self) -> str:
        tasks = self.agent.scheduler.list_tasks(self.sessions.profile_key(self.chat_id))
        if not tasks:
            return "No scheduled tasks found."
        return "\n".join(
            f"- {task.id}: {task.description} ({task.trigger})" for task in tasks
        )

    async def _process_message(self, message: str) -> None:
        """Process a user message through the agent."""
        await self.sessions.wait_acquire(self.chat_id)
        try:
            result = await self.agent.run_turn(self.chat_id, message)
            print(self._format_response(result.response, result.stop_reason, result.turns))
        except Exception as e:
            print(f"\n❌ Error: {e}")
            self.logger.log("error", chat_id=self.chat_id, error=str(e))
        finally:
            self.sessions.release(self.chat_id)

    async def _handle_command(self, command: str) -> bool:
        """Handle a special command. Returns True if should continue, False to exit."""
        cmd = command.lower().strip()

        if cmd in ("/exit", "/quit", "exit", "quit"):
            print("\n👋 Goodbye!")
            await self.sessions.destroy_session(self.chat_id)
            self.logger.log("session_end", chat_id=self.chat_id)
            return False

        if cmd == "/reset":
            await self._reset()
            return True

        if cmd == "/avatar":
            print(format_avatar_state(self.agent.get_avatar_state(self.chat_id)))
            return True

        if cmd == "/tasks":
            print(self._format_tasks())
            return True

        if cmd == "/help":
            print(BANNER)
            return True

        return True  # Unknown command, continue

    async def run(self) -> None:
        """Run the interactive CLI."""
        print(BANNER)
        print(f"Session: {self.chat_id} (profile: {self.config.profile_key})\n")

        self.agent.scheduler.start()

        try:
            while True:
                try:
                    # Read in a thread so scheduled tasks can fire meanwhile
                    user_input = (await asyncio.to_thread(input, "you> ")).strip()

                    if not user_input:
                        continue

                    if user_input.startswith("/") or user_input.lower() in ("exit", "quit"):
                        if not await self._handle_command(user_input):
                            break
                        continue

                    await self._process_message(user_input)

                except KeyboardInterrupt:
                    print("\n\n⚡ Interrupted")
                    self.logger.log("session_interrupt", chat_id=self.chat_id)
                    break

                except EOFError:
                    print("\n👋 Goodbye!")
                    break
        finally:
            self.agent.scheduler.shutdown()
            self.sessions.save_store(self.config.profile_key)
            if self.repository is not None:
                self.repository.close()


async def run_cli() -> None:
    """Run the CLI with configuration from the environment."""
    config = config_from_env()
    configure_logger(config.log_dir)

    if not os.getenv("GROQ_API_KEY"):
        print("❌ Error: GROQ_API_KEY environment variable not set")
        print("Please set it in your .env file or environment")
        return

    cli = CLI(config=config)
    await cli.run()
