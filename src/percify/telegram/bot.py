"""Telegram bot integration for Percify."""

import asyncio
import logging
import os
import re

from groq import AsyncGroq
from telegram import Update
from telegram.constants import ParseMode
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from ..agent import AgentResult, AvatarAgent, StopReason
from ..avatar import StateRepository
from ..cli import format_avatar_state
from ..config import PercifyConfig, config_from_env
from ..logging import get_logger
from ..scheduler import TaskScheduler
from ..session import SessionManager
from ..tools import ResearchWebTool

logger = logging.getLogger(__name__)


WELCOME_MESSAGE = """
🪞 *Percify Avatar Co-Pilot*

I keep a persistent avatar persona for you and remember what matters.

*Commands:*
/start - Show this message
/avatar - Show your avatar profile and recent memories
/reset - Clear the conversation (avatar and memories are kept)
/stop - Cancel the operation in progress

*Try:*
• "Call me Alex and use a professional tone"
• "Remember that I prefer short answers"
• "Remind me in 10 minutes to stretch"
"""

MAX_MESSAGE_LENGTH = 4096


def escape_markdown(text: str) -> str:
    """Escape special characters for Telegram MarkdownV2."""
    special_chars = r"_*[]()~`>#+-=|{}.!"
    pattern = f"([{re.escape(special_chars)}])"
    return re.sub(pattern, r"\\\1", text)


def truncate_message(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> str:
    """Truncate message to fit Telegram limits."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 20] + "\n... [truncated]"


def format_response(response: str, stop_reason: StopReason, turns: int) -> str:
    """Format agent response for Telegram."""
    text = response

    if stop_reason == StopReason.MAX_TURNS:
        text += f"\n\n⚠️ Reached the maximum number of steps ({turns})"
    elif stop_reason == StopReason.REPEATED_CALL:
        text += "\n\n⚠️ Detected a loop and stopped"
    elif stop_reason == StopReason.CONSECUTIVE_ERRORS:
        text += "\n\n⚠️ Too many consecutive errors"

    return truncate_message(text)


class TelegramBot:
    """Telegram bot for Percify. Each chat has its own avatar profile."""

    def __init__(
        self,
        token: str | None = None,
        config: PercifyConfig | None = None,
    ) -> None:
        self.token = token or os.getenv("TELEGRAM_TOKEN")
        if not self.token:
            raise ValueError("TELEGRAM_TOKEN not set")

        self.config = config or config_from_env()

        self.repository = StateRepository(self.config.state_db_path)
        self.repository.init_db()
        self.sessions = SessionManager(self.config.session, repository=self.repository)

        self.json_logger = get_logger()
        self.agent = AvatarAgent(
            self.sessions,
            scheduler=TaskScheduler(),
            research_tool=ResearchWebTool(
                source_url=self.config.research.source_url,
                timeout=self.config.research.timeout,
            ),
            config=self.config.agent,
            groq_client=AsyncGroq(api_key=os.getenv("GROQ_API_KEY")),
            event_logger=self.json_logger,
            notifier=self._notify_task,
        )
        self._app: Application | None = None
        self._turns: dict[str, asyncio.Task] = {}

    def _get_chat_id(self, update: Update) -> str:
        """Get chat_id as string from update."""
        assert update.effective_chat is not None
        return str(update.effective_chat.id)

    async def _notify_task(self, chat_id: str, result: AgentResult) -> None:
        """Push a scheduled task's result to its chat."""
        if self._app is None:
            logger.warning(f"Dropping scheduled task result for {chat_id}: bot not running")
            return

        await self._app.bot.send_message(
            chat_id=int(chat_id),
            text=format_response(result.response, result.stop_reason, result.turns),
        )

    async def _handle_start(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /start command."""
        assert update.message is not None
        chat_id = self._get_chat_id(update)

        self.json_logger.log("telegram_start", chat_id=chat_id)

        await update.message.reply_text(
            WELCOME_MESSAGE,
            parse_mode=ParseMode.MARKDOWN,
        )

    async def _handle_avatar(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /avatar command."""
        assert update.message is not None
        chat_id = self._get_chat_id(update)

        await update.message.reply_text(
            format_avatar_state(self.agent.get_avatar_state(chat_id))
        )

    async def _handle_reset(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /reset command."""
        assert update.message is not None
        chat_id = self._get_chat_id(update)

        if not await self.sessions.destroy_session(chat_id):
            await update.message.reply_text(
                "⏳ I'm still working. Use /stop first, then /reset."
            )
            return

        self.json_logger.log("telegram_reset", chat_id=chat_id)

        await update.message.reply_text(
            "✨ Conversation cleared. Your avatar and memories are kept."
        )

    async def _handle_stop(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /stop command."""
        assert update.message is not None
        chat_id = self._get_chat_id(update)

        # The lock stays with the turn's handler, which releases it once cancelled
        turn = self._turns.get(chat_id)
        if turn is None or turn.done():
            await update.message.reply_text("Nothing is running.")
            return

        turn.cancel()
        self.json_logger.log("telegram_stop", chat_id=chat_id)
        await update.message.reply_text("⏹ Stopping the current operation.")

    async def _handle_message(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle incoming messages."""
        assert update.message is not None
        assert update.message.text is not None

        chat_id = self._get_chat_id(update)
        message = update.message.text

        acquired, error = await self.sessions.acquire(chat_id)
        if not acquired:
            await update.message.reply_text(error or "Busy")
            return

        try:
            self.json_logger.log(
                "telegram_message",
                chat_id=chat_id,
                message_length=len(message),
            )

            await update.message.chat.send_action("typing")

            turn = asyncio.create_task(self.agent.run_turn(chat_id, message))
            self._turns[chat_id] = turn
            try:
                result = await turn
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise
                await update.message.reply_text("⏹ Operation canceled.")
                return

            await update.message.reply_text(
                format_response(result.response, result.stop_reason, result.turns)
            )

        except Exception as e:
            logger.exception("Error processing message")
            self.json_logger.log("telegram_error", chat_id=chat_id, error=str(e))
            await update.message.reply_text(f"❌ Error: {e}")

        finally:
            self._turns.pop(chat_id, None)
            self.sessions.release(chat_id)

    async def _post_init(self, application: Application) -> None:
        """Called after Application.initialize()."""
        self.sessions.start_cleanup_task()
        self.agent.scheduler.start()

    async def _post_shutdown(self, application: Application) -> None:
        """Called after Application.shutdown()."""
        self.sessions.stop_cleanup_task()
        self.agent.scheduler.shutdown()
        self.repository.close()

    def build_app(self) -> Application:
        """Build the Telegram application."""
        self._app = (
            Application.builder()
            .token(self.token)
            .post_init(self._post_init)
            .post_shutdown(self._post_shutdown)
            .concurrent_updates(True)
            .build()
        )

        self._app.add_handler(CommandHandler("start", self._handle_start))
        self._app.add_handler(CommandHandler("avatar", self._handle_avatar))
        self._app.add_handler(CommandHandler("reset", self._handle_reset))
        self._app.add_handler(CommandHandler("stop", self._handle_stop))
        self._app.add_handler(
            MessageHandler(filters.TEXT & ~filters.COMMAND, self._handle_message)
        )

        return self._app

    def run(self) -> None:
        """Run the bot (blocking)."""
        app = self.build_app()

        logger.info("Starting Telegram bot...")
        app.run_polling()
