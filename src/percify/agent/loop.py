"""Agent loop implementation."""

from __future__ import annotations

import json
import os
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from groq import AsyncGroq

from ..avatar import AgentState
from ..logging import JSONLLogger, get_logger
from ..tools import ToolRegistry
from .prompt import build_system_prompt, format_tool_result

if TYPE_CHECKING:
    from ..avatar import AvatarStore


class StopReason(Enum):
    """Reasons for stopping the agent loop."""

    COMPLETE = "complete"
    MAX_TURNS = "max_turns"
    REPEATED_CALL = "repeated_call"
    CONSECUTIVE_ERRORS = "consecutive_errors"


@dataclass
class AgentConfig:
    """Configuration for the agent loop."""

    model: str = "llama-3.3-70b-versatile"
    max_turns: int = 10
    max_consecutive_errors: int = 3
    max_repeated_calls: int = 2


@dataclass
class AgentResult:
    """Result from running the agent loop."""

    response: str
    stop_reason: StopReason
    turns: int
    tool_calls: list[dict[str, Any]] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgentLoop:
    """Main agent loop: think → act → observe.

    The system prompt is rendered from the avatar store before every model
    call, so profile and memory updates made by a tool are visible on the
    next step.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        config: AgentConfig | None = None,
        groq_client: AsyncGroq | None = None,
        store: AvatarStore | None = None,
        event_logger: JSONLLogger | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.registry = registry
        self.config = config or AgentConfig()
        self.client = groq_client or AsyncGroq(api_key=os.getenv("GROQ_API_KEY"))
        self.store = store
        self.event_logger = event_logger or get_logger()
        self.clock = clock
        self._last_tool_call: str | None = None
        self._repeated_count: int = 0
        self._consecutive_errors: int = 0

    def _reset_state(self) -> None:
        """Reset loop state for a new run."""
        self._last_tool_call = None
        self._repeated_count = 0
        self._consecutive_errors = 0

    def _check_repeated_call(self, tool_call: dict[str, Any]) -> bool:
        """Check if this is a repeated tool call."""
        call_sig = json.dumps(tool_call, sort_keys=True)
        if call_sig == self._last_tool_call:
            self._repeated_count += 1
            return self._repeated_count >= self.config.max_repeated_calls
        self._last_tool_call = call_sig
        self._repeated_count = 1
        return False

    def system_prompt(self) -> str:
        """Render the system prompt from the current avatar state."""
        state = self.store.snapshot() if self.store else AgentState()
        return build_system_prompt(state, self.clock(), self.registry.get_tools_schema())

    def _stop(
        self,
        response: str,
        reason: StopReason,
        turns: int,
        tool_calls: list[dict[str, Any]],
        chat_id: str | None,
    ) -> AgentResult:
        self.event_logger.log_agent_stop(
            reason.value,
            chat_id=chat_id,
            turns=turns,
            tool_calls_total=len(tool_calls),
        )
        return AgentResult(
            response=response,
            stop_reason=reason,
            turns=turns,
            tool_calls=tool_calls,
        )

    async def run(
        self,
        message: str,
        chat_id: str | None = None,
        history: list[dict[str, Any]] | None = None,
    ) -> AgentResult:
        """Run the agent loop for a user message.

        Args:
            message: The current user message.
            chat_id: Optional session identifier.
            history: Optional conversation history to inject between
                     system prompt and current message.

        Returns:
            AgentResult with response and metadata.
        """
        self._reset_state()

        messages: list[dict[str, Any]] = [
            {"role": "system", "content": self.system_prompt()},
        ]

        if history:
            messages.extend(history)

        messages.append({"role": "user", "content": message})
        self.event_logger.log_message("user", message, chat_id=chat_id)

        tools_schema = self.registry.get_tools_schema()
        tool_calls_log: list[dict[str, Any]] = []
        final_response = ""

        for turn in range(self.config.max_turns):
            messages[0] = {"role": "system", "content": self.system_prompt()}

            self.event_logger.log_llm_request(
                self.config.model,
                len(messages),
                bool(tools_schema),
                chat_id=chat_id,
            )

            # Think: Call LLM
            response = await self.client.chat.completions.create(
                model=self.config.model,
                messages=messages,
                tools=tools_schema or None,
                tool_choice="auto" if tools_schema else None,
            )

            choice = response.choices[0]
            assistant_message = choice.message

            self.event_logger.log_llm_response(
                bool(assistant_message.content),
                len(assistant_message.tool_calls or []),
                chat_id=chat_id,
                finish_reason=getattr(choice, "finish_reason", None),
            )

            if not assistant_message.tool_calls:
                # No tool calls - LLM is done
                final_response = assistant_message.content or ""
                self.event_logger.log_message("assistant", final_response, chat_id=chat_id)
                return self._stop(
                    final_response, StopReason.COMPLETE, turn + 1, tool_calls_log, chat_id
                )

            # Only include fields accepted by the chat completions API
            messages.append({
                "role": "assistant",
                "content": assistant_message.content,
                "tool_calls": [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.function.name,
                            "arguments": tc.function.arguments,
                        },
                    }
                    for tc in assistant_message.tool_calls
                ],
            })
            if assistant_message.content:
                final_response = assistant_message.content

            for tool_call in assistant_message.tool_calls:
                tool_name = tool_call.function.name
                try:
                    tool_args = json.loads(tool_call.function.arguments or "{}")
                except json.JSONDecodeError:
                    tool_args = {}
                if not isinstance(tool_args, dict):
                    tool_args = {}

                call_record = {"name": tool_name, "args": tool_args}
                tool_calls_log.append(call_record)
                self.event_logger.log_tool_call(tool_name, tool_args, chat_id=chat_id)

                # Circuit breaker: repeated calls
                if self._check_repeated_call(call_record):
                    return self._stop(
                        "Stopped: repeated tool call detected",
                        StopReason.REPEATED_CALL,
                        turn + 1,
                        tool_calls_log,
                        chat_id,
                    )

                # Act: Execute tool
                start_time = time.time()
                result = await self.registry.dispatch(tool_name, tool_args)
                duration_ms = (time.time() - start_time) * 1000

                self.event_logger.log_tool_result(
                    tool_name,
                    result.success,
                    chat_id=chat_id,
                    output=result.output,
                    duration_ms=duration_ms,
                    error=result.error,
                )

                # Track errors
                if not result.success:
                    self._consecutive_errors += 1
                    if self._consecutive_errors >= self.config.max_consecutive_errors:
                        return self._stop(
                            f"Stopped: {self.config.max_consecutive_errors} consecutive errors",
                            StopReason.CONSECUTIVE_ERRORS,
                            turn + 1,
                            tool_calls_log,
                            chat_id,
                        )
                else:
                    self._consecutive_errors = 0

                # Observe: Add result to conversation
                messages.append({
                    "role": "tool",
                    "tool_call_id": tool_call.id,
                    "content": format_tool_result(
                        tool_name, result.success, result.output, result.error
                    ),
                })

        # Max turns reached
        return self._stop(
            final_response or "Max turns reached",
            StopReason.MAX_TURNS,
            self.config.max_turns,
            tool_calls_log,
            chat_id,
        )
