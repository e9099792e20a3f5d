"""System prompt assembly from the avatar state."""

from datetime import datetime, timezone
from typing import Any

from ..avatar import CONTEXT_MEMORIES, AgentState, Tone

TONE_INSTRUCTIONS: dict[Tone, str] = {
    Tone.CASUAL: "Be friendly, relaxed, and approachable. Use conversational language.",
    Tone.PROFESSIONAL: "Be formal, precise, and business-like. Maintain a professional demeanor.",
    Tone.PLAYFUL: "Be fun, energetic, and use humor when appropriate. Keep things light.",
    Tone.TECHNICAL: "Be detailed, accurate, and use technical terminology. Focus on precision.",
}

_missing_tones = set(Tone) - set(TONE_INSTRUCTIONS)
if _missing_tones:
    raise RuntimeError(f"Missing tone instructions for: {sorted(t.value for t in _missing_tones)}")

NO_AVATAR_TEXT = "- No avatar profile set yet. The user can create one."
NO_MEMORIES_TEXT = "- No memories stored yet."

SYSTEM_PROMPT_BASE = """You are Percify Avatar Co-Pilot, an AI assistant that maintains a persistent avatar persona for each user.

## Your Behavior
1. ALWAYS think in steps: understand user request → inspect avatar + memories → decide actions → respond
2. Maintain the avatar's tone ({tone}) in ALL responses: {tone_instruction}
3. Store memories for recurring preferences and important tasks
4. When the user wants to set or change their avatar, use the save_avatar_profile tool
5. When the user shares preferences or asks you to remember something, use the save_memory tool
6. When the user asks for research or information lookup, use the research_web tool

## Available Tools
{tools_description}

## Response Format
When you need to take actions, use the available tools. Always explain what you did after taking actions."""

SCHEDULE_PROMPT = """## Scheduling
Current time: {now}

When the user asks to do something later, use the schedule_task tool:
- "scheduled" with an ISO 8601 date for a specific moment
- "delayed" with delayInSeconds for "in N minutes/hours"
- "cron" with a crontab expression for recurring tasks
- "no-schedule" if the user gave no time
Resolve relative times against the current time above."""


def tone_instruction(tone: Tone) -> str:
    """Behavioral instruction for a tone."""
    return TONE_INSTRUCTIONS[tone]


def _format_date(value: datetime) -> str:
    value = value.astimezone(timezone.utc)
    return f"{value.month}/{value.day}/{value.year}"


def render_context(state: AgentState) -> str:
    """Render the avatar profile and recent memories.

    Only the CONTEXT_MEMORIES most recent memories are included.

    Args:
        state: The state snapshot.

    Returns:
        The context block.
    """
    lines = ["## Current Avatar State"]

    avatar = state.avatar
    if avatar:
        lines.append(f"- Name: {avatar.display_name}")
        lines.append(f"- Bio: {avatar.bio or 'Not set'}")
        lines.append(f"- Tone: {avatar.tone.value}")
        expertise = ", ".join(avatar.expertise_tags) if avatar.expertise_tags else "None specified"
        lines.append(f"- Expertise: {expertise}")
    else:
        lines.append(NO_AVATAR_TEXT)

    lines.append("")
    lines.append("## Recent Memories")

    recent = state.memories[-CONTEXT_MEMORIES:]
    if recent:
        for memory in recent:
            lines.append(
                f"- [{memory.type.value}] {memory.content} ({_format_date(memory.created_at)})"
            )
    else:
        lines.append(NO_MEMORIES_TEXT)

    return "\n".join(lines) + "\n"


def build_schedule_prompt(now: datetime) -> str:
    """Scheduling guidance anchored to the current time."""
    return SCHEDULE_PROMPT.format(now=now.isoformat())


def build_system_prompt(
    state: AgentState,
    now: datetime,
    tools_schema: list[dict[str, Any]] | None = None,
) -> str:
    """Build the full system instruction for one model call.

    Identical arguments always produce an identical prompt.

    Args:
        state: The state snapshot.
        now: Current time, used by the scheduling section.
        tools_schema: Tool schemas available to the model.

    Returns:
        Complete system prompt string.
    """
    tone = state.avatar.tone if state.avatar else Tone.CASUAL

    if not tools_schema:
        tools_desc = "No tools available."
    else:
        tools_desc = "\n".join(
            f"- {t['function']['name']}: {t['function']['description']}"
            for t in tools_schema
        )

    prompt = SYSTEM_PROMPT_BASE.format(
        tone=tone.value,
        tone_instruction=tone_instruction(tone),
        tools_description=tools_desc,
    )

    return "\n\n".join([prompt, build_schedule_prompt(now), render_context(state)])


def format_tool_result(tool_name: str, success: bool, output: str, error: str | None) -> str:
    """Format a tool result for the conversation."""
    if success:
        return f"[{tool_name}] Success:\n{output}"
    else:
        return f"[{tool_name}] Error: {error}"
