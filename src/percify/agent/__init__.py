"""Agent loop and core logic."""

from .loop import AgentConfig, AgentLoop, AgentResult, StopReason
from .prompt import build_system_prompt, render_context, tone_instruction
from .service import AvatarAgent

__all__ = [
    "AgentConfig",
    "AgentLoop",
    "AgentResult",
    "AvatarAgent",
    "StopReason",
    "build_system_prompt",
    "render_context",
    "tone_instruction",
]
