"""Avatar profile and memory log."""

from .models import (
    CONTEXT_MEMORIES,
    DEFAULT_DISPLAY_NAME,
    MAX_MEMORIES,
    RECENT_MEMORIES,
    AgentState,
    AvatarProfile,
    MemoryItem,
    MemoryType,
    ProfileUpdate,
    Tone,
)
from .repository import StateRepository
from .store import AvatarStore, generate_id
from .tools import GetAvatarStateTool, SaveAvatarProfileTool, SaveMemoryTool

__all__ = [
    "CONTEXT_MEMORIES",
    "DEFAULT_DISPLAY_NAME",
    "MAX_MEMORIES",
    "RECENT_MEMORIES",
    "AgentState",
    "AvatarProfile",
    "AvatarStore",
    "GetAvatarStateTool",
    "MemoryItem",
    "MemoryType",
    "ProfileUpdate",
    "SaveAvatarProfileTool",
    "SaveMemoryTool",
    "StateRepository",
    "Tone",
    "generate_id",
]
