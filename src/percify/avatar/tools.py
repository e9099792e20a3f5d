"""Tools exposing the avatar store to the model."""

import json
from typing import Any

from ..tools.base import Tool, ToolResult
from .models import MemoryType, ProfileUpdate, Tone
from .store import AvatarStore

TONE_VALUES = [tone.value for tone in Tone]
MEMORY_TYPE_VALUES = [memory_type.value for memory_type in MemoryType]


class SaveAvatarProfileTool(Tool):
    """Tool for creating or updating the avatar profile."""

    def __init__(self, store: AvatarStore) -> None:
        """Initialize with an avatar store.

        Args:
            store: The session's AvatarStore.
        """
        self.store = store

    @property
    def name(self) -> str:
        return "save_avatar_profile"

    @property
    def description(self) -> str:
        return (
            "Update the user's avatar profile. Use this when the user wants to "
            "set or change their display name, update their bio, change their "
            "communication tone (casual, professional, playful, technical), or "
            "add or modify expertise tags. Example triggers: 'Set my avatar "
            "as...', 'Call me...', 'I'm a...', 'Change my tone to...'"
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "displayName": {
                    "type": "string",
                    "description": "The avatar's display name",
                },
                "bio": {
                    "type": "string",
                    "description": "A short bio or description for the avatar",
                },
                "tone": {
                    "type": "string",
                    "enum": TONE_VALUES,
                    "description": (
                        "The communication tone: casual, professional, "
                        "playful, or technical"
                    ),
                },
                "expertiseTags": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "List of expertise areas or skills",
                },
            },
            "required": [],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        """Merge the given fields into the avatar profile."""
        tone = kwargs.get("tone")
        if tone and tone not in TONE_VALUES:
            return ToolResult.failure(
                f"Invalid tone '{tone}'. Use one of: {', '.join(TONE_VALUES)}"
            )

        update = ProfileUpdate(
            display_name=kwargs.get("displayName"),
            bio=kwargs.get("bio"),
            tone=Tone(tone) if tone else None,
            expertise_tags=kwargs.get("expertiseTags"),
        )
        avatar = self.store.upsert_profile(update)

        return ToolResult(
            success=True,
            output=(
                "Avatar profile updated successfully!\n"
                + json.dumps(avatar.to_dict(), ensure_ascii=False, indent=2)
            ),
            metadata={"avatar": avatar.to_dict()},
        )


class SaveMemoryTool(Tool):
    """Tool for storing a memory note."""

    def __init__(self, store: AvatarStore) -> None:
        """Initialize with an avatar store.

        Args:
            store: The session's AvatarStore.
        """
        self.store = store

    @property
    def name(self) -> str:
        return "save_memory"

    @property
    def description(self) -> str:
        return (
            "Store information in the user's memory for future reference. Use "
            "this when the user asks to remember something, shares a "
            "preference, or mentions an important task or project. Memory "
            "types: 'preference' for likes/dislikes, 'task' for work items, "
            "'note' for general info."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "type": {
                    "type": "string",
                    "enum": MEMORY_TYPE_VALUES,
                    "description": "The type of memory: task, preference, or note",
                },
                "content": {
                    "type": "string",
                    "description": "The content to remember",
                },
            },
            "required": ["type", "content"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        """Append a memory note.

        Args:
            type: The memory type.
            content: The text to remember.

        Returns:
            ToolResult with the most recent memories.
        """
        memory_type = kwargs.get("type", "")
        content = kwargs.get("content", "")

        if memory_type not in MEMORY_TYPE_VALUES:
            return ToolResult.failure(
                f"Invalid memory type '{memory_type}'. "
                f"Use one of: {', '.join(MEMORY_TYPE_VALUES)}"
            )

        if not isinstance(content, str) or not content.strip():
            return ToolResult.failure("'content' must be a non-empty string")

        recent = self.store.append_memory(MemoryType(memory_type), content)
        recent_dicts = [memory.to_dict() for memory in recent]

        return ToolResult(
            success=True,
            output=(
                f'Memory stored successfully! I\'ll remember: "{content}"\n'
                + json.dumps({"recentMemories": recent_dicts}, ensure_ascii=False, indent=2)
            ),
            metadata={"recentMemories": recent_dicts},
        )


class GetAvatarStateTool(Tool):
    """Tool for reading the avatar profile and recent memories."""

    def __init__(self, store: AvatarStore) -> None:
        self.store = store

    @property
    def name(self) -> str:
        return "get_avatar_state"

    @property
    def description(self) -> str:
        return "Get the current avatar profile and recent memories"

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}, "required": []}

    async def execute(self, **kwargs: Any) -> ToolResult:
        state = self.store.snapshot()
        data = {
            "avatar": state.avatar.to_dict() if state.avatar else None,
            "recentMemories": [memory.to_dict() for memory in state.memories],
        }
        return ToolResult(
            success=True,
            output=json.dumps(data, ensure_ascii=False, indent=2),
            metadata=data,
        )
