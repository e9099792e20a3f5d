"""Data models for the avatar profile and memory log."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_NAME = "Unnamed Avatar"
MAX_MEMORIES = 50
RECENT_MEMORIES = 5
CONTEXT_MEMORIES = 3


class Tone(str, Enum):
    """Communication tone of the avatar."""

    CASUAL = "casual"
    PROFESSIONAL = "professional"
    PLAYFUL = "playful"
    TECHNICAL = "technical"


class MemoryType(str, Enum):
    """Kind of memory note."""

    TASK = "task"
    PREFERENCE = "preference"
    NOTE = "note"


@dataclass(frozen=True)
class AvatarProfile:
    """The user's AI persona.

    Attributes:
        id: Opaque identifier, assigned on first creation.
        display_name: Name the avatar goes by.
        bio: Short description.
        tone: Communication tone.
        expertise_tags: Ordered expertise areas.
    """

    id: str
    display_name: str = DEFAULT_DISPLAY_NAME
    bio: str = ""
    tone: Tone = Tone.CASUAL
    expertise_tags: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "displayName": self.display_name,
            "bio": self.bio,
            "tone": self.tone.value,
            "expertiseTags": list(self.expertise_tags),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AvatarProfile:
        """Create from a persisted dict. Raises on malformed input."""
        avatar_id = data["id"]
        if not isinstance(avatar_id, str) or not avatar_id:
            raise ValueError("avatar id must be a non-empty string")

        tags = data.get("expertiseTags") or []
        if not isinstance(tags, list):
            raise ValueError("expertiseTags must be a list")

        return cls(
            id=avatar_id,
            display_name=str(data.get("displayName") or DEFAULT_DISPLAY_NAME),
            bio=str(data.get("bio") or ""),
            tone=Tone(data.get("tone") or Tone.CASUAL.value),
            expertise_tags=tuple(str(tag) for tag in tags),
        )


@dataclass(frozen=True)
class ProfileUpdate:
    """A partial profile. Absent or empty fields carry over on upsert."""

    display_name: str | None = None
    bio: str | None = None
    tone: Tone | None = None
    expertise_tags: list[str] | tuple[str, ...] | None = None


@dataclass(frozen=True)
class MemoryItem:
    """A single entry of the memory log."""

    id: str
    created_at: datetime
    type: MemoryType
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "createdAt": self.created_at.isoformat(),
            "type": self.type.value,
            "content": self.content,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MemoryItem:
        """Create from a persisted dict. Raises on malformed input."""
        content = data["content"]
        if not isinstance(content, str) or not content:
            raise ValueError("memory content must be a non-empty string")

        created_at = datetime.fromisoformat(data["createdAt"])
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)

        return cls(
            id=str(data["id"]),
            created_at=created_at,
            type=MemoryType(data["type"]),
            content=content,
        )


@dataclass(frozen=True)
class AgentState:
    """Aggregate root: the avatar plus the memory log in insertion order."""

    avatar: AvatarProfile | None = None
    memories: tuple[MemoryItem, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "avatar": self.avatar.to_dict() if self.avatar else None,
            "memories": [memory.to_dict() for memory in self.memories],
        }

    @classmethod
    def restore(cls, raw: Any) -> AgentState:
        """Rebuild state from persisted data, healing anything malformed.

        An absent or non-mapping container yields an empty state. A
        ``memories`` value that is not a list is reset on its own, keeping a
        valid avatar. A malformed avatar is treated as absent and malformed
        memory entries are dropped. Never raises.
        """
        if not isinstance(raw, dict):
            if raw is not None:
                logger.warning("State container malformed, initializing defaults")
            return cls()

        avatar: AvatarProfile | None = None
        raw_avatar = raw.get("avatar")
        if raw_avatar is not None:
            try:
                avatar = AvatarProfile.from_dict(raw_avatar)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Avatar profile corrupted, discarding: {e}")

        raw_memories = raw.get("memories")
        if not isinstance(raw_memories, list):
            logger.warning("Memories array corrupted, resetting")
            return cls(avatar=avatar)

        memories: list[MemoryItem] = []
        for entry in raw_memories:
            try:
                memories.append(MemoryItem.from_dict(entry))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping invalid memory item: {e}")

        return cls(avatar=avatar, memories=tuple(memories[-MAX_MEMORIES:]))
