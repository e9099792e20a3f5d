"""In-memory owner of the avatar profile and memory log."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from .models import (
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

logger = logging.getLogger(__name__)


def generate_id() -> str:
    """Generate an opaque identifier."""
    return uuid.uuid4().hex[:16]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AvatarStore:
    """Sole owner and mutator of one session's AgentState.

    Every mutation builds a new frozen state and swaps it in with a single
    assignment, so no intermediate state is observable. The store performs no
    I/O and no locking: callers must serialize access per session (see
    SessionManager).
    """

    def __init__(
        self,
        state: AgentState | None = None,
        id_factory: Callable[[], str] = generate_id,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the store.

        Args:
            state: Initial state, empty if omitted.
            id_factory: Generates ids for avatars and memory items.
            clock: Returns the creation timestamp for new memory items.
        """
        self._state = state or AgentState()
        self._id_factory = id_factory
        self._clock = clock

    @classmethod
    def restore(cls, raw: Any, **kwargs: Any) -> AvatarStore:
        """Create a store from persisted data, healing malformed state."""
        return cls(AgentState.restore(raw), **kwargs)

    @property
    def state(self) -> AgentState:
        """The full state, for persistence only."""
        return self._state

    def upsert_profile(self, update: ProfileUpdate) -> AvatarProfile:
        """Merge a partial profile into the stored avatar.

        Each field takes the incoming value if present and non-empty, else
        the existing value, else the hard default. The id is kept once
        assigned.

        Args:
            update: The partial profile.

        Returns:
            The complete resulting profile.
        """
        logger.info(f"Updating avatar profile: {update}")
        current = self._state.avatar

        avatar = AvatarProfile(
            id=current.id if current else self._id_factory(),
            display_name=(
                update.display_name
                or (current.display_name if current else DEFAULT_DISPLAY_NAME)
            ),
            bio=update.bio or (current.bio if current else ""),
            tone=update.tone or (current.tone if current else Tone.CASUAL),
            expertise_tags=(
                tuple(update.expertise_tags)
                if update.expertise_tags
                else (current.expertise_tags if current else ())
            ),
        )

        self._state = AgentState(avatar=avatar, memories=self._state.memories)
        logger.info(f"Avatar updated: {avatar}")
        return avatar

    def append_memory(self, memory_type: MemoryType, content: str) -> list[MemoryItem]:
        """Append a memory item, evicting the oldest beyond capacity.

        Eviction is by insertion order, never by timestamp.

        Args:
            memory_type: The kind of memory.
            content: Non-empty text, validated by the caller.

        Returns:
            The most recent memories (up to RECENT_MEMORIES), oldest first.
        """
        item = MemoryItem(
            id=self._id_factory(),
            created_at=self._clock(),
            type=memory_type,
            content=content,
        )

        memories = (*self._state.memories, item)
        if len(memories) > MAX_MEMORIES:
            memories = memories[-MAX_MEMORIES:]
            logger.info(f"Memory cap reached, trimmed to {MAX_MEMORIES} items")

        self._state = AgentState(avatar=self._state.avatar, memories=memories)
        logger.info(f"Memory stored, total count: {len(memories)}")
        return list(memories[-RECENT_MEMORIES:])

    def snapshot(self) -> AgentState:
        """Return the avatar and the most recent memories."""
        state = self._state
        return AgentState(
            avatar=state.avatar,
            memories=state.memories[-RECENT_MEMORIES:],
        )
