"""Per-chat conversation state, avatar stores, and single-writer locking."""

import asyncio
import json
import logging
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from ..avatar import AvatarStore, StateRepository

logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    """Conversation state for a single chat."""

    chat_id: str
    profile_key: str | None = None
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    messages: list[dict[str, Any]] = field(default_factory=list)

    def touch(self) -> None:
        self.last_activity = time.time()

    def is_expired(self, ttl_seconds: float) -> bool:
        return (time.time() - self.last_activity) > ttl_seconds

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionState":
        return cls(**data)


@dataclass
class SessionConfig:
    """Configuration for session manager."""

    sessions_dir: Path | None = None
    ttl_seconds: float = 3600
    cleanup_interval: float = 300
    max_messages: int = 200

    def __post_init__(self) -> None:
        if self.sessions_dir is None:
            self.sessions_dir = Path.home() / ".percify" / "sessions"


class SessionFiles:
    """One JSON file per chat holding its SessionState."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)

    def path(self, chat_id: str) -> Path:
        return self.directory / f"{chat_id}.json"

    def read(self, chat_id: str) -> SessionState | None:
        path = self.path(chat_id)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return SessionState.from_dict(json.load(f))
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable session file {path}: {e}")
            return None

    def write(self, session: SessionState) -> None:
        with open(self.path(session.chat_id), "w", encoding="utf-8") as f:
            json.dump(session.to_dict(), f, indent=2, ensure_ascii=False)

    def delete(self, chat_id: str) -> None:
        self.path(chat_id).unlink(missing_ok=True)


class SessionManager:
    """Owns sessions, avatar stores, and the per-chat locks guarding them.

    Holding a chat's lock is the precondition for mutating the avatar store
    behind it. Avatar state is keyed by profile key, which defaults to the
    chat id, and is written to the repository whenever the lock is released.
    """

    BUSY_MESSAGE = "⏳ I'm still working on your previous message. Please wait."

    def __init__(
        self,
        config: SessionConfig | None = None,
        repository: StateRepository | None = None,
    ) -> None:
        self.config = config or SessionConfig()
        self.repository = repository
        assert self.config.sessions_dir is not None
        self.files = SessionFiles(self.config.sessions_dir)

        self._sessions: dict[str, SessionState] = {}
        self._stores: dict[str, AvatarStore] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._owners: dict[str, asyncio.Task | None] = {}
        self._waiting: dict[str, int] = {}
        self._cleanup_task: asyncio.Task | None = None

    # Sessions

    def get_session(self, chat_id: str) -> SessionState:
        """Get the session for a chat, loading or creating it."""
        session = self._sessions.get(chat_id)
        if session is None:
            session = self.files.read(chat_id) or SessionState(chat_id=chat_id)
            self._sessions[chat_id] = session
        return session

    def profile_key(self, chat_id: str) -> str:
        """The avatar profile key bound to a chat."""
        return self.get_session(chat_id).profile_key or chat_id

    def bind_profile(self, chat_id: str, profile_key: str) -> None:
        self.get_session(chat_id).profile_key = profile_key

    def add_message(self, chat_id: str, role: str, content: str) -> None:
        """Append to the chat history, keeping at most max_messages."""
        session = self.get_session(chat_id)
        session.messages.append({"role": role, "content": content, "timestamp": time.time()})
        del session.messages[: -self.config.max_messages]
        session.touch()

    def get_messages(
        self,
        chat_id: str,
        limit: int = 20,
        for_llm: bool = False,
    ) -> list[dict[str, Any]]:
        """Get the most recent messages of a chat.

        Args:
            chat_id: The session identifier.
            limit: Maximum number of messages to return.
            for_llm: Strip everything but role and content.
        """
        if limit <= 0:
            return []

        messages = self.get_session(chat_id).messages[-limit:]
        if for_llm:
            return [{"role": m["role"], "content": m["content"]} for m in messages]
        return messages

    async def destroy_session(self, chat_id: str) -> bool:
        """Forget a chat's conversation. Its avatar state is kept.

        Returns False, leaving everything in place, while the chat is busy.
        """
        if self.is_busy(chat_id):
            return False

        session = self._sessions.pop(chat_id, None)
        if session is not None:
            self.save_store(session.profile_key or chat_id)

        self._locks.pop(chat_id, None)
        self._owners.pop(chat_id, None)
        self.files.delete(chat_id)
        return True

    # Avatar stores

    def get_store(self, profile_key: str) -> AvatarStore:
        """Get a profile's avatar store, restoring it on first use."""
        store = self._stores.get(profile_key)
        if store is None:
            raw = self.repository.load(profile_key) if self.repository else None
            store = self._stores[profile_key] = AvatarStore.restore(raw)
        return store

    def save_store(self, profile_key: str) -> None:
        store = self._stores.get(profile_key)
        if store is not None and self.repository is not None:
            self.repository.save(profile_key, store.state)

    # Locking

    def get_lock(self, chat_id: str) -> asyncio.Lock:
        return self._locks.setdefault(chat_id, asyncio.Lock())

    def is_busy(self, chat_id: str) -> bool:
        """True while the chat's lock is held or someone is queued for it."""
        lock = self._locks.get(chat_id)
        locked = lock is not None and lock.locked()
        return locked or self._waiting.get(chat_id, 0) > 0

    async def acquire(self, chat_id: str) -> tuple[bool, str | None]:
        """Take the chat's lock without waiting.

        Returns:
            (True, None) when acquired, (False, BUSY_MESSAGE) when the chat
            is already being processed or has a turn queued.
        """
        if self.is_busy(chat_id):
            return False, self.BUSY_MESSAGE

        # A free lock with no waiters is taken without suspending.
        await self.get_lock(chat_id).acquire()
        self._owners[chat_id] = asyncio.current_task()
        self.get_session(chat_id).touch()
        return True, None

    async def wait_acquire(self, chat_id: str) -> None:
        """Take the chat's lock, queueing behind the current holder."""
        lock = self.get_lock(chat_id)
        self._waiting[chat_id] = self._waiting.get(chat_id, 0) + 1
        try:
            await lock.acquire()
        finally:
            self._waiting[chat_id] -= 1
            if not self._waiting[chat_id]:
                del self._waiting[chat_id]
        self._owners[chat_id] = asyncio.current_task()
        self.get_session(chat_id).touch()

    def release(self, chat_id: str) -> bool:
        """Release the chat's lock and persist its session and avatar.

        Only the task that acquired the lock may release it. Calls from any
        other task are ignored and return False.
        """
        lock = self._locks.get(chat_id)
        if lock is None or not lock.locked():
            return False
        if self._owners.get(chat_id) is not asyncio.current_task():
            logger.warning(f"Ignoring release of chat {chat_id} from a task that does not hold it")
            return False

        del self._owners[chat_id]
        lock.release()

        session = self._sessions.get(chat_id)
        if session is not None:
            self.files.write(session)
            self.save_store(session.profile_key or chat_id)
        return True

    # Expiry

    async def cleanup_expired(self) -> int:
        """Destroy idle sessions that are not busy. Returns how many."""
        expired = [
            chat_id
            for chat_id, session in self._sessions.items()
            if not self.is_busy(chat_id) and session.is_expired(self.config.ttl_seconds)
        ]
        for chat_id in expired:
            await self.destroy_session(chat_id)
        return len(expired)

    async def _cleanup_loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.config.cleanup_interval)
                count = await self.cleanup_expired()
                if count:
                    logger.info(f"Cleaned up {count} expired session(s)")
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Session cleanup failed")

    def start_cleanup_task(self) -> None:
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    def stop_cleanup_task(self) -> None:
        if self._cleanup_task and not self._cleanup_task.done():
            self._cleanup_task.cancel()
