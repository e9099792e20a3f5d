"""JSONL event logging for conversations and state changes."""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

MAX_LOGGED_OUTPUT = 2000


@dataclass
class LogEntry:
    """A single log entry."""

    timestamp: str
    event: str
    chat_id: str | None = None
    duration_ms: float | None = None
    stopped_reason: str | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict, excluding None values."""
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None and v != {} and v != []}


class JSONLLogger:
    """Logger that writes structured events in JSONL format."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "logs.jsonl",
        max_size_mb: float = 10.0,
    ) -> None:
        if log_dir is None:
            log_dir = Path.home() / ".percify" / "logs"
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)
        self._current_chat_id: str | None = None

    @property
    def log_path(self) -> Path:
        """Current log file path."""
        return self.log_dir / self.filename

    def set_chat_id(self, chat_id: str | None) -> None:
        """Set the current chat_id for all subsequent logs."""
        self._current_chat_id = chat_id

    def _rotate_if_needed(self) -> None:
        """Rotate log file if it exceeds max size."""
        if not self.log_path.exists():
            return

        if self.log_path.stat().st_size >= self.max_size_bytes:
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
            rotated_name = f"{self.log_path.stem}_{timestamp}.jsonl"
            self.log_path.rename(self.log_dir / rotated_name)

    def _write(self, entry: LogEntry) -> None:
        """Write a log entry to the file."""
        self._rotate_if_needed()

        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict(), ensure_ascii=False, default=str) + "\n")

    def log(
        self,
        event: str,
        *,
        chat_id: str | None = None,
        duration_ms: float | None = None,
        stopped_reason: str | None = None,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Log an event."""
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            chat_id=chat_id or self._current_chat_id,
            duration_ms=duration_ms,
            stopped_reason=stopped_reason,
            error=error,
            extra=extra if extra else {},
        )
        self._write(entry)

    def log_message(self, role: str, content: str, *, chat_id: str | None = None) -> None:
        """Log a user or assistant message."""
        self.log(f"{role}_message", chat_id=chat_id, role=role, content=content)

    def log_llm_request(
        self,
        model: str,
        messages_count: int,
        has_tools: bool,
        *,
        chat_id: str | None = None,
    ) -> None:
        """Log an LLM API request."""
        self.log(
            "llm_request",
            chat_id=chat_id,
            model=model,
            messages_count=messages_count,
            has_tools=has_tools,
        )

    def log_llm_response(
        self,
        has_content: bool,
        tool_calls_count: int,
        *,
        chat_id: str | None = None,
        finish_reason: str | None = None,
    ) -> None:
        """Log an LLM API response."""
        self.log(
            "llm_response",
            chat_id=chat_id,
            has_content=has_content,
            tool_calls_count=tool_calls_count,
            finish_reason=finish_reason,
        )

    def log_tool_call(
        self,
        tool_name: str,
        args: dict[str, Any],
        *,
        chat_id: str | None = None,
    ) -> None:
        """Log a tool call."""
        self.log("tool_call", chat_id=chat_id, tool_name=tool_name, tool_args=args)

    def log_tool_result(
        self,
        tool_name: str,
        success: bool,
        *,
        chat_id: str | None = None,
        output: str = "",
        duration_ms: float | None = None,
        error: str | None = None,
    ) -> None:
        """Log a tool result."""
        self.log(
            "tool_result",
            chat_id=chat_id,
            duration_ms=duration_ms,
            error=error if not success else None,
            success=success,
            tool_name=tool_name,
            output=output[:MAX_LOGGED_OUTPUT],
        )

    def log_avatar_updated(self, avatar: dict[str, Any] | None, *, chat_id: str | None = None) -> None:
        """Log a change to the avatar profile."""
        self.log("avatar_updated", chat_id=chat_id, avatar=avatar)

    def log_memory_stored(self, memory_count: int, *, chat_id: str | None = None) -> None:
        """Log a change to the memory log."""
        self.log("memory_stored", chat_id=chat_id, memory_count=memory_count)

    def log_task_fired(self, description: str, *, chat_id: str | None = None) -> None:
        """Log a scheduled task starting its turn."""
        self.log("task_fired", chat_id=chat_id, description=description)

    def log_agent_stop(
        self,
        reason: str,
        *,
        chat_id: str | None = None,
        turns: int | None = None,
        tool_calls_total: int | None = None,
    ) -> None:
        """Log when the agent loop stops."""
        self.log(
            "agent_stop",
            chat_id=chat_id,
            stopped_reason=reason,
            turns=turns,
            tool_calls_total=tool_calls_total,
        )


# Global logger instance
_logger: JSONLLogger | None = None


def get_logger() -> JSONLLogger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = JSONLLogger()
    return _logger


def configure_logger(log_dir: str | Path | None = None, max_size_mb: float = 10.0) -> JSONLLogger:
    """Configure and return the global logger."""
    global _logger
    _logger = JSONLLogger(log_dir=log_dir, max_size_mb=max_size_mb)
    return _logger
