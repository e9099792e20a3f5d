"""Tests for JSONL logging."""

import json
from pathlib import Path

import pytest

from percify.logging import JSONLLogger, LogEntry, configure_logger, get_logger


@pytest.fixture
def logger(tmp_path: Path) -> JSONLLogger:
    return JSONLLogger(log_dir=tmp_path)


def read_entries(logger: JSONLLogger) -> list[dict]:
    with open(logger.log_path) as f:
        return [json.loads(line) for line in f]


def test_log_entry_to_dict():
    """Test LogEntry excludes None values."""
    entry = LogEntry(timestamp="2026-01-01T00:00:00Z", event="test")
    data = entry.to_dict()

    assert data == {"timestamp": "2026-01-01T00:00:00Z", "event": "test"}


def test_log_writes_jsonl(logger: JSONLLogger):
    logger.log("event1", chat_id="123")
    logger.log("event2", chat_id="456")

    entries = read_entries(logger)
    assert [e["event"] for e in entries] == ["event1", "event2"]
    assert entries[0]["chat_id"] == "123"


def test_log_message(logger: JSONLLogger):
    logger.log_message("user", "hello", chat_id="c1")

    entry = read_entries(logger)[0]
    assert entry["event"] == "user_message"
    assert entry["extra"] == {"role": "user", "content": "hello"}


def test_log_tool_result_truncates_output(logger: JSONLLogger):
    logger.log_tool_result("research_web", True, output="x" * 5000, duration_ms=12.5)

    entry = read_entries(logger)[0]
    assert entry["event"] == "tool_result"
    assert entry["duration_ms"] == 12.5
    assert len(entry["extra"]["output"]) == 2000
    assert "error" not in entry


def test_log_tool_result_error(logger: JSONLLogger):
    logger.log_tool_result("save_memory", False, error="Invalid memory type")

    entry = read_entries(logger)[0]
    assert entry["error"] == "Invalid memory type"
    assert entry["extra"]["success"] is False


def test_log_agent_stop(logger: JSONLLogger):
    logger.log_agent_stop("complete", chat_id="c1", turns=2, tool_calls_total=1)

    entry = read_entries(logger)[0]
    assert entry["stopped_reason"] == "complete"
    assert entry["extra"] == {"turns": 2, "tool_calls_total": 1}


def test_state_change_events(logger: JSONLLogger):
    logger.log_avatar_updated({"displayName": "Alex"}, chat_id="c1")
    logger.log_memory_stored(3, chat_id="c1")
    logger.log_task_fired("stretch", chat_id="c1")

    entries = read_entries(logger)
    assert [e["event"] for e in entries] == ["avatar_updated", "memory_stored", "task_fired"]
    assert entries[0]["extra"]["avatar"] == {"displayName": "Alex"}
    assert entries[1]["extra"]["memory_count"] == 3
    assert entries[2]["extra"]["description"] == "stretch"


def test_non_json_values_stringified(logger: JSONLLogger):
    logger.log("custom", path=Path("/tmp/x"))
    assert read_entries(logger)[0]["extra"]["path"] == "/tmp/x"


def test_set_chat_id(logger: JSONLLogger):
    logger.set_chat_id("session-42")
    logger.log("event1")
    logger.log("event2", chat_id="explicit")

    entries = read_entries(logger)
    assert entries[0]["chat_id"] == "session-42"
    assert entries[1]["chat_id"] == "explicit"


def test_rotation(tmp_path: Path):
    """Test log rotation when max size is exceeded."""
    logger = JSONLLogger(log_dir=tmp_path, max_size_mb=0.001)  # ~1KB

    for i in range(100):
        logger.log(f"event_{i}", data="x" * 100)

    assert len(list(tmp_path.glob("logs*.jsonl"))) >= 2


def test_configure_logger_replaces_global(tmp_path: Path):
    configured = configure_logger(tmp_path)
    assert get_logger() is configured
    assert configured.log_dir == tmp_path
