"""Tests for AgentLoop."""

import json
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

from percify.agent.loop import AgentConfig, AgentLoop, StopReason
from percify.avatar import AvatarStore, SaveAvatarProfileTool, SaveMemoryTool
from percify.logging import JSONLLogger
from percify.tools import ToolRegistry

NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)


def text_response(content: str) -> Mock:
    response = Mock()
    response.choices = [Mock()]
    response.choices[0].message.tool_calls = None
    response.choices[0].message.content = content
    response.choices[0].finish_reason = "stop"
    return response


def tool_response(name: str, args: dict, call_id: str = "call_1") -> Mock:
    tool_call = Mock()
    tool_call.id = call_id
    tool_call.function.name = name
    tool_call.function.arguments = json.dumps(args)

    response = Mock()
    response.choices = [Mock()]
    response.choices[0].message.tool_calls = [tool_call]
    response.choices[0].message.content = None
    response.choices[0].finish_reason = "tool_calls"
    return response


def mock_client(*responses: Mock) -> AsyncMock:
    """Groq client stub that records the messages sent on each call."""
    client = AsyncMock()
    client.sent = []
    pending = list(responses)

    async def create(**kwargs):
        client.sent.append([dict(m) for m in kwargs["messages"]])
        return pending.pop(0)

    client.chat.completions.create = AsyncMock(side_effect=create)
    return client


@pytest.fixture
def event_logger(tmp_path: Path) -> JSONLLogger:
    return JSONLLogger(log_dir=tmp_path)


@pytest.fixture
def store() -> AvatarStore:
    return AvatarStore()


@pytest.fixture
def registry(store: AvatarStore) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(SaveAvatarProfileTool(store))
    registry.register(SaveMemoryTool(store))
    return registry


def make_loop(registry, client, store, event_logger, **config) -> AgentLoop:
    return AgentLoop(
        registry,
        AgentConfig(**config),
        groq_client=client,
        store=store,
        event_logger=event_logger,
        clock=lambda: NOW,
    )


def system_prompts(client: AsyncMock) -> list[str]:
    return [messages[0]["content"] for messages in client.sent]


class TestAgentLoop:
    @pytest.mark.asyncio
    async def test_plain_response(self, registry, store, event_logger):
        client = mock_client(text_response("Hello!"))
        loop = make_loop(registry, client, store, event_logger)

        result = await loop.run("Hi", chat_id="c1")

        assert result.response == "Hello!"
        assert result.stop_reason is StopReason.COMPLETE
        assert result.turns == 1
        assert result.tool_calls == []

    @pytest.mark.asyncio
    async def test_empty_state_in_system_prompt(self, registry, store, event_logger):
        client = mock_client(text_response("Hello!"))
        await make_loop(registry, client, store, event_logger).run("Hi")

        prompt = system_prompts(client)[0]
        assert "No avatar profile set yet" in prompt
        assert "No memories stored yet" in prompt

    @pytest.mark.asyncio
    async def test_tool_call_updates_store(self, registry, store, event_logger):
        client = mock_client(
            tool_response("save_avatar_profile", {"displayName": "Alex"}),
            text_response("Nice to meet you, Alex!"),
        )
        result = await make_loop(registry, client, store, event_logger).run("Call me Alex")

        assert result.stop_reason is StopReason.COMPLETE
        assert result.turns == 2
        assert result.tool_calls == [
            {"name": "save_avatar_profile", "args": {"displayName": "Alex"}}
        ]
        assert store.state.avatar.display_name == "Alex"

    @pytest.mark.asyncio
    async def test_prompt_refreshed_after_mutation(self, registry, store, event_logger):
        client = mock_client(
            tool_response("save_memory", {"type": "preference", "content": "likes tea"}),
            text_response("Noted!"),
        )
        await make_loop(registry, client, store, event_logger).run("I like tea")

        first, second = system_prompts(client)
        assert "likes tea" not in first
        assert "- [preference] likes tea" in second

    @pytest.mark.asyncio
    async def test_tool_result_fed_back(self, registry, store, event_logger):
        client = mock_client(
            tool_response("save_memory", {"type": "note", "content": "x"}, call_id="call_9"),
            text_response("Done"),
        )
        await make_loop(registry, client, store, event_logger).run("remember x")

        messages = client.sent[1]
        assistant, tool = messages[-2], messages[-1]
        assert assistant["tool_calls"][0]["id"] == "call_9"
        assert tool["role"] == "tool"
        assert tool["tool_call_id"] == "call_9"
        assert tool["content"].startswith("[save_memory] Success:")

    @pytest.mark.asyncio
    async def test_history_injected(self, registry, store, event_logger):
        client = mock_client(text_response("Sure"))
        history = [
            {"role": "user", "content": "earlier"},
            {"role": "assistant", "content": "reply"},
        ]
        await make_loop(registry, client, store, event_logger).run("now", history=history)

        messages = client.sent[-1]
        assert [m["content"] for m in messages[1:]] == ["earlier", "reply", "now"]

    @pytest.mark.asyncio
    async def test_repeated_call_stops(self, registry, store, event_logger):
        call = ("save_memory", {"type": "note", "content": "same"})
        client = mock_client(*(tool_response(*call) for _ in range(5)))
        result = await make_loop(registry, client, store, event_logger).run("loop")

        assert result.stop_reason is StopReason.REPEATED_CALL
        assert result.turns == 2

    @pytest.mark.asyncio
    async def test_consecutive_errors_stop(self, registry, store, event_logger):
        client = mock_client(
            tool_response("save_memory", {"type": "bogus", "content": "a"}),
            tool_response("save_memory", {"type": "bogus", "content": "b"}),
            tool_response("save_memory", {"type": "bogus", "content": "c"}),
        )
        result = await make_loop(registry, client, store, event_logger).run("break")

        assert result.stop_reason is StopReason.CONSECUTIVE_ERRORS
        assert store.state.memories == ()

    @pytest.mark.asyncio
    async def test_max_turns(self, registry, store, event_logger):
        client = mock_client(
            *(tool_response("save_memory", {"type": "note", "content": f"n{i}"}) for i in range(3))
        )
        result = await make_loop(registry, client, store, event_logger, max_turns=3).run("go")

        assert result.stop_reason is StopReason.MAX_TURNS
        assert result.turns == 3
        assert result.response == "Max turns reached"
        assert len(store.state.memories) == 3

    @pytest.mark.asyncio
    async def test_invalid_arguments_json(self, registry, store, event_logger):
        bad = tool_response("save_memory", {})
        bad.choices[0].message.tool_calls[0].function.arguments = "{not json"
        client = mock_client(bad, text_response("Sorry"))

        result = await make_loop(registry, client, store, event_logger).run("x")

        assert result.tool_calls == [{"name": "save_memory", "args": {}}]
        assert result.stop_reason is StopReason.COMPLETE

    @pytest.mark.asyncio
    async def test_events_logged(self, registry, store, event_logger):
        client = mock_client(text_response("Hello!"))
        await make_loop(registry, client, store, event_logger).run("Hi", chat_id="c1")

        with open(event_logger.log_path) as f:
            events = [json.loads(line)["event"] for line in f]

        assert events[0] == "user_message"
        assert "llm_request" in events
        assert "assistant_message" in events
        assert events[-1] == "agent_stop"

    @pytest.mark.asyncio
    async def test_without_store(self, event_logger):
        client = mock_client(text_response("Hi"))
        loop = AgentLoop(ToolRegistry(), groq_client=client, event_logger=event_logger)
        result = await loop.run("Hello")

        assert result.stop_reason is StopReason.COMPLETE
        assert "No avatar profile set yet" in system_prompts(client)[0]
