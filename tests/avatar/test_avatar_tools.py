"""Tests for avatar tools."""

import json

import pytest

from percify.avatar import (
    AvatarStore,
    GetAvatarStateTool,
    MemoryType,
    SaveAvatarProfileTool,
    SaveMemoryTool,
    Tone,
)
from percify.tools import ToolRegistry


@pytest.fixture
def store() -> AvatarStore:
    return AvatarStore()


@pytest.fixture
def registry(store: AvatarStore) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(SaveAvatarProfileTool(store))
    registry.register(SaveMemoryTool(store))
    registry.register(GetAvatarStateTool(store))
    return registry


class TestSaveAvatarProfileTool:
    def test_schema(self, store: AvatarStore):
        tool = SaveAvatarProfileTool(store)
        assert tool.name == "save_avatar_profile"
        props = tool.parameters["properties"]
        assert props["tone"]["enum"] == ["casual", "professional", "playful", "technical"]
        assert props["expertiseTags"]["type"] == "array"
        assert tool.parameters["required"] == []

    @pytest.mark.asyncio
    async def test_updates_profile(self, registry: ToolRegistry, store: AvatarStore):
        result = await registry.dispatch(
            "save_avatar_profile",
            {"displayName": "Alex", "tone": "playful", "expertiseTags": ["ml"]},
        )

        assert result.success
        assert "updated successfully" in result.output
        assert result.metadata["avatar"]["displayName"] == "Alex"

        avatar = store.state.avatar
        assert avatar is not None
        assert avatar.tone is Tone.PLAYFUL
        assert avatar.expertise_tags == ("ml",)

    @pytest.mark.asyncio
    async def test_output_contains_full_profile(self, registry: ToolRegistry):
        result = await registry.dispatch("save_avatar_profile", {"bio": "Hi"})
        profile = json.loads(result.output.split("\n", 1)[1])
        assert set(profile) == {"id", "displayName", "bio", "tone", "expertiseTags"}
        assert profile["displayName"] == "Unnamed Avatar"

    @pytest.mark.asyncio
    async def test_invalid_tone_rejected_before_mutation(
        self, registry: ToolRegistry, store: AvatarStore
    ):
        result = await registry.dispatch("save_avatar_profile", {"tone": "grumpy"})
        assert result.success is False
        assert "must be one of" in result.error
        assert store.state.avatar is None

    @pytest.mark.asyncio
    async def test_invalid_tone_rejected_on_direct_execute(self, store: AvatarStore):
        result = await SaveAvatarProfileTool(store).execute(tone="grumpy")
        assert result.success is False
        assert store.state.avatar is None

    @pytest.mark.asyncio
    async def test_non_string_tags_rejected(self, registry: ToolRegistry, store: AvatarStore):
        result = await registry.dispatch("save_avatar_profile", {"expertiseTags": [1, 2]})
        assert result.success is False
        assert store.state.avatar is None

    @pytest.mark.asyncio
    async def test_null_fields_ignored(self, registry: ToolRegistry, store: AvatarStore):
        await registry.dispatch("save_avatar_profile", {"displayName": "Alex"})
        result = await registry.dispatch(
            "save_avatar_profile", {"displayName": None, "tone": "technical"}
        )
        assert result.success
        assert store.state.avatar.display_name == "Alex"


class TestSaveMemoryTool:
    def test_schema(self, store: AvatarStore):
        tool = SaveMemoryTool(store)
        assert tool.name == "save_memory"
        assert tool.parameters["required"] == ["type", "content"]
        assert tool.parameters["properties"]["type"]["enum"] == ["task", "preference", "note"]

    @pytest.mark.asyncio
    async def test_saves_memory(self, registry: ToolRegistry, store: AvatarStore):
        result = await registry.dispatch(
            "save_memory", {"type": "preference", "content": "prefers dark mode"}
        )

        assert result.success
        assert 'I\'ll remember: "prefers dark mode"' in result.output
        assert len(result.metadata["recentMemories"]) == 1

        memory = store.state.memories[0]
        assert memory.type is MemoryType.PREFERENCE
        assert memory.content == "prefers dark mode"

    @pytest.mark.asyncio
    async def test_returns_recent_five(self, registry: ToolRegistry):
        for i in range(7):
            result = await registry.dispatch("save_memory", {"type": "note", "content": f"m{i}"})

        contents = [m["content"] for m in result.metadata["recentMemories"]]
        assert contents == ["m2", "m3", "m4", "m5", "m6"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", "   ", "\n"])
    async def test_blank_content_rejected(self, store: AvatarStore, content: str):
        result = await SaveMemoryTool(store).execute(type="note", content=content)
        assert result.success is False
        assert "non-empty" in result.error
        assert store.state.memories == ()

    @pytest.mark.asyncio
    async def test_invalid_type_rejected(self, registry: ToolRegistry, store: AvatarStore):
        result = await registry.dispatch("save_memory", {"type": "reminder", "content": "x"})
        assert result.success is False
        assert store.state.memories == ()

    @pytest.mark.asyncio
    async def test_invalid_type_rejected_on_direct_execute(self, store: AvatarStore):
        result = await SaveMemoryTool(store).execute(type="reminder", content="x")
        assert result.success is False
        assert "Invalid memory type" in result.error

    @pytest.mark.asyncio
    async def test_missing_content_rejected(self, registry: ToolRegistry):
        result = await registry.dispatch("save_memory", {"type": "note"})
        assert result.success is False
        assert "Missing required" in result.error


class TestGetAvatarStateTool:
    @pytest.mark.asyncio
    async def test_empty_state(self, registry: ToolRegistry):
        result = await registry.dispatch("get_avatar_state", {})
        assert result.success
        assert json.loads(result.output) == {"avatar": None, "recentMemories": []}

    @pytest.mark.asyncio
    async def test_reports_profile_and_recent(self, registry: ToolRegistry):
        await registry.dispatch("save_avatar_profile", {"displayName": "Alex"})
        for i in range(6):
            await registry.dispatch("save_memory", {"type": "task", "content": f"t{i}"})

        result = await registry.dispatch("get_avatar_state", {})
        data = json.loads(result.output)

        assert data["avatar"]["displayName"] == "Alex"
        assert [m["content"] for m in data["recentMemories"]] == ["t1", "t2", "t3", "t4", "t5"]
