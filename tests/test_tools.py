"""Tests for tool registry and argument validation."""

import pytest

from percify.tools import Tool, ToolRegistry, ToolResult


class EchoTool(Tool):
    """Simple echo tool for testing."""

    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Echoes the input message"

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "message": {"type": "string", "description": "Message to echo"},
                "times": {"type": "integer"},
                "mood": {"type": "string", "enum": ["happy", "sad"]},
                "tags": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["message"],
        }

    async def execute(self, message: str, **kwargs) -> ToolResult:
        return ToolResult(success=True, output=message * kwargs.get("times", 1))


class BrokenTool(EchoTool):
    @property
    def name(self) -> str:
        return "broken"

    async def execute(self, message: str, **kwargs) -> ToolResult:
        raise RuntimeError("kaboom")


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry()


@pytest.fixture
def echo_tool() -> EchoTool:
    return EchoTool()


def test_register_tool(registry: ToolRegistry, echo_tool: EchoTool) -> None:
    registry.register(echo_tool)
    assert "echo" in registry.list_tools()


def test_register_duplicate_raises(registry: ToolRegistry, echo_tool: EchoTool) -> None:
    registry.register(echo_tool)
    with pytest.raises(ValueError, match="already registered"):
        registry.register(echo_tool)


def test_construct_with_tools(echo_tool: EchoTool) -> None:
    registry = ToolRegistry([echo_tool, BrokenTool()])
    assert registry.list_tools() == ["echo", "broken"]
    assert "echo" in registry
    assert "missing" not in registry


def test_get_unknown_tool(registry: ToolRegistry) -> None:
    assert registry.get("unknown") is None


def test_failure_result() -> None:
    assert ToolResult.failure("nope") == ToolResult(success=False, output="", error="nope")


def test_get_tools_schema(registry: ToolRegistry, echo_tool: EchoTool) -> None:
    registry.register(echo_tool)
    schemas = registry.get_tools_schema()
    assert len(schemas) == 1
    assert schemas[0]["type"] == "function"
    assert schemas[0]["function"]["name"] == "echo"


@pytest.mark.asyncio
async def test_dispatch_success(registry: ToolRegistry, echo_tool: EchoTool) -> None:
    registry.register(echo_tool)
    result = await registry.dispatch("echo", {"message": "hi", "times": 2})
    assert result.success is True
    assert result.output == "hihi"


@pytest.mark.asyncio
async def test_dispatch_unknown_tool(registry: ToolRegistry) -> None:
    result = await registry.dispatch("unknown", {})
    assert result.success is False
    assert "Unknown tool" in result.error


@pytest.mark.asyncio
async def test_dispatch_missing_required_arg(registry: ToolRegistry, echo_tool: EchoTool) -> None:
    registry.register(echo_tool)
    result = await registry.dispatch("echo", {})
    assert result.success is False
    assert "Missing required" in result.error


@pytest.mark.asyncio
async def test_dispatch_tool_exception(registry: ToolRegistry) -> None:
    registry.register(BrokenTool())
    result = await registry.dispatch("broken", {"message": "x"})
    assert result.success is False
    assert result.error == "Tool execution failed: kaboom"


class TestValidateArgs:
    def test_type_check(self, echo_tool: EchoTool) -> None:
        valid, error = echo_tool.validate_args({"message": 123})
        assert valid is False
        assert "must be a string" in error

    def test_bool_is_not_integer(self, echo_tool: EchoTool) -> None:
        valid, error = echo_tool.validate_args({"message": "x", "times": True})
        assert valid is False
        assert "must be an integer" in error

    def test_enum(self, echo_tool: EchoTool) -> None:
        valid, error = echo_tool.validate_args({"message": "x", "mood": "angry"})
        assert valid is False
        assert error == "Argument 'mood' must be one of: happy, sad"

    def test_array_items(self, echo_tool: EchoTool) -> None:
        valid, error = echo_tool.validate_args({"message": "x", "tags": ["a", 1]})
        assert valid is False
        assert "list of strings" in error

    def test_none_values_skipped(self, echo_tool: EchoTool) -> None:
        assert echo_tool.validate_args({"message": "x", "mood": None}) == (True, None)

    def test_unknown_keys_ignored(self, echo_tool: EchoTool) -> None:
        assert echo_tool.validate_args({"message": "x", "extra": 1}) == (True, None)
