"""Base tool interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list,),
    "object": (dict,),
}


@dataclass
class ToolResult:
    """Result from tool execution."""

    success: bool
    output: str
    error: str | None = None
    metadata: dict[str, Any] | None = None

    @classmethod
    def failure(cls, error: str) -> "ToolResult":
        return cls(success=False, output="", error=error)


class Tool(ABC):
    """Base interface for all tools."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool name."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Tool description for LLM."""
        ...

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for tool parameters."""
        ...

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the tool with given arguments."""
        ...

    def get_schema(self) -> dict[str, Any]:
        """Get tool schema for LLM function calling."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def validate_args(self, args: dict[str, Any]) -> tuple[bool, str | None]:
        """Validate arguments against schema. Returns (valid, error_message)."""
        required = self.parameters.get("required", [])
        properties = self.parameters.get("properties", {})

        # Check required fields
        for field in required:
            if field not in args:
                return False, f"Missing required argument: {field}"

        for key, value in args.items():
            if key not in properties or value is None:
                continue
            schema = properties[key]

            expected_type = schema.get("type")
            allowed = _JSON_TYPES.get(expected_type)
            if allowed is not None:
                # bool is an int subclass; only accept it where declared
                if isinstance(value, bool) and expected_type != "boolean":
                    return False, f"Argument '{key}' must be {_article(expected_type)}"
                if not isinstance(value, allowed):
                    return False, f"Argument '{key}' must be {_article(expected_type)}"

            if "enum" in schema and value not in schema["enum"]:
                options = ", ".join(str(option) for option in schema["enum"])
                return False, f"Argument '{key}' must be one of: {options}"

            item_type = schema.get("items", {}).get("type")
            if expected_type == "array" and item_type in _JSON_TYPES:
                if not all(isinstance(item, _JSON_TYPES[item_type]) for item in value):
                    return False, f"Argument '{key}' must be a list of {item_type}s"

        return True, None


def _article(json_type: str) -> str:
    return f"an {json_type}" if json_type[0] in "aeiou" else f"a {json_type}"
