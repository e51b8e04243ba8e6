"""Tool definitions handed to models that support native tool calling."""

from dataclasses import dataclass, field
from typing import Any


def _json_type(param_type: str) -> tuple[str, dict | None]:
    mapping = {
        "string": "string",
        "integer": "integer",
        "float": "number",
        "number": "number",
        "boolean": "boolean",
        "object": "object",
        "any": "object",
    }

    if param_type.startswith("list[") or param_type.startswith("array["):
        inner = param_type[param_type.find("[") + 1 : -1]
        return "array", {"type": mapping.get(inner, "string")}

    return mapping.get(param_type, "string"), None


@dataclass
class ToolParameter:
    """A parameter for a tool."""
    name: str
    type: str
    description: str
    required: bool = True
    default: Any = None


@dataclass
class ToolDefinition:
    """Definition of a tool that the model can call."""
    name: str
    description: str
    parameters: list[ToolParameter] = field(default_factory=list)

    def json_schema(self) -> dict[str, Any]:
        properties: dict[str, Any] = {}
        required: list[str] = []
        for param in self.parameters:
            json_type, items = _json_type(param.type)
            prop: dict[str, Any] = {"type": json_type, "description": param.description}
            if items:
                prop["items"] = items
            if param.default is not None:
                prop["default"] = param.default
            properties[param.name] = prop
            if param.required:
                required.append(param.name)
        return {"type": "object", "properties": properties, "required": required}

    def to_openai_schema(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.json_schema(),
            },
        }

    def to_anthropic_schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.json_schema(),
        }


TIME_TOOL = ToolDefinition(
    name="time",
    description="Get the current date and time.",
)
