"""
Tool descriptors as exposed to the generation backend.

Parameter types use JSON Schema scalar names so descriptors translate
directly into OpenAI function-calling definitions.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

JSON_TYPES = ("string", "integer", "number", "boolean", "array", "object")


@dataclass(frozen=True)
class ToolParameter:
    name: str
    type: str  # one of JSON_TYPES
    description: str = ""
    required: bool = True

    def __post_init__(self):
        if self.type not in JSON_TYPES:
            raise ValueError(f"Unsupported parameter type '{self.type}' for '{self.name}'")


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    parameters: Tuple[ToolParameter, ...] = ()

    def json_schema(self) -> Dict[str, Any]:
        """Parameters as a JSON Schema object."""
        return {
            "type": "object",
            "properties": {
                p.name: {"type": p.type, "description": p.description}
                for p in self.parameters
            },
            "required": [p.name for p in self.parameters if p.required],
        }

    def to_openai(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.json_schema(),
            },
        }


@dataclass
class ToolCall:
    """A request to run one tool, as chosen by a selector."""
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    id: str = ""


def tool_calls_summary(calls: List[ToolCall]) -> str:
    return ", ".join(c.name for c in calls) or "none"
