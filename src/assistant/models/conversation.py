from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class TurnRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ConversationTurn:
    """One message in a user's conversation. Turns are never edited after creation."""
    role: TurnRole
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    tool_name: Optional[str] = None  # set on TOOL turns

    @classmethod
    def user(cls, content: str) -> "ConversationTurn":
        return cls(role=TurnRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "ConversationTurn":
        return cls(role=TurnRole.ASSISTANT, content=content)

    @classmethod
    def tool(cls, tool_name: str, content: str) -> "ConversationTurn":
        return cls(role=TurnRole.TOOL, content=content, tool_name=tool_name)
