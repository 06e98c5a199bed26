from dataclasses import dataclass, field
from typing import List, Protocol, Sequence
from assistant.models.conversation import ConversationTurn
from assistant.models.tool import ToolCall, ToolDescriptor


@dataclass
class GenerationRequest:
    """Everything the backend sees for one call."""
    system_prompt: str
    history: Sequence[ConversationTurn] = field(default_factory=tuple)
    new_message: str = ""
    available_tools: Sequence[ToolDescriptor] = field(default_factory=tuple)
    user_id: str = ""


class GenerationBackend(Protocol):
    def generate(self, request: GenerationRequest) -> str:
        """Return the reply text, or raise GenerationError."""
        ...

    def select_tools(self, request: GenerationRequest) -> List[ToolCall]:
        """Return the tool calls the model wants for ``request.new_message``."""
        ...
