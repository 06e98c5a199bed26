from assistant.models.customer import Customer
from assistant.models.agent_log import ToolCallLog, LLMCallLog
from assistant.models.conversation import ConversationTurn, TurnRole
from assistant.models.document import IndexedDocument
from assistant.models.tool import ToolCall, ToolDescriptor, ToolParameter

__all__ = [
    "Customer",
    "ToolCallLog", "LLMCallLog",
    "ConversationTurn", "TurnRole",
    "IndexedDocument",
    "ToolCall", "ToolDescriptor", "ToolParameter",
]
