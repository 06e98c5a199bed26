from assistant.agent.orchestrator import Orchestrator, OrchestratorPolicy, ExchangeResult, RequestState, NO_INFORMATION_REPLY
from assistant.agent.registry import ToolRegistry
from assistant.agent.memory import SessionMemory, SessionMemoryManager
from assistant.agent.selection import ModelToolSelector, RuleToolSelector, NullToolSelector, customer_tool_rules
from assistant.agent.tools import register_customer_tools

__all__ = [
    "Orchestrator",
    "OrchestratorPolicy",
    "ExchangeResult",
    "RequestState",
    "NO_INFORMATION_REPLY",
    "ToolRegistry",
    "SessionMemory",
    "SessionMemoryManager",
    "ModelToolSelector",
    "RuleToolSelector",
    "NullToolSelector",
    "customer_tool_rules",
    "register_customer_tools",
]
