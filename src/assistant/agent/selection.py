"""
Tool-selection strategies for the tool phase.

A selector looks at the query (and history) and returns zero or more
ToolCalls. The orchestrator runs them; selectors never invoke tools.
"""
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence
from assistant.errors import GenerationError
from assistant.llm.base import GenerationBackend, GenerationRequest
from assistant.models.conversation import ConversationTurn
from assistant.models.tool import ToolCall, ToolDescriptor
from assistant.logging import logger

SELECTION_PROMPT = """\
Decide which of the available tools, if any, are needed to answer the user's latest message.
Call only tools that are relevant. If none apply, reply without calling a tool.
"""


class ToolSelector(Protocol):
    def select(
        self,
        query: str,
        history: Sequence[ConversationTurn],
        tools: Sequence[ToolDescriptor],
        user_id: str = "",
    ) -> List[ToolCall]:
        ...


class NullToolSelector:
    """Never selects a tool."""

    def select(self, query, history, tools, user_id=""):
        return []


class ModelToolSelector:
    """Let the generation backend pick tools via function calling."""

    def __init__(self, backend: GenerationBackend, system_prompt: str = SELECTION_PROMPT):
        self.backend = backend
        self.system_prompt = system_prompt

    def select(self, query, history, tools, user_id=""):
        if not tools:
            return []
        request = GenerationRequest(
            system_prompt=self.system_prompt,
            history=tuple(history),
            new_message=query,
            available_tools=tuple(tools),
            user_id=user_id,
        )
        try:
            calls = self.backend.select_tools(request)
        except GenerationError as e:
            # No tools selected; retrieval covers the request instead
            logger.warning(f"Tool selection failed, continuing without tools: {e}")
            return []
        known = {t.name for t in tools}
        for call in calls:
            if call.name not in known:
                # Kept so the registry reports it as UnknownTool
                logger.warning(f"Model selected unregistered tool {call.name}")
        return calls


ArgsBuilder = Callable[[re.Match, str], Dict]


@dataclass
class ToolRule:
    tool_name: str
    pattern: re.Pattern
    build_args: Optional[ArgsBuilder] = None

    def match(self, query: str) -> Optional[ToolCall]:
        m = self.pattern.search(query)
        if not m:
            return None
        args = self.build_args(m, query) if self.build_args else {}
        return ToolCall(name=self.tool_name, arguments=args)


class RuleToolSelector:
    """Regex rules, tried in order; the first matching rule wins."""

    def __init__(self, rules: Iterable[ToolRule]):
        self.rules = list(rules)

    def select(self, query, history, tools, user_id=""):
        available = {t.name for t in tools}
        for rule in self.rules:
            if rule.tool_name not in available:
                continue
            call = rule.match(query)
            if call:
                return [call]
        return []


def _type_pattern(known_types: Sequence[str]) -> Optional[re.Pattern]:
    if not known_types:
        return None
    # Longest first so "Gas Station" wins over a hypothetical "Gas"
    names = sorted(known_types, key=len, reverse=True)
    alternatives = "|".join(re.escape(t) for t in names)
    return re.compile(rf"\b(?P<type>{alternatives})s?\b", re.IGNORECASE)


def customer_tool_rules(known_types: Sequence[str]) -> List[ToolRule]:
    """Default rules for the customer tools."""
    type_re = _type_pattern(known_types)
    canonical = {t.lower(): t for t in known_types}

    def list_args(_m: re.Match, query: str) -> Dict:
        if type_re is None:
            return {}
        found = type_re.search(query)
        return {"type": canonical[found["type"].lower()]} if found else {}

    list_pattern = r"\bcustomers?\b"
    if type_re is not None:
        list_pattern += "|" + type_re.pattern

    return [
        ToolRule(
            "list_customer_types",
            re.compile(
                r"\b(customer\s+(types|categories)|(types|kinds|categories)\s+of\s+customers?)\b",
                re.IGNORECASE,
            ),
        ),
        ToolRule(
            "get_customer",
            re.compile(r"\bcustomer\s+(?:#|id\s*|number\s*)?(?P<customer_id>\d+)\b", re.IGNORECASE),
            lambda m, _q: {"customer_id": int(m["customer_id"])},
        ),
        ToolRule("list_customers", re.compile(list_pattern, re.IGNORECASE), list_args),
    ]
