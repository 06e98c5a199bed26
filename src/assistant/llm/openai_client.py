import json
from functools import lru_cache
from typing import Any, Dict, List, Optional
import openai
from openai import OpenAI
from assistant.audit import AuditLog
from assistant.config import settings
from assistant.errors import GenerationError
from assistant.llm.base import GenerationRequest
from assistant.models.conversation import ConversationTurn, TurnRole
from assistant.models.tool import ToolCall
from assistant.logging import logger

# Transient failures a caller may reasonably retry
RETRYABLE_ERRORS = (openai.RateLimitError, openai.APIConnectionError, openai.APITimeoutError)


@lru_cache(maxsize=1)
def get_client() -> OpenAI:
    """Shared OpenAI client.

    The key comes from settings (which also reads .env); the OpenAI client
    falls back to the OPENAI_API_KEY env var when it is not set there.
    """
    api_key = settings.OPENAI_API_KEY.get_secret_value() if settings.OPENAI_API_KEY else None
    return OpenAI(api_key=api_key)


def turn_to_message(turn: ConversationTurn) -> Dict[str, Any]:
    # Tool turns carry no tool_call_id, so they go in as system notes
    if turn.role == TurnRole.TOOL:
        return {"role": "system", "content": f"Result of tool {turn.tool_name}: {turn.content}"}
    return {"role": turn.role.value, "content": turn.content}


def build_messages(request: GenerationRequest) -> List[Dict[str, Any]]:
    messages: List[Dict[str, Any]] = [{"role": "system", "content": request.system_prompt}]
    messages.extend(turn_to_message(t) for t in request.history)
    messages.append({"role": "user", "content": request.new_message})
    return messages


class OpenAIBackend:
    """Chat-completions backend with function calling."""

    def __init__(self, client: Optional[OpenAI] = None, model: Optional[str] = None, audit: Optional[AuditLog] = None):
        self.client = client or get_client()
        self.model = model or settings.OPENAI_MODEL_AGENT
        self.audit = audit

    def _complete(self, purpose: str, request: GenerationRequest, messages: list, tool_choice: str):
        tools = [d.to_openai() for d in request.available_tools]
        kwargs: Dict[str, Any] = {"model": self.model, "messages": messages}
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = tool_choice

        try:
            response = self.client.chat.completions.create(**kwargs)
        except RETRYABLE_ERRORS as e:
            logger.error(f"OpenAI {purpose} call failed (retryable): {e}")
            raise GenerationError(f"Generation backend unavailable: {e}", retryable=True) from e
        except openai.OpenAIError as e:
            logger.error(f"OpenAI {purpose} call failed: {e}")
            raise GenerationError(f"Generation backend rejected the request: {e}") from e

        if self.audit:
            self.audit.log_llm_call(request.user_id, purpose, self.model, messages, response)
        return response

    def generate(self, request: GenerationRequest) -> str:
        messages = build_messages(request)
        # Tools are listed for context only; tool execution happened earlier
        response = self._complete("generate", request, messages, tool_choice="none")
        content = response.choices[0].message.content
        if not content:
            raise GenerationError("Generation backend returned an empty reply")
        return content

    def select_tools(self, request: GenerationRequest) -> List[ToolCall]:
        if not request.available_tools:
            return []
        messages = build_messages(request)
        response = self._complete("select_tools", request, messages, tool_choice="auto")

        calls: List[ToolCall] = []
        for tc in response.choices[0].message.tool_calls or []:
            try:
                args = json.loads(tc.function.arguments or "{}")
            except json.JSONDecodeError:
                logger.warning(f"Malformed arguments for {tc.function.name}: {tc.function.arguments!r}")
                args = {}
            if not isinstance(args, dict):
                args = {}
            calls.append(ToolCall(name=tc.function.name, arguments=args, id=tc.id))
        return calls
