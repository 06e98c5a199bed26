"""
Retrieval-augmented orchestrator.

Serves one (user_id, query) request through the phases

    RECEIVED -> TOOL_PHASE -> RETRIEVAL_PHASE -> GENERATION_PHASE -> COMPLETED | FAILED

Tool failures are recovered here (the request falls through to retrieval),
and so is an embedding provider outage during retrieval. Any other failure
moves the request to FAILED, is re-raised to the caller, and nothing is
written to the user's memory.
"""
import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple
from assistant.agent.memory import SessionMemoryManager
from assistant.agent.registry import ToolRegistry
from assistant.agent.selection import ToolSelector
from assistant.audit import AuditLog
from assistant.config import RetrievalPolicy
from assistant.errors import AssistantError, EmbeddingError, InvalidRequest, ToolError
from assistant.llm.base import GenerationBackend, GenerationRequest
from assistant.models.conversation import ConversationTurn
from assistant.models.document import IndexedDocument
from assistant.models.tool import ToolCall, tool_calls_summary
from assistant.search.embeddings import Embedder
from assistant.search.vector_search import DocumentIndex
from assistant.logging import logger, request_scope


SYSTEM_PROMPT = """\
You are a Sales and Marketing Agent.
You have access to the commercial database and can answer questions about customers.

Rules:
- First use the tool results in the conversation to find the relevant information; if they do not answer the question, refer to the retrieved context.
- If there is no information, return a polite response saying that you don't have the information. Never make up an answer.
- Be concise.
"""

NO_INFORMATION_REPLY = (
    "I'm sorry, but I don't have any information about that in the customer database."
)


class RequestState(str, Enum):
    RECEIVED = "RECEIVED"
    TOOL_PHASE = "TOOL_PHASE"
    RETRIEVAL_PHASE = "RETRIEVAL_PHASE"
    GENERATION_PHASE = "GENERATION_PHASE"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass
class OrchestratorPolicy:
    retrieval: RetrievalPolicy = RetrievalPolicy.FALLBACK
    top_k: int = 4
    min_score: float = 0.25
    # A passage must also score this far above the mean over the whole index
    min_margin: float = 0.1
    tool_timeout: Optional[float] = 10.0
    persist_tool_turns: bool = False
    # Answer with NO_INFORMATION_REPLY instead of calling the backend when
    # neither tools nor retrieval produced anything usable
    require_context: bool = True


@dataclass
class ToolOutcome:
    call: ToolCall
    result: Any
    success: bool
    duration_ms: int

    @property
    def definitive(self) -> bool:
        return self.success and is_definitive(self.result)


@dataclass
class ExchangeResult:
    """Outcome of one orchestrated request."""
    reply: str = ""
    state: RequestState = RequestState.RECEIVED
    request_id: str = ""
    tool_outcomes: List[ToolOutcome] = field(default_factory=list)
    tool_turns: List[ConversationTurn] = field(default_factory=list)
    passages: List[Tuple[IndexedDocument, float]] = field(default_factory=list)
    used_retrieval: bool = False
    generated: bool = False  # False when the no-information reply was used

    @property
    def selected_tools(self) -> List[str]:
        return [o.call.name for o in self.tool_outcomes]


def is_definitive(result: Any) -> bool:
    """A tool result answers the question if it is non-empty, error-free and,
    when it reports a count, the count is positive."""
    if result is None:
        return False
    if isinstance(result, dict):
        if not result or "error" in result:
            return False
        count = result.get("count")
        return count is None or count > 0
    if isinstance(result, (list, tuple, str)):
        return len(result) > 0
    return True


def _dump(result: Any) -> str:
    return json.dumps(result, default=str)


def build_context_section(passages: Sequence[Tuple[IndexedDocument, float]]) -> str:
    if not passages:
        return ""
    lines = [f"[{i}] {doc.text}" for i, (doc, _score) in enumerate(passages, 1)]
    return "## Retrieved Context\n" + "\n".join(lines)


class Orchestrator:
    def __init__(
        self,
        registry: ToolRegistry,
        index: DocumentIndex,
        embedder: Embedder,
        backend: GenerationBackend,
        memory: SessionMemoryManager,
        selector: ToolSelector,
        policy: Optional[OrchestratorPolicy] = None,
        audit: Optional[AuditLog] = None,
        system_prompt: str = SYSTEM_PROMPT,
        idle_ttl_seconds: Optional[float] = None,
    ):
        self.registry = registry
        self.index = index
        self.embedder = embedder
        self.backend = backend
        self.memory = memory
        self.selector = selector
        self.policy = policy or OrchestratorPolicy()
        self.audit = audit
        self.system_prompt = system_prompt
        self.idle_ttl_seconds = idle_ttl_seconds

    def ask(self, user_id: str, query: str) -> str:
        """Serve one request and return the reply text."""
        return self.run(user_id, query).reply

    def _transition(self, result: ExchangeResult, state: RequestState) -> None:
        logger.debug(f"{result.state.value} -> {state.value}")
        result.state = state

    def run(self, user_id: str, query: str) -> ExchangeResult:
        with request_scope() as request_id:
            result = ExchangeResult(request_id=request_id)
            try:
                return self._run(result, user_id, query)
            except InvalidRequest:
                raise
            except AssistantError as e:
                self._transition(result, RequestState.FAILED)
                logger.error(f"Request failed in {type(e).__name__}: {e}")
                raise

    def _run(self, result: ExchangeResult, user_id: str, query: str) -> ExchangeResult:
        # --- RECEIVED ---
        user_id = (user_id or "").strip()
        query = (query or "").strip()
        if not user_id:
            raise InvalidRequest("user id must not be empty")
        if not query:
            raise InvalidRequest("query must not be empty")
        logger.info(f"Request from user {user_id}: {query[:200]!r}")

        if self.idle_ttl_seconds is not None:
            self.memory.evict_idle(self.idle_ttl_seconds)
        session = self.memory.get_or_create(user_id)
        session.touch()
        history = session.snapshot()

        # --- TOOL_PHASE ---
        self._transition(result, RequestState.TOOL_PHASE)
        calls = self.selector.select(query, history, self.registry.descriptors(), user_id=user_id)
        logger.info(f"Selected tools: {tool_calls_summary(calls)}")
        for call in calls:
            outcome = self._invoke_tool(user_id, call)
            result.tool_outcomes.append(outcome)
            result.tool_turns.append(ConversationTurn.tool(call.name, _dump(outcome.result)))

        # --- RETRIEVAL_PHASE ---
        self._transition(result, RequestState.RETRIEVAL_PHASE)
        if self._should_retrieve(result.tool_outcomes):
            result.used_retrieval = True
            try:
                result.passages = self._retrieve(query)
            except EmbeddingError as e:
                logger.warning(f"Retrieval skipped: {e}")
            logger.info(f"Retrieved {len(result.passages)} relevant passages")

        # --- GENERATION_PHASE ---
        self._transition(result, RequestState.GENERATION_PHASE)
        has_context = any(o.definitive for o in result.tool_outcomes) or bool(result.passages)
        if self.policy.require_context and not has_context:
            logger.info("No tool result or relevant passage; answering with no-information reply")
            reply = NO_INFORMATION_REPLY
        else:
            request = self._build_request(user_id, query, history, result)
            reply = self.backend.generate(request)
            result.generated = True

        turns = [ConversationTurn.user(query)]
        if self.policy.persist_tool_turns:
            turns.extend(result.tool_turns)
        turns.append(ConversationTurn.assistant(reply))
        session.append(*turns)

        # --- COMPLETED ---
        self._transition(result, RequestState.COMPLETED)
        result.reply = reply
        return result

    def _invoke_tool(self, user_id: str, call: ToolCall) -> ToolOutcome:
        t0 = time.monotonic()
        try:
            output = self.registry.invoke(call.name, call.arguments, timeout=self.policy.tool_timeout)
            success = True
        except ToolError as e:
            logger.warning(f"Tool {call.name} failed ({type(e).__name__}): {e}")
            output = {"error": str(e), "error_type": type(e).__name__}
            success = False
        duration_ms = int((time.monotonic() - t0) * 1000)

        if self.audit:
            self.audit.log_tool_call(user_id, call.name, call.arguments, output, success, duration_ms)
        return ToolOutcome(call=call, result=output, success=success, duration_ms=duration_ms)

    def _should_retrieve(self, outcomes: Sequence[ToolOutcome]) -> bool:
        if self.policy.retrieval == RetrievalPolicy.NEVER:
            return False
        if self.policy.retrieval == RetrievalPolicy.ALWAYS:
            return True
        return not any(o.definitive for o in outcomes)

    def _retrieve(self, query: str) -> List[Tuple[IndexedDocument, float]]:
        if len(self.index) == 0:
            return []
        query_vec = self.embedder.embed(query)
        # Score the whole index so a passage can be judged against the rest
        hits = self.index.search(query_vec, len(self.index))
        baseline = sum(score for _doc, score in hits) / len(hits)
        check_margin = self.policy.min_margin > 0 and len(hits) > 1

        passages = []
        for doc, score in hits[: self.policy.top_k]:
            if score < self.policy.min_score:
                continue
            if check_margin and score - baseline < self.policy.min_margin:
                continue
            passages.append((doc, score))
        return passages

    def _build_request(self, user_id: str, query: str, history: Sequence[ConversationTurn], result: ExchangeResult) -> GenerationRequest:
        prompt_parts = [self.system_prompt]
        context = build_context_section(result.passages)
        if context:
            prompt_parts.append(context)

        return GenerationRequest(
            system_prompt="\n\n".join(prompt_parts),
            history=tuple(history) + tuple(result.tool_turns),
            new_message=query,
            available_tools=tuple(self.registry.descriptors()),
            user_id=user_id,
        )
