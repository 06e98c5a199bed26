"""
Audit trail for backend and tool calls.

Every LLM call and tool invocation made while serving a request is written to
the database, grouped by user id and request id.
"""
import json
from typing import Any, List, Optional
from sqlalchemy.engine import Engine
from sqlmodel import Session, select
from assistant.models.agent_log import ToolCallLog, LLMCallLog
from assistant.logging import get_request_id, logger


class AuditLog:
    def __init__(self, engine: Engine):
        self.engine = engine

    def _write(self, entry) -> None:
        # Audit failures must not break the request being served
        try:
            with Session(self.engine) as session:
                session.add(entry)
                session.commit()
        except Exception as e:
            logger.error(f"Failed to write audit entry {type(entry).__name__}: {e}")

    def log_llm_call(
        self,
        user_id: str,
        purpose: str,
        model: str,
        messages: list,
        response,
    ) -> None:
        """Persist an LLM call summary."""
        usage = getattr(response, "usage", None)
        choice = response.choices[0]
        tool_calls = choice.message.tool_calls or []

        prompt_summary = ""
        for m in reversed(messages):
            if m["role"] in ("user", "system"):
                prompt_summary = str(m.get("content", ""))[:500]
                break

        self._write(LLMCallLog(
            user_id=user_id,
            request_id=get_request_id(),
            purpose=purpose,
            model=model,
            prompt_summary=prompt_summary,
            message_count=len(messages),
            tool_calls_count=len(tool_calls),
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            total_tokens=usage.total_tokens if usage else 0,
            finish_reason=choice.finish_reason,
        ))

    def log_tool_call(
        self,
        user_id: str,
        tool_name: str,
        arguments: dict,
        result: Any,
        success: bool,
        duration_ms: int,
    ) -> None:
        """Persist a tool invocation."""
        self._write(ToolCallLog(
            user_id=user_id,
            request_id=get_request_id(),
            tool_name=tool_name,
            arguments_json=json.dumps(arguments, default=str),
            result_json=json.dumps(result, default=str)[:4000],
            success=success,
            duration_ms=duration_ms,
        ))

    def tool_calls(self, user_id: Optional[str] = None) -> List[ToolCallLog]:
        with Session(self.engine) as session:
            stmt = select(ToolCallLog).order_by(ToolCallLog.id)
            if user_id is not None:
                stmt = stmt.where(ToolCallLog.user_id == user_id)
            return list(session.exec(stmt).all())

    def llm_calls(self, user_id: Optional[str] = None) -> List[LLMCallLog]:
        with Session(self.engine) as session:
            stmt = select(LLMCallLog).order_by(LLMCallLog.id)
            if user_id is not None:
                stmt = stmt.where(LLMCallLog.user_id == user_id)
            return list(session.exec(stmt).all())
