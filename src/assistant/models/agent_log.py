from typing import Optional
from sqlmodel import Field
from assistant.models.base import TimestampMixin


class ToolCallLog(TimestampMixin, table=True):
    __table_args__ = {"extend_existing": True}
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    request_id: Optional[str] = Field(default=None, index=True, description="Groups calls made while serving one request")

    tool_name: str
    arguments_json: str  # JSON string of tool arguments
    result_json: str  # JSON string of tool result (or error)
    success: bool
    duration_ms: int


class LLMCallLog(TimestampMixin, table=True):
    __table_args__ = {"extend_existing": True}
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    request_id: Optional[str] = Field(default=None, index=True, description="Groups calls made while serving one request")

    purpose: str  # "select_tools" or "generate"
    model: str
    prompt_summary: str  # Truncated prompt for audit
    message_count: int
    tool_calls_count: int = Field(default=0)

    prompt_tokens: int = Field(default=0)
    completion_tokens: int = Field(default=0)
    total_tokens: int = Field(default=0)

    finish_reason: Optional[str] = None
