"""
Exception hierarchy for the assistant runtime.

Everything raised on purpose derives from AssistantError so adapters (CLI,
HTTP glue) can catch one type and turn it into a user-visible failure.
"""


class AssistantError(Exception):
    """Base exception for all assistant errors."""


class InvalidRequest(AssistantError):
    """Raised when a request has an empty user id or query."""


# ---------------------------------------------------------------------------
# Tool layer
# ---------------------------------------------------------------------------
class ToolError(AssistantError):
    """Base class for failures while invoking a registered tool."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(message)
        self.tool_name = tool_name


class UnknownTool(ToolError):
    def __init__(self, tool_name: str):
        super().__init__(tool_name, f"Unknown tool: {tool_name}")


class InvalidArgument(ToolError):
    """Arguments do not satisfy the tool's parameter schema."""


class ExecutionFailure(ToolError):
    """The tool handler raised, or did not finish in time."""


class ToolTimeout(ExecutionFailure):
    def __init__(self, tool_name: str, timeout: float):
        super().__init__(tool_name, f"Tool {tool_name} timed out after {timeout:g}s")
        self.timeout = timeout


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------
class IndexDimensionMismatch(AssistantError):
    """Embedding length disagrees with the index dimension. Fatal at ingestion time."""

    def __init__(self, expected: int, actual: int, doc_id: str | None = None):
        where = f" (document {doc_id})" if doc_id else ""
        super().__init__(f"Embedding dimension mismatch{where}: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual
        self.doc_id = doc_id


class EmbeddingError(AssistantError):
    """The embedding provider was unavailable or rejected the request."""


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------
class GenerationError(AssistantError):
    """The generation backend was unavailable or rejected the request."""

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


# ---------------------------------------------------------------------------
# Record store
# ---------------------------------------------------------------------------
class RecordStoreError(AssistantError):
    """Base class for record store failures."""


class DuplicateRecord(RecordStoreError):
    """A record with the same identifier already exists."""


class UnknownField(RecordStoreError):
    """The requested field does not exist on the record model."""
