from assistant.llm.base import GenerationBackend, GenerationRequest
from assistant.llm.openai_client import OpenAIBackend, get_client

__all__ = [
    "GenerationBackend",
    "GenerationRequest",
    "OpenAIBackend",
    "get_client",
]
