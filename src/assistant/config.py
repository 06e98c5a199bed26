from enum import Enum

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, SecretStr


class RetrievalPolicy(str, Enum):
    FALLBACK = "fallback"  # retrieve only when no tool answered
    ALWAYS = "always"
    NEVER = "never"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    OPENAI_API_KEY: SecretStr | None = Field(None, description="OpenAI API Key")
    OPENAI_MODEL_AGENT: str = Field(
        "gpt-4o-mini",
        description="Chat model used for tool selection and answer generation"
    )
    OPENAI_EMBEDDING_MODEL: str = Field(
        "text-embedding-3-small",
        description="Model for embeddings"
    )
    EMBEDDING_PROVIDER: str = Field(
        "openai",
        description="'openai' or 'hashing' (offline, deterministic)"
    )
    HASHING_EMBEDDING_DIMS: int = Field(4096, description="Vector size for the hashing embedder")

    DATABASE_URL: str = Field("sqlite:///data/assistant.db", description="SQLAlchemy URL for customer records")
    SEED_CUSTOMERS: bool = Field(True, description="Seed demo customers into an empty store")

    MEMORY_MAX_TURNS: int = Field(20, description="Conversation window kept per user")
    SESSION_IDLE_TTL_SECONDS: float | None = Field(
        None,
        description="Evict sessions idle for longer than this. None keeps them for the process lifetime."
    )

    RETRIEVAL_POLICY: RetrievalPolicy = Field(RetrievalPolicy.FALLBACK)
    RETRIEVAL_TOP_K: int = Field(4, description="Passages retrieved per request")
    RETRIEVAL_MIN_SCORE: float = Field(
        0.25,
        description="Cosine similarity below which a passage is considered irrelevant"
    )
    RETRIEVAL_MIN_MARGIN: float = Field(
        0.1,
        description="How far a passage must score above the index-wide mean to count as relevant. 0 disables the check."
    )

    TOOL_SELECTION: str = Field("model", description="'model' (function calling) or 'rules'")
    TOOL_TIMEOUT_SECONDS: float = Field(10.0, description="Per-invocation tool timeout")

# Singleton instance
settings = Settings()
