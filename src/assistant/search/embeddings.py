import hashlib
import re
import threading
from typing import Dict, List, Optional, Protocol
import numpy as np
from openai import OpenAI, OpenAIError
from assistant.config import Settings, settings as default_settings
from assistant.errors import EmbeddingError
from assistant.logging import logger

TOKEN_RE = re.compile(r"[a-z0-9]+")

# Function words carry no meaning for keyword matching
STOPWORDS = frozenset("""
a about an and any are as at be been but by can do does for from had has have
how i if in into is it its me my no not of on or our s t that the their them
there these they this to us was we were what when where which who whom why
will with would you your
""".split())


def compute_text_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class Embedder(Protocol):
    dims: Optional[int]

    def embed(self, text: str) -> List[float]:
        ...

    def embed_many(self, texts: List[str]) -> List[List[float]]:
        ...


class OpenAIEmbedder:
    """OpenAI embeddings, cached by text hash.

    The cache makes repeated input map to the identical vector for the
    lifetime of the embedder.
    """

    def __init__(self, client: Optional[OpenAI] = None, model: Optional[str] = None):
        if client is None:
            from assistant.llm.openai_client import get_client
            client = get_client()
        self.client = client
        self.model = model or default_settings.OPENAI_EMBEDDING_MODEL
        self.dims: Optional[int] = None
        self._cache: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def _fetch(self, texts: List[str]) -> List[List[float]]:
        """Batch call to OpenAI Embeddings API."""
        try:
            response = self.client.embeddings.create(input=texts, model=self.model)
            # Ensure order is preserved
            return [data.embedding for data in response.data]
        except OpenAIError as e:
            logger.error(f"OpenAI Embedding API failed: {e}")
            raise EmbeddingError(f"Embedding provider failed: {e}") from e

    def embed_many(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        hashes = [compute_text_hash(t) for t in texts]
        with self._lock:
            missing = {h: t for h, t in zip(hashes, texts) if h not in self._cache}

        if missing:
            logger.info(f"Generating embeddings for {len(missing)} items...")
            vectors = self._fetch(list(missing.values()))
            with self._lock:
                for h, vec in zip(missing.keys(), vectors):
                    self._cache.setdefault(h, list(vec))
                    self.dims = len(vec)

        with self._lock:
            return [self._cache[h] for h in hashes]

    def embed(self, text: str) -> List[float]:
        """Get embedding for a single query string."""
        return self.embed_many([text])[0]


class HashingEmbedder:
    """Deterministic set-of-words embedder using signed feature hashing.

    Needs no network access. Texts that share content words land close
    together, which is enough for keyword-level similarity over short
    records. Stopwords are dropped and each distinct word counts once.
    """

    def __init__(self, dims: int = 4096, stopwords: frozenset = STOPWORDS):
        if dims <= 0:
            raise ValueError("dims must be positive")
        self.dims = dims
        self.stopwords = stopwords

    def tokenize(self, text: str) -> List[str]:
        """Distinct content words in first-seen order."""
        tokens = [t for t in TOKEN_RE.findall(text.lower()) if t not in self.stopwords]
        return list(dict.fromkeys(tokens))

    def embed(self, text: str) -> List[float]:
        vec = np.zeros(self.dims, dtype=np.float32)
        for token in self.tokenize(text):
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "little") % self.dims
            sign = 1.0 if digest[4] & 1 else -1.0
            vec[bucket] += sign
        norm = np.linalg.norm(vec)
        if norm > 0:
            vec /= norm
        return vec.tolist()

    def embed_many(self, texts: List[str]) -> List[List[float]]:
        return [self.embed(t) for t in texts]


def build_embedder(config: Settings = default_settings, client: Optional[OpenAI] = None) -> Embedder:
    provider = config.EMBEDDING_PROVIDER.lower()
    if provider == "hashing":
        return HashingEmbedder(dims=config.HASHING_EMBEDDING_DIMS)
    if provider == "openai":
        return OpenAIEmbedder(client=client, model=config.OPENAI_EMBEDDING_MODEL)
    raise ValueError(f"Unknown EMBEDDING_PROVIDER '{config.EMBEDDING_PROVIDER}'")
