from assistant.search.embeddings import Embedder, HashingEmbedder, OpenAIEmbedder, build_embedder, compute_text_hash
from assistant.search.vector_search import DocumentIndex, batch_cosine_similarity
from assistant.search.ingest import customer_document, index_records

__all__ = [
    "Embedder",
    "HashingEmbedder",
    "OpenAIEmbedder",
    "build_embedder",
    "compute_text_hash",
    "DocumentIndex",
    "batch_cosine_similarity",
    "customer_document",
    "index_records",
]
