"""
In-memory document index with cosine-similarity search.

The index is filled at startup by a single writer and then read
concurrently. Searches work on a snapshot of the matrix taken under the
lock, so a concurrent ``add`` never shows a half-built state.
"""
import threading
from typing import List, Optional, Sequence, Tuple
import numpy as np
from assistant.errors import IndexDimensionMismatch
from assistant.models.document import IndexedDocument
from assistant.logging import logger


def batch_cosine_similarity(query_vec: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """
    Compute cosine similarity between query_vec and all rows in matrix.
    query_vec: (d,)
    matrix: (n, d)
    Returns: (n,) scores
    """
    norm_q = np.linalg.norm(query_vec)
    norm_m = np.linalg.norm(matrix, axis=1)

    # Avoid div by zero
    norm_product = norm_q * norm_m
    norm_product[norm_product == 0] = 1e-9

    dot_products = np.dot(matrix, query_vec)
    return dot_products / norm_product


class DocumentIndex:
    def __init__(self):
        self._documents: List[IndexedDocument] = []
        self._ids: set = set()
        self._matrix: Optional[np.ndarray] = None
        self._dimension: Optional[int] = None
        self._lock = threading.Lock()

    @property
    def dimension(self) -> Optional[int]:
        """Embedding length fixed by the first add, or None while empty."""
        return self._dimension

    def __len__(self) -> int:
        return len(self._documents)

    def get(self, doc_id: str) -> Optional[IndexedDocument]:
        for doc in self._documents:
            if doc.id == doc_id:
                return doc
        return None

    def __contains__(self, doc_id: str) -> bool:
        return doc_id in self._ids

    def add(self, documents: Sequence[IndexedDocument]) -> int:
        """Add a batch of documents. The batch is rejected whole on any error."""
        if not documents:
            return 0

        with self._lock:
            expected = self._dimension if self._dimension is not None else documents[0].dims
            if expected == 0:
                raise ValueError(f"Document {documents[0].id} has an empty embedding")

            batch_ids = set()
            for doc in documents:
                if doc.dims != expected:
                    logger.error(f"Rejecting batch: document {doc.id} has {doc.dims} dims, index has {expected}")
                    raise IndexDimensionMismatch(expected, doc.dims, doc_id=doc.id)
                if doc.id in self._ids or doc.id in batch_ids:
                    raise ValueError(f"Document {doc.id} is already indexed")
                batch_ids.add(doc.id)

            rows = np.array([doc.embedding for doc in documents], dtype=np.float32)
            if self._matrix is None:
                matrix = rows
            else:
                matrix = np.vstack([self._matrix, rows])

            # Swap in new state; readers holding the old references are unaffected
            self._documents = self._documents + list(documents)
            self._matrix = matrix
            self._ids |= batch_ids
            self._dimension = expected

        logger.info(f"Indexed {len(documents)} documents (total {len(self._documents)}, dims {expected})")
        return len(documents)

    def search(self, query_embedding: Sequence[float], k: int = 4) -> List[Tuple[IndexedDocument, float]]:
        """
        Return up to k (document, score) pairs by descending cosine similarity.
        Equal scores keep insertion order.
        """
        with self._lock:
            documents, matrix, dimension = self._documents, self._matrix, self._dimension

        if k <= 0 or matrix is None or not documents:
            return []
        if len(query_embedding) != dimension:
            raise IndexDimensionMismatch(dimension, len(query_embedding))

        query_vec = np.asarray(query_embedding, dtype=np.float32)
        scores = batch_cosine_similarity(query_vec, matrix)

        # Stable sort on negated scores keeps insertion order for ties
        top_indices = np.argsort(-scores, kind="stable")[:k]

        return [(documents[idx], float(scores[idx])) for idx in top_indices]
