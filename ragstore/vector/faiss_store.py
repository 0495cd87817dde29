"""
FAISS-backed embedding store.

Vectors are L2-normalised and kept in an inner-product index, so the index
score is the cosine similarity. An IndexIDMap2 wraps the flat index so records
can be replaced and removed. Nothing is persisted.
"""

import threading
from typing import AsyncIterator, Iterable, List, Optional, Sequence

import numpy as np

from ..util.logging import logger
from .index import (
    BatchItem,
    IBatchEmbeddingStore,
    IEnumerableEmbeddingStore,
    IVectorSearchStore,
    check_dimension,
    validate_key,
    validate_top_k,
)
from .types import Embedding, EmbeddingRecord, ScoredEmbedding


class FaissEmbeddingStore(IBatchEmbeddingStore, IEnumerableEmbeddingStore, IVectorSearchStore):
    """In-process FAISS index with native similarity search."""

    def __init__(self, dimension: int = 384):
        """
        Args:
            dimension: Dimension of the vectors (default: 384 for hash embeddings)
        """
        try:
            import faiss
        except ImportError:
            raise ImportError("FAISS not installed. Please install faiss-cpu package.")

        if dimension is None or int(dimension) <= 0:
            raise ValueError("Dimension must be positive")

        self.faiss = faiss
        self.dimension = int(dimension)
        self.index = self._new_index()

        self._records = {}  # key -> EmbeddingRecord
        self._key_to_id = {}
        self._id_to_key = {}
        self._next_id = 0
        self._lock = threading.Lock()

    def _new_index(self):
        return self.faiss.IndexIDMap2(self.faiss.IndexFlatIP(self.dimension))

    @staticmethod
    def _normalize(embedding: Sequence[float]) -> Optional[np.ndarray]:
        vector = np.asarray(embedding, dtype=np.float32)
        norm = np.linalg.norm(vector)
        if norm == 0:  # zero vectors have no direction, keep them out of the index
            return None
        return (vector / norm).reshape(1, -1)

    def _drop_id(self, key: str) -> None:
        # Caller holds the lock
        vector_id = self._key_to_id.pop(key, None)
        if vector_id is not None:
            self._id_to_key.pop(vector_id, None)
            self.index.remove_ids(np.array([vector_id], dtype=np.int64))

    def _put(self, key: str, embedding: Sequence[float], checksum: str) -> None:
        # Caller holds the lock
        self._drop_id(key)
        self._records[key] = EmbeddingRecord(key=key, checksum=checksum, vector=Embedding(embedding))

        normalized = self._normalize(embedding)
        if normalized is None:
            return

        vector_id = self._next_id
        self._next_id += 1
        self.index.add_with_ids(normalized, np.array([vector_id], dtype=np.int64))
        self._key_to_id[key] = vector_id
        self._id_to_key[vector_id] = key

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def clear(self) -> None:
        """Clear all records from the FAISS store."""
        with self._lock:
            self.index = self._new_index()
            self._records.clear()
            self._key_to_id.clear()
            self._id_to_key.clear()
            self._next_id = 0

    async def store(self, key: str, embedding: Sequence[float], checksum: str) -> bool:
        validate_key(key)
        check_dimension(self.dimension, embedding, key)
        with self._lock:
            self._put(key, embedding, checksum)

        logger.log_embedding_operation("store", key, details={"backend": "faiss"})
        return True

    async def get(self, key: str) -> Optional[EmbeddingRecord]:
        validate_key(key)
        with self._lock:
            return self._records.get(key)

    async def remove(self, key: str) -> bool:
        validate_key(key)
        with self._lock:
            removed = self._records.pop(key, None) is not None
            self._drop_id(key)

        logger.log_embedding_operation("remove", key, "success" if removed else "missing")
        return removed

    async def exists(self, key: str) -> bool:
        validate_key(key)
        with self._lock:
            return key in self._records

    async def iter_all(self) -> AsyncIterator[EmbeddingRecord]:
        with self._lock:
            snapshot = list(self._records.values())

        for record in snapshot:
            yield record

    async def search_similar(
        self,
        query_embedding: Sequence[float],
        top_k: int = 10,
        min_similarity: float = 0.0,
    ) -> List[ScoredEmbedding]:
        if query_embedding is None:
            raise ValueError("Query embedding cannot be None")
        validate_top_k(top_k)
        check_dimension(self.dimension, query_embedding)

        query = self._normalize(query_embedding)
        if query is None:
            return []

        with self._lock:
            if not self.index.ntotal:
                return []
            scores, ids = self.index.search(query, min(top_k, self.index.ntotal))
            hits = []
            for score, vector_id in zip(scores[0], ids[0]):
                key = self._id_to_key.get(int(vector_id))
                if key is None:
                    continue
                hits.append((self._records[key], float(score)))

        return [
            ScoredEmbedding(record=record, similarity=score)
            for record, score in hits
            if score >= min_similarity
        ]

    async def store_batch(self, batch: Iterable[BatchItem]) -> int:
        if batch is None:
            raise ValueError("Batch cannot be None")

        items = list(batch)
        for key, embedding, _ in items:
            validate_key(key)
            check_dimension(self.dimension, embedding, key)

        with self._lock:
            for key, embedding, checksum in items:
                self._put(key, embedding, checksum)

        if items:
            logger.log_operation("embedding.store_batch", "success", {"count": len(items), "backend": "faiss"})
        return len(items)

    async def get_batch(self, keys: Iterable[str]) -> List[EmbeddingRecord]:
        if keys is None:
            raise ValueError("Keys cannot be None")

        key_list = list(keys)
        with self._lock:
            return [self._records[key] for key in key_list if key in self._records]
