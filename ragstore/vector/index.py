"""
Embedding store interfaces and the in-memory backend.

Every backend implements IEmbeddingStore. Optional capabilities are separate
interfaces checked with isinstance():

- IVectorSearchStore: similarity search (native or brute force)
- IBatchEmbeddingStore: multi-record store/get
- IEnumerableEmbeddingStore: full enumeration, small stores only
"""

import threading
from abc import ABC, abstractmethod
from typing import AsyncIterator, Iterable, List, Optional, Sequence, Tuple

from ..core.errors import DimensionMismatchError
from ..util.logging import logger
from .types import Embedding, EmbeddingRecord, ScoredEmbedding

BatchItem = Tuple[str, Sequence[float], str]


def validate_key(key: str) -> None:
    if not key:
        raise ValueError("Key cannot be null or empty")


def validate_top_k(top_k: int) -> None:
    if top_k <= 0:
        raise ValueError("top_k must be positive")


def check_dimension(expected: Optional[int], embedding: Sequence[float], key: str = None) -> None:
    """Raise DimensionMismatchError when expected is set and the lengths differ."""
    if embedding is None:
        raise ValueError("Embedding cannot be None")
    if expected is not None and len(embedding) != expected:
        raise DimensionMismatchError(expected, len(embedding), key)
    if len(embedding) == 0:
        raise ValueError("Embedding cannot be empty")


def rank_by_similarity(
    records: Iterable[EmbeddingRecord],
    query: Sequence[float],
    top_k: Optional[int] = None,
    min_similarity: Optional[float] = None,
) -> List[ScoredEmbedding]:
    """
    Brute-force cosine ranking.

    Records whose similarity is undefined (zero norm or a different length)
    are skipped. Ordering is by descending similarity; ties keep the input
    order, so callers control tie-breaking through iteration order.

    Args:
        records: Candidate records
        query: Query vector
        top_k: Maximum number of results, or None for all
        min_similarity: Drop results below this score, or None to keep all
    """
    query_embedding = query if isinstance(query, Embedding) else Embedding(query)
    if query_embedding.norm() == 0:
        return []

    scored = []
    for record in records:
        if len(record.vector) != len(query_embedding):
            continue
        try:
            similarity = query_embedding.cosine_similarity(record.vector)
        except ValueError:
            continue
        if min_similarity is not None and similarity < min_similarity:
            continue
        scored.append(ScoredEmbedding(record=record, similarity=similarity))

    scored.sort(key=lambda s: s.similarity, reverse=True)
    if top_k is not None:
        scored = scored[:top_k]
    return scored


class IEmbeddingStore(ABC):
    """CRUD over embedding records. No generation, no search."""

    dimension: Optional[int] = None

    @abstractmethod
    async def store(self, key: str, embedding: Sequence[float], checksum: str) -> bool:
        """Insert or replace the record for key."""

    @abstractmethod
    async def get(self, key: str) -> Optional[EmbeddingRecord]:
        """Return the record for key, or None if absent."""

    @abstractmethod
    async def remove(self, key: str) -> bool:
        """Remove the record for key. Returns whether it existed."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check whether a record exists for key."""


class IVectorSearchStore(ABC):
    """Similarity search over stored embeddings."""

    @abstractmethod
    async def search_similar(
        self,
        query_embedding: Sequence[float],
        top_k: int = 10,
        min_similarity: float = 0.0,
    ) -> List[ScoredEmbedding]:
        """Return at most top_k hits with similarity >= min_similarity, best first."""


class IBatchEmbeddingStore(IEmbeddingStore):
    """Stores with multi-record operations."""

    @abstractmethod
    async def store_batch(self, batch: Iterable[BatchItem]) -> int:
        """Store (key, embedding, checksum) items. Returns how many were stored."""

    @abstractmethod
    async def get_batch(self, keys: Iterable[str]) -> List[EmbeddingRecord]:
        """Return the records that exist for keys, in request order."""


class IEnumerableEmbeddingStore(IEmbeddingStore):
    """Stores small enough to enumerate completely."""

    @abstractmethod
    def iter_all(self) -> AsyncIterator[EmbeddingRecord]:
        """Yield every record from a snapshot taken when iteration starts."""


class EmbeddingMemoryStore(IBatchEmbeddingStore, IEnumerableEmbeddingStore, IVectorSearchStore):
    """
    In-memory embedding store. Data is lost when the process exits.

    All access to the record map goes through one lock that is held only for
    the in-memory read or mutation.
    """

    def __init__(self, dimension: Optional[int] = None):
        """
        Args:
            dimension: Fixed vector length. When None, the first stored
                vector fixes it.
        """
        self.dimension = dimension
        self._embeddings = {}  # key -> EmbeddingRecord
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._embeddings)

    def clear(self) -> None:
        """Remove all records. The configured dimension is kept."""
        with self._lock:
            self._embeddings.clear()

    def _put(self, key: str, embedding: Sequence[float], checksum: str) -> None:
        # Caller holds the lock
        check_dimension(self.dimension, embedding, key)
        if self.dimension is None:
            self.dimension = len(embedding)
        self._embeddings[key] = EmbeddingRecord(key=key, checksum=checksum, vector=Embedding(embedding))

    async def store(self, key: str, embedding: Sequence[float], checksum: str) -> bool:
        validate_key(key)
        with self._lock:
            self._put(key, embedding, checksum)

        logger.log_embedding_operation("store", key)
        return True

    async def get(self, key: str) -> Optional[EmbeddingRecord]:
        validate_key(key)
        with self._lock:
            return self._embeddings.get(key)

    async def remove(self, key: str) -> bool:
        validate_key(key)
        with self._lock:
            removed = self._embeddings.pop(key, None) is not None

        logger.log_embedding_operation("remove", key, "success" if removed else "missing")
        return removed

    async def exists(self, key: str) -> bool:
        validate_key(key)
        with self._lock:
            return key in self._embeddings

    async def iter_all(self) -> AsyncIterator[EmbeddingRecord]:
        with self._lock:
            snapshot = list(self._embeddings.values())

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

        with self._lock:
            snapshot = list(self._embeddings.values())

        return rank_by_similarity(snapshot, query_embedding, top_k, min_similarity)

    async def store_batch(self, batch: Iterable[BatchItem]) -> int:
        if batch is None:
            raise ValueError("Batch cannot be None")

        items = list(batch)
        if not items:
            return 0

        # Validate everything up front so a bad item leaves the store untouched
        expected = self.dimension if self.dimension is not None else len(items[0][1])
        for key, embedding, _ in items:
            validate_key(key)
            check_dimension(expected, embedding, key)

        with self._lock:
            for key, embedding, checksum in items:
                self._put(key, embedding, checksum)

        logger.log_operation("embedding.store_batch", "success", {"count": len(items)})
        return len(items)

    async def get_batch(self, keys: Iterable[str]) -> List[EmbeddingRecord]:
        if keys is None:
            raise ValueError("Keys cannot be None")

        key_list = list(keys)
        with self._lock:
            return [self._embeddings[key] for key in key_list if key in self._embeddings]
