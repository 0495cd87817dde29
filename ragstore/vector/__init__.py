"""
Embedding value types, embedding stores, generators and the embedding service.
"""

# Package initialization for vector module
from .types import Embedding, EmbeddingRecord, ScoredEmbedding, PersistedEmbedding, cosine_similarity
from .index import (
    IEmbeddingStore,
    IVectorSearchStore,
    IBatchEmbeddingStore,
    IEnumerableEmbeddingStore,
    EmbeddingMemoryStore,
    rank_by_similarity,
)
from .json_store import EmbeddingJsonFileStore
from .pgvector_store import PgVectorStore
from .faiss_store import FaissEmbeddingStore
from .embeddings import IEmbeddingGenerator, DeterministicHashEmbedding, SentenceTransformerEmbedding
from .service import EmbeddingService, format_embedding_input

__all__ = [
    'Embedding',
    'EmbeddingRecord',
    'ScoredEmbedding',
    'PersistedEmbedding',
    'cosine_similarity',
    'IEmbeddingStore',
    'IVectorSearchStore',
    'IBatchEmbeddingStore',
    'IEnumerableEmbeddingStore',
    'EmbeddingMemoryStore',
    'rank_by_similarity',
    'EmbeddingJsonFileStore',
    'PgVectorStore',
    'FaissEmbeddingStore',
    'IEmbeddingGenerator',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'EmbeddingService',
    'format_embedding_input',
]
