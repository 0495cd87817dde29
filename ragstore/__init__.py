"""
ragstore: document and embedding storage with checksum-gated indexing and
token-budgeted relevance selection.
"""

from .vector import (
    Embedding,
    EmbeddingRecord,
    ScoredEmbedding,
    EmbeddingMemoryStore,
    EmbeddingJsonFileStore,
    PgVectorStore,
    FaissEmbeddingStore,
    EmbeddingService,
    DeterministicHashEmbedding,
    SentenceTransformerEmbedding,
)
from .documents import DocumentStore, DocumentSplitter, DocumentMetadata
from .retrieval import RelevanceSelector

VERSION = "0.1.0"

__all__ = [
    'Embedding',
    'EmbeddingRecord',
    'ScoredEmbedding',
    'EmbeddingMemoryStore',
    'EmbeddingJsonFileStore',
    'PgVectorStore',
    'FaissEmbeddingStore',
    'EmbeddingService',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'DocumentStore',
    'DocumentSplitter',
    'DocumentMetadata',
    'RelevanceSelector',
    'VERSION',
]
