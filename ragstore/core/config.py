"""
Environment configuration and scheme-prefix factories for the store backends.

Backend specs are strings: ``memory``, ``file:<path>``, ``faiss:``,
``pgvector:<conninfo>``, ``postgres:<conninfo>`` or a plain path. Scheme
matching is case-insensitive.
"""

import os
from pathlib import Path
from typing import Callable, Dict, Optional

# Backend selection
RAGSTORE_EMBEDDINGS = os.getenv("RAGSTORE_EMBEDDINGS", "memory")
RAGSTORE_TEXT = os.getenv("RAGSTORE_TEXT", "memory")
RAGSTORE_CHUNKS = os.getenv("RAGSTORE_CHUNKS", "memory")
RAGSTORE_METADATA = os.getenv("RAGSTORE_METADATA", "memory")
RAGSTORE_NAME = os.getenv("RAGSTORE_NAME")

# Embedding generation
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "hash")  # hash|sentence-transformers
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "all-MiniLM-L6-v2")
EMBED_DIM = int(os.getenv("EMBED_DIM", "384"))

# Token budgets
TOKEN_ENCODING = os.getenv("TOKEN_ENCODING", "cl100k_base")
CHUNK_TOKENS = int(os.getenv("CHUNK_TOKENS", "1000"))
MAX_INPUT_TOKENS = int(os.getenv("MAX_INPUT_TOKENS", "8000"))
MAX_TOTAL_TOKENS = int(os.getenv("MAX_TOTAL_TOKENS", "20000"))

EmbeddingStoreFactory = Callable[[str, Optional[int]], object]

_embedding_store_factories: Dict[str, EmbeddingStoreFactory] = {}


def _split_scheme(spec: str):
    """Return (scheme, rest) for ``scheme:rest``; scheme is None for plain paths."""
    if ":" in spec:
        scheme, rest = spec.split(":", 1)
        # A single letter is a Windows drive, not a scheme
        if len(scheme) > 1 and scheme.isidentifier():
            return scheme.lower(), rest
    return None, spec


def _is_memory(spec: str) -> bool:
    return spec.strip().lower() in ("memory", "memory:")


def register_embedding_store(scheme: str, factory: EmbeddingStoreFactory) -> None:
    """
    Register a factory for ``<scheme>:<rest>`` embedding store specs.

    The factory is called with the text after the colon and the dimension.
    """
    if not scheme:
        raise ValueError("Scheme cannot be empty")
    _embedding_store_factories[scheme.lower().rstrip(":")] = factory


def _create_pgvector_store(rest: str, dimension: Optional[int]):
    from ..vector.pgvector_store import PgVectorStore
    return PgVectorStore(rest, dimension or EMBED_DIM)


def _create_faiss_store(rest: str, dimension: Optional[int]):
    from ..vector.faiss_store import FaissEmbeddingStore
    return FaissEmbeddingStore(dimension or EMBED_DIM)


def _create_memory_store(rest: str, dimension: Optional[int]):
    from ..vector.index import EmbeddingMemoryStore
    return EmbeddingMemoryStore(dimension)


def _create_json_store(rest: str, dimension: Optional[int]):
    from ..vector.json_store import EmbeddingJsonFileStore
    if not rest:
        raise ValueError("file: embedding store needs a path")
    return EmbeddingJsonFileStore(rest, dimension)


register_embedding_store("pgvector", _create_pgvector_store)
register_embedding_store("faiss", _create_faiss_store)
register_embedding_store("memory", _create_memory_store)
register_embedding_store("file", _create_json_store)


def get_embedding_store(spec: Optional[str] = None, dimension: Optional[int] = None):
    """Build the embedding store named by spec (default: RAGSTORE_EMBEDDINGS)."""
    spec = spec or RAGSTORE_EMBEDDINGS
    if _is_memory(spec):
        return _create_memory_store("", dimension)

    scheme, rest = _split_scheme(spec)
    if scheme is not None:
        factory = _embedding_store_factories.get(scheme)
        if factory is None:
            raise ValueError(f"Unknown embedding store scheme '{scheme}'")
        return factory(rest, dimension)

    # Bare path
    return _create_json_store(spec, dimension)


def get_text_store(spec: Optional[str] = None):
    from ..documents.text_store import PostgresTextStore, TextFileStore, TextMemoryStore

    spec = spec or RAGSTORE_TEXT
    if _is_memory(spec):
        return TextMemoryStore()
    scheme, rest = _split_scheme(spec)
    if scheme == "postgres":
        return PostgresTextStore(rest)
    return TextFileStore(spec)


def get_chunk_store(spec: Optional[str] = None):
    from ..documents.chunks import ChunkJsonFileStore, ChunkMemoryStore, PostgresChunkStore

    spec = spec or RAGSTORE_CHUNKS
    if _is_memory(spec):
        return ChunkMemoryStore()
    scheme, rest = _split_scheme(spec)
    if scheme == "postgres":
        return PostgresChunkStore(rest)
    return ChunkJsonFileStore(spec)


def get_metadata_store(spec: Optional[str] = None):
    from ..documents.metadata import (
        DocumentMetadataFileStore,
        DocumentMetadataMemoryStore,
        PostgresDocumentMetadataStore,
    )

    spec = spec or RAGSTORE_METADATA
    if _is_memory(spec):
        return DocumentMetadataMemoryStore()
    scheme, rest = _split_scheme(spec)
    if scheme == "postgres":
        return PostgresDocumentMetadataStore(rest)
    # Metadata for a folder-backed store lives next to the documents
    return DocumentMetadataFileStore(Path(spec) / "metadata")


def get_embedding_generator(provider: Optional[str] = None):
    """Get configured embedding generator implementation."""
    provider = (provider or EMBED_PROVIDER).lower()

    if provider == "hash":
        from ..vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding(EMBED_DIM)
    elif provider in ("sentence-transformers", "sentence_transformers"):
        from ..vector.embeddings import SentenceTransformerEmbedding
        return SentenceTransformerEmbedding(EMBED_MODEL_NAME)
    raise ValueError(f"Unknown embedding provider '{provider}'")


def get_token_counter():
    from .tokens import TokenCounter
    return TokenCounter(TOKEN_ENCODING)


def create_document_store(name: Optional[str] = None):
    """Wire a DocumentStore from the environment configuration."""
    from ..documents.store import DocumentStore

    generator = get_embedding_generator()
    return DocumentStore(
        embedding_store=get_embedding_store(dimension=generator.dimensions),
        generator=generator,
        text_store=get_text_store(),
        chunk_store=get_chunk_store(),
        token_counter=get_token_counter(),
        metadata_store=get_metadata_store(),
        name=name or RAGSTORE_NAME,
        tokens_per_part=CHUNK_TOKENS,
        max_input_tokens=MAX_INPUT_TOKENS,
        max_total_tokens=MAX_TOTAL_TOKENS,
    )


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if EMBED_PROVIDER.lower() not in ("hash", "sentence-transformers", "sentence_transformers"):
        issues.append(f"Invalid EMBED_PROVIDER: {EMBED_PROVIDER}")
    if EMBED_DIM < 1:
        issues.append("EMBED_DIM must be >= 1")
    if CHUNK_TOKENS < 1:
        issues.append("CHUNK_TOKENS must be >= 1")
    if MAX_INPUT_TOKENS < 1:
        issues.append("MAX_INPUT_TOKENS must be >= 1")
    if MAX_TOTAL_TOKENS < 1:
        issues.append("MAX_TOTAL_TOKENS must be >= 1")

    return issues
