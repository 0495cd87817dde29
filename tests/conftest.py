"""
Shared fixtures and test doubles.
"""

import re
from typing import List

import pytest

from ragstore.core.tokens import TokenCounter
from ragstore.documents.chunks import ChunkMemoryStore
from ragstore.documents.metadata import DocumentMetadataMemoryStore
from ragstore.documents.store import DocumentStore
from ragstore.documents.text_store import TextMemoryStore
from ragstore.vector.embeddings import DeterministicHashEmbedding, IEmbeddingGenerator
from ragstore.vector.index import EmbeddingMemoryStore
from ragstore.vector.types import Embedding


class WordTokenCounter(TokenCounter):
    """Counts whitespace-separated words as tokens; needs no tokenizer files."""

    def encode(self, text: str) -> List[str]:
        return text.split()


class CountingGenerator(DeterministicHashEmbedding):
    """Hash generator that records every call it receives."""

    def __init__(self, dimension: int = 8):
        super().__init__(dimension)
        self.generate_calls = []
        self.batch_calls = []

    async def generate(self, text: str) -> Embedding:
        self.generate_calls.append(text)
        return await super().generate(text)

    async def generate_batch(self, texts) -> List[Embedding]:
        texts = list(texts)
        self.batch_calls.append(texts)
        return [self.embed_text(t) for t in texts]

    @property
    def call_count(self) -> int:
        return len(self.generate_calls) + len(self.batch_calls)


class FailingGenerator(IEmbeddingGenerator):
    """Generator whose every call fails like an unreachable provider."""

    def __init__(self, dimension: int = 8):
        self.dimension = dimension

    @property
    def dimensions(self) -> int:
        return self.dimension

    async def generate(self, text: str) -> Embedding:
        raise ConnectionError("embedding provider unreachable")

    async def generate_batch(self, texts) -> List[Embedding]:
        raise ConnectionError("embedding provider unreachable")


VOCABULARY = ("alpha", "beta", "gamma", "delta")


class KeywordGenerator(IEmbeddingGenerator):
    """
    One dimension per vocabulary word, counting its occurrences, plus a
    small constant component so no vector has zero norm. Gives tests
    predictable similarity orderings.
    """

    @property
    def dimensions(self) -> int:
        return len(VOCABULARY) + 1

    async def generate(self, text: str) -> Embedding:
        words = re.findall(r"[a-z]+", text.lower())
        return Embedding([float(words.count(w)) for w in VOCABULARY] + [0.01])


@pytest.fixture
def token_counter():
    return WordTokenCounter()


@pytest.fixture
def counting_generator():
    return CountingGenerator(dimension=8)


@pytest.fixture
def make_document_store(token_counter):
    """Factory for in-memory document stores."""

    def _make(generator=None, name="main", tokens_per_part=1000, max_total_tokens=20000, max_input_tokens=8000):
        generator = generator or CountingGenerator(dimension=8)
        return DocumentStore(
            embedding_store=EmbeddingMemoryStore(generator.dimensions),
            generator=generator,
            text_store=TextMemoryStore(),
            chunk_store=ChunkMemoryStore(),
            token_counter=token_counter,
            metadata_store=DocumentMetadataMemoryStore(),
            name=name,
            tokens_per_part=tokens_per_part,
            max_input_tokens=max_input_tokens,
            max_total_tokens=max_total_tokens,
        )

    return _make
