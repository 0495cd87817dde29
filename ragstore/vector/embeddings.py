"""
Embedding generators: the external collaborator that turns text into vectors.

Stores never call these directly; EmbeddingService decides when a vector must
be generated.
"""

import asyncio
import hashlib
from abc import ABC, abstractmethod
from typing import Iterable, List

from .types import Embedding


class IEmbeddingGenerator(ABC):
    """Abstract interface for embedding generators."""

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Length of the vectors this generator produces."""

    @abstractmethod
    async def generate(self, text: str) -> Embedding:
        """Generate the embedding vector for text."""

    async def generate_batch(self, texts: Iterable[str]) -> List[Embedding]:
        """Generate embeddings for several texts, in input order."""
        return [await self.generate(text) for text in texts]


def _validate_text(text: str) -> None:
    if text is None or not text.strip():
        raise ValueError("Text cannot be null or whitespace")


class DeterministicHashEmbedding(IEmbeddingGenerator):
    """Deterministic hash-based embedding generator for testing purposes.

    Produces reproducible vectors from text without a model download. Equal
    texts always map to equal vectors; similar texts are not close.
    """

    def __init__(self, dimension: int = 384):
        if dimension <= 0:
            raise ValueError("Dimensions must be positive")
        self.dimension = dimension

    @property
    def dimensions(self) -> int:
        return self.dimension

    def embed_text(self, text: str) -> Embedding:
        """Generate deterministic embedding vector using hash function."""
        vector = []
        block = 0
        while len(vector) < self.dimension:
            hex_dig = hashlib.md5(f"{block}:{text}".encode()).hexdigest()
            for i in range(0, len(hex_dig), 8):
                value = int(hex_dig[i:i + 8], 16)
                # Map to [-1, 1]
                vector.append((value / (2 ** 32)) * 2 - 1)
            block += 1

        return Embedding(vector[:self.dimension])

    async def generate(self, text: str) -> Embedding:
        _validate_text(text)
        return self.embed_text(text)


class SentenceTransformerEmbedding(IEmbeddingGenerator):
    """Embedding generator backed by a local sentence-transformers model.

    The model is loaded on first use; encoding runs in a worker thread so the
    event loop is not blocked.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = None

    @property
    def model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    @property
    def dimensions(self) -> int:
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension

    async def generate(self, text: str) -> Embedding:
        _validate_text(text)
        vector = await asyncio.to_thread(self.model.encode, text, convert_to_tensor=False)
        return Embedding(vector.tolist())

    async def generate_batch(self, texts: Iterable[str]) -> List[Embedding]:
        text_list = list(texts)
        if not text_list:
            return []
        for text in text_list:
            _validate_text(text)

        vectors = await asyncio.to_thread(self.model.encode, text_list, convert_to_tensor=False)
        return [Embedding(v.tolist()) for v in vectors]
