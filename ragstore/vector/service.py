"""
Checksum-gated embedding generation and storage.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

from ..core.checksum import calculate_checksum_from_string
from ..core.errors import DimensionMismatchError, EmbeddingGenerationError
from ..util.logging import logger
from .embeddings import IEmbeddingGenerator
from .index import IBatchEmbeddingStore, IEmbeddingStore, validate_key
from .types import Embedding, EmbeddingRecord


def format_embedding_input(key: str, value: str) -> str:
    """Text actually sent to the generator. The key is part of it, the checksum is not."""
    return f"key:\n{key}\nvalue:\n{value}"


class EmbeddingService:
    """
    Decides whether an embedding needs (re)generation and persists the result.

    The generator is only called when the stored checksum for a key differs
    from the checksum of the new value. Generation happens outside any store
    lock.
    """

    def __init__(self, store: IEmbeddingStore, generator: IEmbeddingGenerator):
        if store is None:
            raise ValueError("Store cannot be None")
        if generator is None:
            raise ValueError("Generator cannot be None")
        self.store = store
        self.generator = generator

    async def _generate(self, text: str, key: str) -> Embedding:
        try:
            return await self.generator.generate(text)
        except Exception as e:
            logger.error(f"Embedding generation failed for key '{key[:50]}': {e}")
            raise EmbeddingGenerationError(f"Embedding generation failed for key '{key}': {e}", [key]) from e

    async def _generate_batch(self, texts: List[str], keys: List[str]) -> List[Embedding]:
        try:
            embeddings = await self.generator.generate_batch(texts)
        except Exception as e:
            logger.error(f"Batch embedding generation failed for {len(keys)} keys: {e}")
            raise EmbeddingGenerationError(f"Batch embedding generation failed: {e}", keys) from e

        if len(embeddings) != len(texts):
            logger.error(f"Generator returned {len(embeddings)} embeddings for {len(texts)} texts")
            raise EmbeddingGenerationError(
                f"Generator returned {len(embeddings)} embeddings for {len(texts)} texts", keys
            )
        return embeddings

    async def _needs_embedding(self, key: str, checksum: str) -> bool:
        existing = await self.store.get(key)
        return existing is None or existing.checksum != checksum

    async def store_text(self, key: str, value: str, force: bool = False) -> bool:
        """
        Embed and store value under key unless it is unchanged.

        With force=True the checksum check is skipped and a new embedding is
        always generated. The existing record is only replaced once that succeeds.

        Returns:
            True if an embedding was generated and stored, False on a cache hit

        Raises:
            EmbeddingGenerationError: if the generator failed; nothing is stored
        """
        validate_key(key)
        if value is None:
            raise ValueError("Value cannot be None")

        checksum = calculate_checksum_from_string(value)
        if not force and not await self._needs_embedding(key, checksum):
            logger.log_embedding_operation("store_text", key, "cached")
            return False

        embedding = await self._generate(format_embedding_input(key, value), key)
        await self.store.store(key, embedding, checksum)
        return True

    async def store_embedding(self, key: str, embedding: Sequence[float], checksum: str) -> bool:
        """Store a precomputed vector without calling the generator."""
        validate_key(key)
        if embedding is None:
            raise ValueError("Embedding cannot be None")
        if not checksum:
            raise ValueError("Checksum cannot be null or empty")
        if len(embedding) != self.generator.dimensions:
            raise DimensionMismatchError(self.generator.dimensions, len(embedding), key)

        return await self.store.store(key, embedding, checksum)

    async def store_batch(self, items: Iterable[Tuple[str, str]]) -> int:
        """
        Embed and store (key, value) pairs, skipping unchanged ones.

        Only new or changed items are sent to the generator, in one batch call.
        Batch-capable stores receive the results in one store_batch call;
        others get sequential stores, and a failure part way through leaves
        earlier items stored.

        Returns:
            Number of embeddings generated (cached items excluded)
        """
        if items is None:
            raise ValueError("Items cannot be None")

        item_list = list(items)
        if not item_list:
            return 0

        to_generate = []
        for key, value in item_list:
            validate_key(key)
            if value is None:
                raise ValueError("Value cannot be None")
            checksum = calculate_checksum_from_string(value)
            if await self._needs_embedding(key, checksum):
                to_generate.append((key, value, checksum))

        if not to_generate:
            logger.log_operation("embedding.store_batch", "cached", {"count": len(item_list)})
            return 0

        keys = [key for key, _, _ in to_generate]
        texts = [format_embedding_input(key, value) for key, value, _ in to_generate]
        embeddings = await self._generate_batch(texts, keys)

        if isinstance(self.store, IBatchEmbeddingStore):
            await self.store.store_batch(
                (key, embedding, checksum) for (key, _, checksum), embedding in zip(to_generate, embeddings)
            )
        else:
            for (key, _, checksum), embedding in zip(to_generate, embeddings):
                await self.store.store(key, embedding, checksum)

        logger.log_operation(
            "embedding.store_batch",
            "success",
            {"requested": len(item_list), "generated": len(to_generate)},
        )
        return len(to_generate)

    async def get(self, key: str) -> Optional[EmbeddingRecord]:
        return await self.store.get(key)

    async def remove(self, key: str) -> bool:
        return await self.store.remove(key)

    async def exists(self, key: str) -> bool:
        return await self.store.exists(key)

    async def generate_query_embedding(self, query: str) -> Embedding:
        """Embed a query without storing it."""
        if not query:
            raise ValueError("Query cannot be null or empty")
        return await self._generate(query, "<query>")
