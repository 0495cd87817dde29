"""
Postgres + pgvector embedding store.

Similarity search is pushed down to the database with the cosine distance
operator ``<=>``; similarity is reported as ``1 - distance``. The store is not
enumerable: nothing is cached client-side.
"""

from typing import Iterable, List, Optional, Sequence

import numpy as np

from ..core.db import SchemaInitializer, get_db
from ..util.logging import logger
from .index import (
    BatchItem,
    IBatchEmbeddingStore,
    IVectorSearchStore,
    check_dimension,
    validate_key,
    validate_top_k,
)
from .types import Embedding, EmbeddingRecord, ScoredEmbedding

INDEX_NAME = "embeddings_embedding_idx"
INDEX_TYPES = ("hnsw", "ivfflat")

UPSERT_SQL = """
    INSERT INTO embeddings (key, checksum, embedding, created_at, updated_at)
    VALUES (%s, %s, %s, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)
    ON CONFLICT (key) DO UPDATE
    SET checksum = EXCLUDED.checksum,
        embedding = EXCLUDED.embedding,
        updated_at = CURRENT_TIMESTAMP
"""

SEARCH_SQL = """
    SELECT key, checksum, embedding, 1 - (embedding <=> %(q)s) AS similarity
    FROM embeddings
    WHERE 1 - (embedding <=> %(q)s) >= %(min_similarity)s
    ORDER BY embedding <=> %(q)s, key
    LIMIT %(top_k)s
"""


def _to_vector(embedding: Sequence[float]) -> np.ndarray:
    return np.asarray(embedding, dtype=np.float32)


def _to_record(key: str, checksum: str, vector) -> EmbeddingRecord:
    values = vector.tolist() if hasattr(vector, "tolist") else list(vector)
    return EmbeddingRecord(key=key, checksum=checksum, vector=Embedding(values))


class PgVectorStore(IBatchEmbeddingStore, IVectorSearchStore):
    """Embedding store backed by a Postgres ``embeddings`` table with a VECTOR column."""

    def __init__(self, conninfo: str, dimension: int = 1536):
        """
        Args:
            conninfo: libpq connection string or URI
            dimension: Vector length of the ``embedding`` column
        """
        if not conninfo:
            raise ValueError("Connection string cannot be empty")
        if dimension is None or int(dimension) <= 0:
            raise ValueError("Dimension must be positive")

        self.conninfo = conninfo
        self.dimension = int(dimension)
        self._schema = SchemaInitializer("embeddings", [
            "CREATE EXTENSION IF NOT EXISTS vector",
            f"""
            CREATE TABLE IF NOT EXISTS embeddings (
                key TEXT PRIMARY KEY,
                checksum TEXT NOT NULL,
                embedding VECTOR({self.dimension}) NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """,
        ])

    async def _ensure_schema(self) -> None:
        await self._schema.ensure(self.conninfo)

    async def store(self, key: str, embedding: Sequence[float], checksum: str) -> bool:
        validate_key(key)
        check_dimension(self.dimension, embedding, key)
        await self._ensure_schema()

        async with get_db(self.conninfo, vector=True) as conn:
            await conn.execute(UPSERT_SQL, (key, checksum, _to_vector(embedding)))

        logger.log_embedding_operation("store", key)
        return True

    async def get(self, key: str) -> Optional[EmbeddingRecord]:
        validate_key(key)
        await self._ensure_schema()

        async with get_db(self.conninfo, vector=True) as conn:
            cur = await conn.execute(
                "SELECT key, checksum, embedding FROM embeddings WHERE key = %s", (key,)
            )
            row = await cur.fetchone()

        if row is None:
            return None
        return _to_record(*row)

    async def remove(self, key: str) -> bool:
        validate_key(key)
        await self._ensure_schema()

        async with get_db(self.conninfo) as conn:
            cur = await conn.execute("DELETE FROM embeddings WHERE key = %s", (key,))
            removed = cur.rowcount > 0

        logger.log_embedding_operation("remove", key, "success" if removed else "missing")
        return removed

    async def exists(self, key: str) -> bool:
        validate_key(key)
        await self._ensure_schema()

        async with get_db(self.conninfo) as conn:
            cur = await conn.execute("SELECT 1 FROM embeddings WHERE key = %s", (key,))
            return await cur.fetchone() is not None

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

        # Cosine distance against a zero vector is NaN in pgvector
        if not np.any(_to_vector(query_embedding)):
            return []

        await self._ensure_schema()

        params = {"q": _to_vector(query_embedding), "min_similarity": min_similarity, "top_k": top_k}
        async with get_db(self.conninfo, vector=True) as conn:
            cur = await conn.execute(SEARCH_SQL, params)
            rows = await cur.fetchall()

        return [
            ScoredEmbedding(record=_to_record(key, checksum, vector), similarity=float(similarity))
            for key, checksum, vector, similarity in rows
        ]

    async def store_batch(self, batch: Iterable[BatchItem]) -> int:
        """Store all items in one transaction; any failure rolls back the whole batch."""
        if batch is None:
            raise ValueError("Batch cannot be None")

        items = list(batch)
        if not items:
            return 0

        for key, embedding, _ in items:
            validate_key(key)
            check_dimension(self.dimension, embedding, key)

        await self._ensure_schema()

        async with get_db(self.conninfo, vector=True) as conn:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    await cur.executemany(
                        UPSERT_SQL,
                        [(key, checksum, _to_vector(embedding)) for key, embedding, checksum in items],
                    )

        logger.log_operation("embedding.store_batch", "success", {"count": len(items), "backend": "pgvector"})
        return len(items)

    async def get_batch(self, keys: Iterable[str]) -> List[EmbeddingRecord]:
        if keys is None:
            raise ValueError("Keys cannot be None")

        key_list = list(keys)
        if not key_list:
            return []

        await self._ensure_schema()

        async with get_db(self.conninfo, vector=True) as conn:
            cur = await conn.execute(
                "SELECT key, checksum, embedding FROM embeddings WHERE key = ANY(%s)", (key_list,)
            )
            rows = await cur.fetchall()

        found = {row[0]: _to_record(*row) for row in rows}
        return [found[key] for key in key_list if key in found]

    async def create_index(self, index_type: str = "hnsw", lists: int = 100) -> None:
        """
        Drop and recreate the vector index on the ``embedding`` column.

        Args:
            index_type: "hnsw" or "ivfflat", both with cosine-distance ops
            lists: Number of ivfflat lists; ignored for hnsw
        """
        index_type = (index_type or "").lower()
        if index_type not in INDEX_TYPES:
            raise ValueError(f"Unknown index type '{index_type}'. Expected one of {INDEX_TYPES}")
        if index_type == "ivfflat" and int(lists) <= 0:
            raise ValueError("lists must be positive")

        await self._ensure_schema()

        if index_type == "hnsw":
            create_sql = f"CREATE INDEX {INDEX_NAME} ON embeddings USING hnsw (embedding vector_cosine_ops)"
        else:
            create_sql = (
                f"CREATE INDEX {INDEX_NAME} ON embeddings USING ivfflat (embedding vector_cosine_ops) "
                f"WITH (lists = {int(lists)})"
            )

        async with get_db(self.conninfo) as conn:
            async with conn.transaction():
                await conn.execute(f"DROP INDEX IF EXISTS {INDEX_NAME}")
                await conn.execute(create_sql)

        logger.log_operation("embedding.create_index", "success", {"type": index_type})
