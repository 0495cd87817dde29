"""
JSON-file embedding store.

Same search semantics as the in-memory store. Every mutation rewrites the whole
file as an indented JSON array of ``{key, checksum, embedding}`` objects.
"""

import asyncio
import json
import threading
from pathlib import Path
from typing import AsyncIterator, Callable, Dict, Iterable, List, Optional, Sequence, Union

from pydantic import ValidationError

from ..core.errors import MalformedStateError
from ..util.logging import logger
from .index import (
    BatchItem,
    IBatchEmbeddingStore,
    IEnumerableEmbeddingStore,
    IVectorSearchStore,
    check_dimension,
    rank_by_similarity,
    validate_key,
    validate_top_k,
)
from .types import Embedding, EmbeddingRecord, PersistedEmbedding, ScoredEmbedding


def load_embeddings_file(path: Path) -> Dict[str, EmbeddingRecord]:
    """
    Read an embeddings file into a key -> record map.

    A missing or empty file yields an empty map.

    Raises:
        MalformedStateError: if the file is not a JSON array of valid records
    """
    if not path.exists():
        return {}

    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise MalformedStateError(str(path), str(e)) from e

    if not raw.strip():
        return {}

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedStateError(str(path), str(e)) from e

    if not isinstance(data, list):
        raise MalformedStateError(str(path), "expected a JSON array of records")

    records = {}
    try:
        for item in data:
            record = PersistedEmbedding.model_validate(item).to_record()
            records[record.key] = record
    except ValidationError as e:
        raise MalformedStateError(str(path), str(e)) from e
    return records


def write_embeddings_file(path: Path, records: List[EmbeddingRecord]) -> None:
    payload = [PersistedEmbedding.from_record(r).model_dump() for r in records]
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    tmp_path.replace(path)


class EmbeddingJsonFileStore(IBatchEmbeddingStore, IEnumerableEmbeddingStore, IVectorSearchStore):
    """Embedding store persisted to a single JSON file."""

    def __init__(self, file_path: Union[str, Path], dimension: Optional[int] = None):
        """
        Load the store from file_path. A malformed file is logged and the
        store starts empty.

        Args:
            file_path: Location of the JSON file; created on first write
            dimension: Fixed vector length. When None, the first loaded or
                stored vector fixes it.
        """
        self.file_path = Path(file_path)
        self.dimension = dimension
        self._embeddings = {}
        self._lock = threading.Lock()
        self._write_lock = asyncio.Lock()
        self._load()

    def _load(self) -> None:
        try:
            records = load_embeddings_file(self.file_path)
        except MalformedStateError as e:
            logger.log_malformed_state(str(self.file_path), e)
            records = {}

        loaded = {}
        for key, record in records.items():
            if self.dimension is None:
                self.dimension = len(record.vector)
            if len(record.vector) != self.dimension:
                logger.warning(
                    f"Skipping record '{key}' in {self.file_path}: dimension "
                    f"{len(record.vector)} does not match {self.dimension}"
                )
                continue
            loaded[key] = record

        with self._lock:
            self._embeddings = loaded

        logger.log_operation("embedding.load", "success", {"file": str(self.file_path), "count": len(loaded)})

    async def reload(self) -> None:
        """Re-read the backing file, discarding in-memory state."""
        async with self._write_lock:
            await asyncio.to_thread(self._load)

    async def _commit(self, mutate: Callable[[Dict[str, EmbeddingRecord]], bool]) -> bool:
        """
        Apply mutate to a copy of the record map, write the copy, then swap it in.

        Writers are serialized by the write lock, so each one starts from the
        latest committed state. If mutate raises or the file cannot be written,
        the in-memory state is left as it was. Nothing is written when mutate
        returns False.
        """
        async with self._write_lock:
            with self._lock:
                updated = dict(self._embeddings)

            changed = mutate(updated)
            if not changed:
                return False

            await asyncio.to_thread(write_embeddings_file, self.file_path, list(updated.values()))

            with self._lock:
                self._embeddings = updated
                if self.dimension is None and updated:
                    self.dimension = len(next(iter(updated.values())).vector)
        return True

    def _new_record(self, key: str, embedding: Sequence[float], checksum: str,
                    expected: Optional[int]) -> EmbeddingRecord:
        check_dimension(expected, embedding, key)
        return EmbeddingRecord(key=key, checksum=checksum, vector=Embedding(embedding))

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._embeddings)

    async def clear(self) -> None:
        """Remove all records and rewrite the file. The dimension is kept."""
        def drop_all(records):
            records.clear()
            return True

        await self._commit(drop_all)

    async def store(self, key: str, embedding: Sequence[float], checksum: str) -> bool:
        validate_key(key)

        def put(records):
            # Runs under the write lock, so the dimension cannot change underneath
            records[key] = self._new_record(key, embedding, checksum, self.dimension)
            return True

        await self._commit(put)

        logger.log_embedding_operation("store", key)
        return True

    async def get(self, key: str) -> Optional[EmbeddingRecord]:
        validate_key(key)
        with self._lock:
            return self._embeddings.get(key)

    async def remove(self, key: str) -> bool:
        validate_key(key)

        def drop(records):
            return records.pop(key, None) is not None

        removed = await self._commit(drop)

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
        """Store every item with one file rewrite; a bad item or failed write stores none."""
        if batch is None:
            raise ValueError("Batch cannot be None")

        items = list(batch)
        if not items:
            return 0
        for key, _, _ in items:
            validate_key(key)

        def put_all(records):
            expected = self.dimension if self.dimension is not None else len(items[0][1])
            new_records = [self._new_record(key, embedding, checksum, expected)
                           for key, embedding, checksum in items]
            for record in new_records:
                records[record.key] = record
            return True

        await self._commit(put_all)

        logger.log_operation("embedding.store_batch", "success", {"count": len(items), "file": str(self.file_path)})
        return len(items)

    async def get_batch(self, keys: Iterable[str]) -> List[EmbeddingRecord]:
        if keys is None:
            raise ValueError("Keys cannot be None")

        key_list = list(keys)
        with self._lock:
            return [self._embeddings[key] for key in key_list if key in self._embeddings]
