"""
Chunk stores: map a document name to the ordered keys of its parts.

An unsplit document maps to itself (``name -> [name]``).
"""

import asyncio
import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from ..core.db import SchemaInitializer, get_db
from ..core.errors import MalformedStateError
from ..util.logging import logger


def _validate_name(name: str) -> None:
    if not name:
        raise ValueError("Document name cannot be null or empty")


class IChunkStore(ABC):
    """Document name -> ordered chunk keys."""

    @abstractmethod
    async def store(self, name: str, chunk_keys: Iterable[str]) -> bool:
        """Replace the mapping for name wholesale."""

    @abstractmethod
    async def get(self, name: str) -> List[str]:
        """Ordered chunk keys for name, or an empty list if unknown."""

    @abstractmethod
    async def remove(self, name: str) -> bool:
        """Drop the mapping for name. Returns whether it existed."""

    @abstractmethod
    async def list_names(self) -> List[str]:
        """Names of all mapped documents."""

    @abstractmethod
    async def get_parent_document(self, chunk_key: str) -> Optional[str]:
        """
        Resolve a chunk key to the document that owns it.

        A mapped document name resolves to itself; otherwise the first
        mapping containing chunk_key wins. None when nothing matches.
        """


class ChunkMemoryStore(IChunkStore):
    """In-memory chunk mapping."""

    def __init__(self):
        self._chunks = {}  # name -> tuple of chunk keys
        self._lock = threading.Lock()

    def _snapshot(self) -> Dict[str, List[str]]:
        with self._lock:
            return {name: list(keys) for name, keys in self._chunks.items()}

    async def store(self, name: str, chunk_keys: Iterable[str]) -> bool:
        _validate_name(name)
        if chunk_keys is None:
            raise ValueError("Chunk keys cannot be None")

        keys = tuple(chunk_keys)
        with self._lock:
            self._chunks[name] = keys

        logger.log_chunk_operation("store", name, len(keys))
        return True

    async def get(self, name: str) -> List[str]:
        _validate_name(name)
        with self._lock:
            return list(self._chunks.get(name, ()))

    async def remove(self, name: str) -> bool:
        _validate_name(name)
        with self._lock:
            keys = self._chunks.pop(name, None)

        logger.log_chunk_operation("remove", name, len(keys or ()), "success" if keys is not None else "missing")
        return keys is not None

    async def list_names(self) -> List[str]:
        with self._lock:
            return list(self._chunks)

    async def get_parent_document(self, chunk_key: str) -> Optional[str]:
        if not chunk_key:
            return None

        with self._lock:
            if chunk_key in self._chunks:
                return chunk_key
            for name, keys in self._chunks.items():
                if chunk_key in keys:
                    return name
        return None


class ChunkJsonFileStore(ChunkMemoryStore):
    """Chunk mapping persisted as one JSON object ``{name: [chunk keys]}``.

    The file is rewritten after every mutation. A malformed file is logged
    and the store starts empty.
    """

    def __init__(self, file_path: Union[str, Path]):
        super().__init__()
        self.file_path = Path(file_path)
        self._write_lock = asyncio.Lock()
        self._load()

    def _read_file(self) -> Dict[str, List[str]]:
        if not self.file_path.exists():
            return {}

        try:
            raw = self.file_path.read_text(encoding="utf-8")
            if not raw.strip():
                return {}
            data = json.loads(raw)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedStateError(str(self.file_path), str(e)) from e

        if not isinstance(data, dict) or not all(
            isinstance(keys, list) and all(isinstance(k, str) for k in keys) for keys in data.values()
        ):
            raise MalformedStateError(str(self.file_path), "expected an object of string lists")
        return data

    def _load(self) -> None:
        try:
            data = self._read_file()
        except MalformedStateError as e:
            logger.log_malformed_state(str(self.file_path), e)
            data = {}

        with self._lock:
            self._chunks = {name: tuple(keys) for name, keys in data.items()}

    def _write_file(self, data: Dict[str, List[str]]) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.file_path.with_name(self.file_path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        tmp_path.replace(self.file_path)

    async def _commit(self, updated: Dict[str, List[str]]) -> None:
        # Memory only changes once the file holds the new mapping
        await asyncio.to_thread(self._write_file, updated)
        with self._lock:
            self._chunks = {name: tuple(keys) for name, keys in updated.items()}

    async def store(self, name: str, chunk_keys: Iterable[str]) -> bool:
        _validate_name(name)
        if chunk_keys is None:
            raise ValueError("Chunk keys cannot be None")

        keys = list(chunk_keys)
        async with self._write_lock:
            updated = self._snapshot()
            updated[name] = keys
            await self._commit(updated)

        logger.log_chunk_operation("store", name, len(keys))
        return True

    async def remove(self, name: str) -> bool:
        _validate_name(name)
        async with self._write_lock:
            updated = self._snapshot()
            keys = updated.pop(name, None)
            if keys is not None:
                await self._commit(updated)

        logger.log_chunk_operation("remove", name, len(keys or ()), "success" if keys is not None else "missing")
        return keys is not None


class PostgresChunkStore(IChunkStore):
    """Chunk mapping in a ``document_chunks`` table, one row per chunk key.

    Rows carry their position so part order survives the round trip.
    """

    def __init__(self, conninfo: str):
        if not conninfo:
            raise ValueError("Connection string cannot be empty")
        self.conninfo = conninfo
        self._schema = SchemaInitializer("document_chunks", [
            """
            CREATE TABLE IF NOT EXISTS document_chunks (
                name TEXT NOT NULL,
                chunk_key TEXT NOT NULL,
                position INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (name, chunk_key)
            )
            """,
            "CREATE INDEX IF NOT EXISTS document_chunks_chunk_key_idx ON document_chunks (chunk_key)",
        ])

    async def store(self, name: str, chunk_keys: Iterable[str]) -> bool:
        _validate_name(name)
        if chunk_keys is None:
            raise ValueError("Chunk keys cannot be None")

        # Duplicate keys would violate the primary key; keep first occurrence
        keys = list(dict.fromkeys(chunk_keys))
        await self._schema.ensure(self.conninfo)

        async with get_db(self.conninfo) as conn:
            async with conn.transaction():
                await conn.execute("DELETE FROM document_chunks WHERE name = %s", (name,))
                if keys:
                    async with conn.cursor() as cur:
                        await cur.executemany(
                            "INSERT INTO document_chunks (name, chunk_key, position) VALUES (%s, %s, %s)",
                            [(name, key, position) for position, key in enumerate(keys)],
                        )

        logger.log_chunk_operation("store", name, len(keys))
        return True

    async def get(self, name: str) -> List[str]:
        _validate_name(name)
        await self._schema.ensure(self.conninfo)

        async with get_db(self.conninfo) as conn:
            cur = await conn.execute(
                "SELECT chunk_key FROM document_chunks WHERE name = %s ORDER BY position, chunk_key", (name,)
            )
            rows = await cur.fetchall()
        return [row[0] for row in rows]

    async def remove(self, name: str) -> bool:
        _validate_name(name)
        await self._schema.ensure(self.conninfo)

        async with get_db(self.conninfo) as conn:
            cur = await conn.execute("DELETE FROM document_chunks WHERE name = %s", (name,))
            removed = cur.rowcount > 0

        logger.log_chunk_operation("remove", name, 0, "success" if removed else "missing")
        return removed

    async def list_names(self) -> List[str]:
        await self._schema.ensure(self.conninfo)

        async with get_db(self.conninfo) as conn:
            cur = await conn.execute("SELECT DISTINCT name FROM document_chunks ORDER BY name")
            rows = await cur.fetchall()
        return [row[0] for row in rows]

    async def get_parent_document(self, chunk_key: str) -> Optional[str]:
        if not chunk_key:
            return None
        await self._schema.ensure(self.conninfo)

        async with get_db(self.conninfo) as conn:
            cur = await conn.execute("SELECT 1 FROM document_chunks WHERE name = %s LIMIT 1", (chunk_key,))
            if await cur.fetchone() is not None:
                return chunk_key

            cur = await conn.execute(
                "SELECT name FROM document_chunks WHERE chunk_key = %s ORDER BY name LIMIT 1", (chunk_key,)
            )
            row = await cur.fetchone()
        return row[0] if row else None
