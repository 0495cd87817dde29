"""
Text stores: raw document content keyed identically to embeddings.
"""

import asyncio
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from ..core.db import SchemaInitializer, get_db
from ..util.logging import logger


def _validate_key(key: str) -> None:
    if not key:
        raise ValueError("Key cannot be null or empty")


class ITextStore(ABC):
    """Key -> document content."""

    @abstractmethod
    async def store(self, key: str, content: str) -> bool:
        """Insert or replace the content for key."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Content for key, or None if absent."""

    @abstractmethod
    async def remove(self, key: str) -> bool:
        """Delete the content for key. Returns whether it existed."""

    @abstractmethod
    def get_path(self, key: str) -> str:
        """Where the content for key lives, for display purposes."""


class TextMemoryStore(ITextStore):
    """In-memory text store."""

    def __init__(self):
        self._texts = {}
        self._lock = threading.Lock()

    async def store(self, key: str, content: str) -> bool:
        _validate_key(key)
        if content is None:
            raise ValueError("Content cannot be None")
        with self._lock:
            self._texts[key] = content
        return True

    async def get(self, key: str) -> Optional[str]:
        _validate_key(key)
        with self._lock:
            return self._texts.get(key)

    async def remove(self, key: str) -> bool:
        _validate_key(key)
        with self._lock:
            return self._texts.pop(key, None) is not None

    def get_path(self, key: str) -> str:
        return f"memory://{key}"


class TextFileStore(ITextStore):
    """One file per key below a root folder. Keys with ``/`` become subfolders."""

    def __init__(self, root_folder: Union[str, Path]):
        self.root_folder = Path(root_folder)

    def _resolve(self, key: str) -> Path:
        _validate_key(key)
        root = self.root_folder.resolve()
        path = (root / key.replace("\\", "/")).resolve()
        if path != root and root not in path.parents:
            raise ValueError(f"Key '{key}' resolves outside of {self.root_folder}")
        if path == root:
            raise ValueError(f"Key '{key}' does not name a file")
        return path

    def get_path(self, key: str) -> str:
        return str(self._resolve(key))

    @staticmethod
    def _write(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    async def store(self, key: str, content: str) -> bool:
        if content is None:
            raise ValueError("Content cannot be None")
        path = self._resolve(key)
        await asyncio.to_thread(self._write, path, content)
        return True

    async def get(self, key: str) -> Optional[str]:
        path = self._resolve(key)
        if not path.is_file():
            return None
        return await asyncio.to_thread(path.read_text, encoding="utf-8")

    async def remove(self, key: str) -> bool:
        path = self._resolve(key)
        if not path.is_file():
            return False
        await asyncio.to_thread(path.unlink)
        return True


class PostgresTextStore(ITextStore):
    """Text store backed by a ``documents(key, content)`` table."""

    def __init__(self, conninfo: str):
        if not conninfo:
            raise ValueError("Connection string cannot be empty")
        self.conninfo = conninfo
        self._schema = SchemaInitializer("documents", [
            """
            CREATE TABLE IF NOT EXISTS documents (
                key TEXT PRIMARY KEY,
                content TEXT NOT NULL
            )
            """,
        ])

    def get_path(self, key: str) -> str:
        return f"postgres://documents/{key}"

    async def store(self, key: str, content: str) -> bool:
        _validate_key(key)
        if content is None:
            raise ValueError("Content cannot be None")
        await self._schema.ensure(self.conninfo)

        async with get_db(self.conninfo) as conn:
            await conn.execute(
                """
                INSERT INTO documents (key, content) VALUES (%s, %s)
                ON CONFLICT (key) DO UPDATE SET content = EXCLUDED.content
                """,
                (key, content),
            )
        return True

    async def get(self, key: str) -> Optional[str]:
        _validate_key(key)
        await self._schema.ensure(self.conninfo)

        async with get_db(self.conninfo) as conn:
            cur = await conn.execute("SELECT content FROM documents WHERE key = %s", (key,))
            row = await cur.fetchone()
        return row[0] if row else None

    async def remove(self, key: str) -> bool:
        _validate_key(key)
        await self._schema.ensure(self.conninfo)

        async with get_db(self.conninfo) as conn:
            cur = await conn.execute("DELETE FROM documents WHERE key = %s", (key,))
            removed = cur.rowcount > 0

        if removed:
            logger.debug(f"Removed document text '{key[:50]}' from Postgres")
        return removed
