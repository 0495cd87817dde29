"""
Postgres connection helpers shared by the pgvector, text, chunk and metadata stores.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Sequence

import psycopg
from pgvector.psycopg import register_vector_async

from ..util.logging import logger


@asynccontextmanager
async def get_db(conninfo: str, vector: bool = False) -> AsyncIterator[psycopg.AsyncConnection]:
    """
    Open an autocommit connection for the duration of one operation.

    Args:
        conninfo: libpq connection string or URI
        vector: Register the pgvector type adapters on the connection
    """
    conn = await psycopg.AsyncConnection.connect(conninfo, autocommit=True)
    try:
        if vector:
            await register_vector_async(conn)
        yield conn
    finally:
        await conn.close()


class SchemaInitializer:
    """Runs a list of DDL statements once per process, on first use."""

    def __init__(self, name: str, statements: Sequence[str]):
        self.name = name
        self.statements = list(statements)
        self._initialized = False
        self._lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def ensure(self, conninfo: str) -> None:
        if self._initialized:
            return

        async with self._lock:
            if self._initialized:
                return
            async with get_db(conninfo) as conn:
                for statement in self.statements:
                    await conn.execute(statement)
            self._initialized = True

        logger.log_operation("db.init_schema", "success", {"schema": self.name})
