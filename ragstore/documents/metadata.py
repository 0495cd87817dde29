"""
Document metadata model and its stores.
"""

import asyncio
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.db import SchemaInitializer, get_db
from ..core.errors import MalformedStateError
from ..util.logging import logger


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DocumentMetadata(BaseModel):
    """Structured data about a stored document, kept apart from its content."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    original_path: str = ""
    mime_type: str = "text/plain"
    size: int = 0
    created: datetime = Field(default_factory=_utc_now)
    custom_metadata: Dict[str, str] = Field(default_factory=dict)
    is_binary: bool = False
    summary: Optional[str] = None

    @field_validator('size')
    @classmethod
    def size_must_not_be_negative(cls, v):
        if v < 0:
            raise ValueError('size cannot be negative')
        return v

    def to_chunk_text(self) -> str:
        """Render the metadata as plain text suitable for embedding."""
        lines = [
            f"Document ID: {self.id}",
            f"Original Path: {self.original_path}",
            f"MIME Type: {self.mime_type}",
            f"Size: {self.size} bytes",
            f"Created: {self.created:%Y-%m-%d %H:%M:%S} UTC",
            f"Is Binary: {self.is_binary}",
        ]

        if self.summary:
            lines.append(f"Summary: {self.summary}")

        if self.custom_metadata:
            lines.append("Custom Metadata:")
            for key, value in self.custom_metadata.items():
                lines.append(f"  {key}: {value}")

        return "\n".join(lines)


def _validate_id(document_id: str) -> None:
    if not document_id:
        raise ValueError("Document id cannot be null or empty")


class IDocumentMetadataStore(ABC):
    """Document id -> DocumentMetadata."""

    @abstractmethod
    async def store(self, document_id: str, metadata: DocumentMetadata) -> bool:
        pass

    @abstractmethod
    async def get(self, document_id: str) -> Optional[DocumentMetadata]:
        pass

    @abstractmethod
    async def remove(self, document_id: str) -> bool:
        pass

    @abstractmethod
    async def exists(self, document_id: str) -> bool:
        pass


class DocumentMetadataMemoryStore(IDocumentMetadataStore):
    """In-memory metadata store. Stored models are copied in and out."""

    def __init__(self):
        self._metadata = {}
        self._lock = threading.Lock()

    async def store(self, document_id: str, metadata: DocumentMetadata) -> bool:
        _validate_id(document_id)
        if metadata is None:
            raise ValueError("Metadata cannot be None")
        with self._lock:
            self._metadata[document_id] = metadata.model_copy(deep=True)
        return True

    async def get(self, document_id: str) -> Optional[DocumentMetadata]:
        _validate_id(document_id)
        with self._lock:
            metadata = self._metadata.get(document_id)
        return metadata.model_copy(deep=True) if metadata is not None else None

    async def remove(self, document_id: str) -> bool:
        _validate_id(document_id)
        with self._lock:
            return self._metadata.pop(document_id, None) is not None

    async def exists(self, document_id: str) -> bool:
        _validate_id(document_id)
        with self._lock:
            return document_id in self._metadata


class DocumentMetadataFileStore(IDocumentMetadataStore):
    """One ``<sanitized id>.metadata.json`` file per document below a root folder."""

    def __init__(self, root_folder: Union[str, Path]):
        self.root_folder = Path(root_folder)
        self.root_folder.mkdir(parents=True, exist_ok=True)

    def get_metadata_path(self, document_id: str) -> Path:
        _validate_id(document_id)
        sanitized = document_id.replace("/", "_").replace("\\", "_").replace(":", "_")
        return self.root_folder / f"{sanitized}.metadata.json"

    @staticmethod
    def _read(path: Path) -> DocumentMetadata:
        try:
            return DocumentMetadata.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            raise MalformedStateError(str(path), str(e)) from e

    async def store(self, document_id: str, metadata: DocumentMetadata) -> bool:
        if metadata is None:
            raise ValueError("Metadata cannot be None")
        path = self.get_metadata_path(document_id)
        await asyncio.to_thread(path.write_text, metadata.model_dump_json(indent=2), encoding="utf-8")
        return True

    async def get(self, document_id: str) -> Optional[DocumentMetadata]:
        path = self.get_metadata_path(document_id)
        if not path.is_file():
            return None

        try:
            return await asyncio.to_thread(self._read, path)
        except MalformedStateError as e:
            logger.log_malformed_state(str(path), e)
            return None

    async def remove(self, document_id: str) -> bool:
        path = self.get_metadata_path(document_id)
        if not path.is_file():
            return False
        await asyncio.to_thread(path.unlink)
        return True

    async def exists(self, document_id: str) -> bool:
        return self.get_metadata_path(document_id).is_file()


class PostgresDocumentMetadataStore(IDocumentMetadataStore):
    """Metadata serialized as JSON text in a ``document_metadata`` table."""

    def __init__(self, conninfo: str):
        if not conninfo:
            raise ValueError("Connection string cannot be empty")
        self.conninfo = conninfo
        self._schema = SchemaInitializer("document_metadata", [
            """
            CREATE TABLE IF NOT EXISTS document_metadata (
                id TEXT PRIMARY KEY,
                metadata_json TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """,
        ])

    async def store(self, document_id: str, metadata: DocumentMetadata) -> bool:
        _validate_id(document_id)
        if metadata is None:
            raise ValueError("Metadata cannot be None")
        await self._schema.ensure(self.conninfo)

        async with get_db(self.conninfo) as conn:
            await conn.execute(
                """
                INSERT INTO document_metadata (id, metadata_json) VALUES (%s, %s)
                ON CONFLICT (id) DO UPDATE SET metadata_json = EXCLUDED.metadata_json
                """,
                (document_id, metadata.model_dump_json()),
            )
        return True

    async def get(self, document_id: str) -> Optional[DocumentMetadata]:
        _validate_id(document_id)
        await self._schema.ensure(self.conninfo)

        async with get_db(self.conninfo) as conn:
            cur = await conn.execute("SELECT metadata_json FROM document_metadata WHERE id = %s", (document_id,))
            row = await cur.fetchone()

        if row is None:
            return None
        try:
            return DocumentMetadata.model_validate_json(row[0])
        except ValidationError as e:
            logger.log_malformed_state(f"document_metadata:{document_id}", e)
            return None

    async def remove(self, document_id: str) -> bool:
        _validate_id(document_id)
        await self._schema.ensure(self.conninfo)

        async with get_db(self.conninfo) as conn:
            cur = await conn.execute("DELETE FROM document_metadata WHERE id = %s", (document_id,))
            return cur.rowcount > 0

    async def exists(self, document_id: str) -> bool:
        _validate_id(document_id)
        await self._schema.ensure(self.conninfo)

        async with get_db(self.conninfo) as conn:
            cur = await conn.execute("SELECT 1 FROM document_metadata WHERE id = %s", (document_id,))
            return await cur.fetchone() is not None
