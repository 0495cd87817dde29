"""
DocumentStore: text, embeddings, chunk mapping and metadata behind one API.

Composed operations are not atomic. A failure between writing embeddings and
writing the chunk mapping can leave embeddings without a mapping.
"""

import asyncio
import mimetypes
import uuid
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from ..core.tokens import TokenCounter
from ..retrieval.relevance import (
    DEFAULT_MAX_INPUT_TOKENS,
    DEFAULT_MAX_TOTAL_TOKENS,
    RelevanceSelector,
    RelevanceSource,
    RelevantItem,
)
from ..util.logging import logger
from ..vector.embeddings import IEmbeddingGenerator
from ..vector.index import IEmbeddingStore
from ..vector.service import EmbeddingService
from ..vector.types import Embedding
from .chunks import IChunkStore
from .metadata import DocumentMetadata, IDocumentMetadataStore
from .splitter import DEFAULT_TOKENS_PER_PART, DocumentSplitter, part_key
from .text_store import ITextStore
from .tree import TreeNode, build_tree


def _normalize_folder_path(path: str) -> str:
    return path.replace("\\", "/")


class DocumentStore:
    """Stores, retrieves, indexes and searches named text documents."""

    def __init__(
        self,
        embedding_store: IEmbeddingStore,
        generator: IEmbeddingGenerator,
        text_store: ITextStore,
        chunk_store: IChunkStore,
        token_counter: TokenCounter,
        metadata_store: Optional[IDocumentMetadataStore] = None,
        name: Optional[str] = None,
        tokens_per_part: int = DEFAULT_TOKENS_PER_PART,
        max_input_tokens: int = DEFAULT_MAX_INPUT_TOKENS,
        max_total_tokens: int = DEFAULT_MAX_TOTAL_TOKENS,
    ):
        self.name = name or str(uuid.uuid4())
        self.embedding_store = embedding_store
        self.text_store = text_store
        self.chunk_store = chunk_store
        self.metadata_store = metadata_store
        self.token_counter = token_counter

        self.embeddings_service = EmbeddingService(embedding_store, generator)
        self.splitter = DocumentSplitter(token_counter, tokens_per_part)
        self.selector = RelevanceSelector(token_counter, max_input_tokens, max_total_tokens)

    @staticmethod
    def _validate_name(name: str) -> None:
        if not name:
            raise ValueError("Document name cannot be null or empty")

    def _build_metadata(self, name: str, content: str, custom_metadata: Optional[Dict[str, str]],
                        original_path: str = "", mime_type: str = "text/plain") -> DocumentMetadata:
        return DocumentMetadata(
            id=name,
            original_path=original_path,
            mime_type=mime_type,
            size=len(content.encode("utf-8")),
            custom_metadata=dict(custom_metadata or {}),
            is_binary=False,
        )

    async def store(self, name: str, content: str, metadata: Optional[Dict[str, str]] = None,
                    split: bool = True) -> bool:
        """
        Store content under name, embedding it in one or more parts.

        With split=True the splitter decides; more than one part stores each
        under ``"{name} part {i}"``. Otherwise, or for a single part, the
        whole content is stored and embedded under name. Parts left over from
        a previous, longer version are removed.

        Raises:
            EmbeddingGenerationError: if the generator failed; the document's
                text and chunk mapping are not written
        """
        await self._store_document(name, content, self._build_metadata(name, content, metadata), split)
        return True

    async def _store_document(self, name: str, content: str, document_metadata: DocumentMetadata,
                              split: bool) -> None:
        self._validate_name(name)
        if content is None:
            raise ValueError("Content cannot be None")

        parts = self.splitter.split(content) if split else [content]
        if len(parts) <= 1:
            items = [(name, content)]
        else:
            items = [(part_key(name, i), part) for i, part in enumerate(parts)]

        previous_keys = await self.chunk_store.get(name)

        generated = await self.embeddings_service.store_batch(items)
        for key, text in items:
            await self.text_store.store(key, text)
        new_keys = [key for key, _ in items]
        await self.chunk_store.store(name, new_keys)

        for stale_key in previous_keys:
            if stale_key not in new_keys:
                await self.embedding_store.remove(stale_key)
                await self.text_store.remove(stale_key)

        if self.metadata_store is not None:
            await self.metadata_store.store(name, document_metadata)

        logger.log_document_operation("store", name, details={"parts": len(items), "embedded": generated})

    async def store_from_file(self, name: str, file_path: Union[str, Path],
                              metadata: Optional[Dict[str, str]] = None) -> bool:
        """
        Store the contents of a UTF-8 text file.

        Returns:
            False when the file does not exist

        Raises:
            ValueError: if the file is not valid UTF-8 text
        """
        path = Path(file_path)
        if not path.is_file():
            logger.log_document_operation("store_from_file", name, "missing", {"path": str(path)})
            return False

        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ValueError(f"Only text files can be stored, '{path}' is not UTF-8 text") from e

        custom_metadata = dict(metadata or {})
        custom_metadata["OriginalPath"] = str(path)
        custom_metadata["FileName"] = path.name
        custom_metadata["FileExtension"] = path.suffix

        mime_type = mimetypes.guess_type(path.name)[0] or "text/plain"
        document_metadata = self._build_metadata(name, content, custom_metadata, str(path), mime_type)
        await self._store_document(name, content, document_metadata, split=True)
        return True

    async def get(self, name: str) -> Optional[str]:
        """
        Content stored under name. A split document is reassembled from its
        parts; None when nothing is stored.
        """
        self._validate_name(name)
        content = await self.text_store.get(name)
        if content is not None:
            return content

        chunk_keys = await self.chunk_store.get(name)
        if not chunk_keys or chunk_keys == [name]:
            return None

        parts = []
        for key in chunk_keys:
            part = await self.text_store.get(key)
            if part is None:
                return None
            parts.append(part)
        return "\n".join(parts)

    def get_path(self, name: str) -> str:
        self._validate_name(name)
        return self.text_store.get_path(name)

    async def get_metadata(self, name: str) -> Optional[DocumentMetadata]:
        self._validate_name(name)
        if self.metadata_store is None:
            return None
        return await self.metadata_store.get(name)

    async def remove(self, name: str, purge: bool = False) -> bool:
        """
        Remove the embeddings of name and of every part in its mapping.

        Text, metadata and the chunk mapping are kept unless purge=True.

        Returns:
            Whether any embedding was removed
        """
        self._validate_name(name)
        chunk_keys = await self.chunk_store.get(name)

        removed = await self.embedding_store.remove(name)
        for key in chunk_keys:
            if key != name:
                removed = await self.embedding_store.remove(key) or removed

        if purge:
            await self.text_store.remove(name)
            for key in chunk_keys:
                if key != name:
                    await self.text_store.remove(key)
            if self.metadata_store is not None:
                await self.metadata_store.remove(name)
            await self.chunk_store.remove(name)

        logger.log_document_operation(
            "remove", name, "success" if removed else "missing", {"parts": len(chunk_keys), "purge": purge}
        )
        return removed

    async def move(self, name: str, new_name: str, split: bool = True) -> bool:
        """Store the content of name under new_name, keeping custom metadata, then purge name."""
        self._validate_name(new_name)
        content = await self.get(name)
        if content is None:
            return False

        existing = await self.get_metadata(name)
        custom_metadata = existing.custom_metadata if existing is not None else {}

        await self.store(new_name, content, custom_metadata, split)
        await self.remove(name, purge=True)
        return True

    async def embed(self, name: str, force: bool = False) -> bool:
        """
        Re-embed the stored text of name without changing its parts.

        Parts whose text is gone lose their embedding. With force=True the
        checksum cache is bypassed; a part keeps its old embedding if
        regenerating it fails.

        Returns:
            True if at least one embedding was generated
        """
        self._validate_name(name)
        chunk_keys = await self.chunk_store.get(name) or [name]

        embedded = False
        for key in chunk_keys:
            text = await self.text_store.get(key)
            if text is None:
                await self.embedding_store.remove(key)
                continue
            embedded = await self.embeddings_service.store_text(key, text, force=force) or embedded

        logger.log_document_operation("embed", name, details={"parts": len(chunk_keys), "embedded": embedded})
        return embedded

    async def update_embeddings(self, force: bool = False) -> int:
        """Re-embed every known document. Returns how many produced new embeddings."""
        count = 0
        for name in await self.chunk_store.list_names():
            if await self.embed(name, force=force):
                count += 1
        return count

    async def list(self, folder: str = "", recursive: bool = False) -> List[str]:
        """
        Document names, optionally restricted to a folder prefix.

        Without recursion only names directly inside folder are returned;
        for the root that means names with no path separator at all.
        """
        names = await self.chunk_store.list_names()
        if not folder or not folder.strip():
            if recursive:
                return names
            return [n for n in names if "/" not in n and "\\" not in n]

        prefix = _normalize_folder_path(folder).rstrip("/")
        result = []
        for name in names:
            normalized = _normalize_folder_path(name)
            if not normalized.startswith(prefix + "/"):
                continue
            rest = normalized[len(prefix):].lstrip("/")
            if recursive or "/" not in rest:
                result.append(name)
        return result

    async def tree(self) -> List[TreeNode]:
        return build_tree(await self.chunk_store.list_names())

    async def generate_query_embedding(self, query: str) -> Embedding:
        return await self.embeddings_service.generate_query_embedding(query)

    def as_relevance_source(self) -> RelevanceSource:
        return RelevanceSource(
            name=self.name,
            embedding_store=self.embedding_store,
            embed_query=self.generate_query_embedding,
            get_text=self.text_store.get,
        )

    @staticmethod
    def _to_source(store) -> RelevanceSource:
        return store.as_relevance_source() if isinstance(store, DocumentStore) else store

    async def relevant_items(self, query: str, other_stores: Iterable = ()) -> List[str]:
        """Rendered documents most relevant to query, from this and other stores, within the token budget."""
        others = [self._to_source(s) for s in other_stores]
        return await self.selector.get_relevant_documents(query, self.as_relevance_source(), others)

    async def embeddings(self, query: str) -> List[RelevantItem]:
        """All records of this store ranked against query, without packing."""
        query = self.selector.truncate_query(query)
        return await self.selector.rank_query(query, self.as_relevance_source())
