"""
Document storage: splitting, chunk mapping, text and metadata persistence,
and the DocumentStore façade.
"""

from .splitter import DocumentSplitter, part_key
from .chunks import IChunkStore, ChunkMemoryStore, ChunkJsonFileStore, PostgresChunkStore
from .text_store import ITextStore, TextMemoryStore, TextFileStore, PostgresTextStore
from .metadata import (
    DocumentMetadata,
    IDocumentMetadataStore,
    DocumentMetadataMemoryStore,
    DocumentMetadataFileStore,
    PostgresDocumentMetadataStore,
)
from .tree import TreeNode, build_tree, render_tree
from .store import DocumentStore

__all__ = [
    'DocumentSplitter',
    'part_key',
    'IChunkStore',
    'ChunkMemoryStore',
    'ChunkJsonFileStore',
    'PostgresChunkStore',
    'ITextStore',
    'TextMemoryStore',
    'TextFileStore',
    'PostgresTextStore',
    'DocumentMetadata',
    'IDocumentMetadataStore',
    'DocumentMetadataMemoryStore',
    'DocumentMetadataFileStore',
    'PostgresDocumentMetadataStore',
    'TreeNode',
    'build_tree',
    'render_tree',
    'DocumentStore',
]
