"""
Tests for text stores and document metadata.
"""

from datetime import datetime, timezone

import pytest

from ragstore.documents.metadata import (
    DocumentMetadata,
    DocumentMetadataFileStore,
    DocumentMetadataMemoryStore,
)
from ragstore.documents.text_store import TextFileStore, TextMemoryStore


@pytest.fixture(params=["memory", "file"])
def text_store(request, tmp_path):
    if request.param == "memory":
        return TextMemoryStore()
    return TextFileStore(tmp_path / "texts")


@pytest.mark.asyncio
async def test_text_store_round_trip(text_store):
    assert await text_store.get("doc") is None
    assert await text_store.store("doc", "hello\nworld") is True
    assert await text_store.get("doc") == "hello\nworld"

    await text_store.store("doc", "replaced")
    assert await text_store.get("doc") == "replaced"

    assert await text_store.remove("doc") is True
    assert await text_store.remove("doc") is False
    assert await text_store.get("doc") is None


@pytest.mark.asyncio
async def test_text_file_store_nested_keys(tmp_path):
    store = TextFileStore(tmp_path)
    await store.store("folder/sub/doc.md", "content")

    assert (tmp_path / "folder" / "sub" / "doc.md").read_text(encoding="utf-8") == "content"
    assert store.get_path("folder/sub/doc.md") == str((tmp_path / "folder" / "sub" / "doc.md").resolve())


@pytest.mark.asyncio
async def test_text_file_store_rejects_escaping_keys(tmp_path):
    store = TextFileStore(tmp_path / "root")
    with pytest.raises(ValueError):
        await store.store("../outside.txt", "x")


def test_text_memory_store_path():
    assert TextMemoryStore().get_path("a") == "memory://a"


def test_metadata_to_chunk_text():
    metadata = DocumentMetadata(
        id="docs/a.md",
        original_path="/tmp/a.md",
        mime_type="text/markdown",
        size=42,
        created=datetime(2024, 5, 1, 12, 30, 5, tzinfo=timezone.utc),
        custom_metadata={"author": "kim", "lang": "en"},
        summary="A short file",
    )

    assert metadata.to_chunk_text() == "\n".join([
        "Document ID: docs/a.md",
        "Original Path: /tmp/a.md",
        "MIME Type: text/markdown",
        "Size: 42 bytes",
        "Created: 2024-05-01 12:30:05 UTC",
        "Is Binary: False",
        "Summary: A short file",
        "Custom Metadata:",
        "  author: kim",
        "  lang: en",
    ])


def test_metadata_defaults():
    metadata = DocumentMetadata(id="x")
    assert metadata.mime_type == "text/plain"
    assert metadata.custom_metadata == {}
    assert metadata.created.tzinfo is not None
    assert "Summary" not in metadata.to_chunk_text()
    assert "Custom Metadata" not in metadata.to_chunk_text()


def test_metadata_rejects_negative_size():
    with pytest.raises(ValueError):
        DocumentMetadata(id="x", size=-1)


@pytest.fixture(params=["memory", "file"])
def metadata_store(request, tmp_path):
    if request.param == "memory":
        return DocumentMetadataMemoryStore()
    return DocumentMetadataFileStore(tmp_path / "metadata")


@pytest.mark.asyncio
async def test_metadata_store_round_trip(metadata_store):
    metadata = DocumentMetadata(id="docs/a.md", size=3, custom_metadata={"k": "v"})

    assert await metadata_store.get("docs/a.md") is None
    assert await metadata_store.store("docs/a.md", metadata) is True
    assert await metadata_store.exists("docs/a.md")

    loaded = await metadata_store.get("docs/a.md")
    assert loaded == metadata

    assert await metadata_store.remove("docs/a.md") is True
    assert not await metadata_store.exists("docs/a.md")


def test_metadata_file_path_is_sanitized(tmp_path):
    store = DocumentMetadataFileStore(tmp_path)
    path = store.get_metadata_path("c:\\docs/a.md")
    assert path == tmp_path / "c__docs_a.md.metadata.json"


@pytest.mark.asyncio
async def test_malformed_metadata_file_reads_as_none(tmp_path):
    store = DocumentMetadataFileStore(tmp_path)
    store.get_metadata_path("doc").write_text("{broken", encoding="utf-8")

    assert await store.get("doc") is None
    assert await store.exists("doc")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
