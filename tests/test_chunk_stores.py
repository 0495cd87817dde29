"""
Tests for the in-memory and JSON-file chunk stores.
"""

import json

import pytest

from ragstore.documents.chunks import ChunkJsonFileStore, ChunkMemoryStore


@pytest.fixture(params=["memory", "file"])
def chunk_store(request, tmp_path):
    if request.param == "memory":
        return ChunkMemoryStore()
    return ChunkJsonFileStore(tmp_path / "chunks.json")


@pytest.mark.asyncio
async def test_store_replaces_mapping_wholesale(chunk_store):
    await chunk_store.store("doc", ["doc part 0", "doc part 1", "doc part 2"])
    await chunk_store.store("doc", ["doc"])

    assert await chunk_store.get("doc") == ["doc"]
    assert await chunk_store.get_parent_document("doc part 1") is None


@pytest.mark.asyncio
async def test_get_unknown_is_empty(chunk_store):
    assert await chunk_store.get("unknown") == []


@pytest.mark.asyncio
async def test_order_is_preserved(chunk_store):
    keys = [f"doc part {i}" for i in range(12)]
    await chunk_store.store("doc", keys)
    assert await chunk_store.get("doc") == keys


@pytest.mark.asyncio
async def test_get_parent_document(chunk_store):
    await chunk_store.store("unsplit", ["unsplit"])
    await chunk_store.store("big", ["big part 0", "big part 1"])

    assert await chunk_store.get_parent_document("unsplit") == "unsplit"
    assert await chunk_store.get_parent_document("big") == "big"
    assert await chunk_store.get_parent_document("big part 1") == "big"
    assert await chunk_store.get_parent_document("nowhere") is None
    assert await chunk_store.get_parent_document("") is None


@pytest.mark.asyncio
async def test_remove_and_list_names(chunk_store):
    await chunk_store.store("a", ["a"])
    await chunk_store.store("b", ["b part 0", "b part 1"])

    assert await chunk_store.list_names() == ["a", "b"]
    assert await chunk_store.remove("a") is True
    assert await chunk_store.remove("a") is False
    assert await chunk_store.list_names() == ["b"]


@pytest.mark.asyncio
async def test_empty_name_rejected(chunk_store):
    with pytest.raises(ValueError):
        await chunk_store.store("", ["x"])


@pytest.mark.asyncio
async def test_file_store_persists(tmp_path):
    path = tmp_path / "nested" / "chunks.json"
    store = ChunkJsonFileStore(path)
    await store.store("doc", ["doc part 0", "doc part 1"])

    assert json.loads(path.read_text(encoding="utf-8")) == {"doc": ["doc part 0", "doc part 1"]}

    reopened = ChunkJsonFileStore(path)
    assert await reopened.get("doc") == ["doc part 0", "doc part 1"]
    assert await reopened.get_parent_document("doc part 1") == "doc"


@pytest.mark.asyncio
async def test_file_store_failed_write_keeps_mapping(tmp_path):
    path = tmp_path / "chunks.json"
    store = ChunkJsonFileStore(path)
    await store.store("doc", ["doc"])

    blocker = path.with_name(path.name + ".tmp")
    blocker.mkdir()
    (blocker / "occupied").write_text("x", encoding="utf-8")

    with pytest.raises(OSError):
        await store.store("doc", ["doc part 0", "doc part 1"])
    with pytest.raises(OSError):
        await store.remove("doc")

    assert await store.get("doc") == ["doc"]
    assert json.loads(path.read_text(encoding="utf-8")) == {"doc": ["doc"]}


@pytest.mark.parametrize("content", ["not json", "[1, 2]", '{"doc": "not a list"}'])
@pytest.mark.asyncio
async def test_file_store_malformed_is_empty(tmp_path, content):
    path = tmp_path / "chunks.json"
    path.write_text(content, encoding="utf-8")

    store = ChunkJsonFileStore(path)
    assert await store.list_names() == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
