"""
Tests for the JSON-file embedding store.
"""

import asyncio
import json

import pytest

from ragstore.core.errors import DimensionMismatchError
from ragstore.vector.json_store import EmbeddingJsonFileStore


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "embeddings" / "store.json"


@pytest.mark.asyncio
async def test_records_persist_across_instances(store_path):
    store = EmbeddingJsonFileStore(store_path, dimension=3)
    await store.store("a", [1.0, 0.0, 0.0], "ca")
    await store.store("b", [0.0, 1.0, 0.0], "cb")

    reopened = EmbeddingJsonFileStore(store_path)
    record = await reopened.get("a")
    assert record.checksum == "ca"
    assert record.vector == [1.0, 0.0, 0.0]
    assert reopened.count == 2
    assert reopened.dimension == 3


@pytest.mark.asyncio
async def test_file_format_is_indented_array(store_path):
    store = EmbeddingJsonFileStore(store_path, dimension=2)
    await store.store("a", [0.5, 0.5], "ca")

    text = store_path.read_text(encoding="utf-8")
    assert "\n  " in text
    assert json.loads(text) == [{"key": "a", "checksum": "ca", "embedding": [0.5, 0.5]}]


@pytest.mark.asyncio
async def test_remove_is_persisted(store_path):
    store = EmbeddingJsonFileStore(store_path, dimension=2)
    await store.store("a", [1.0, 0.0], "c")
    assert await store.remove("a") is True
    assert await store.remove("a") is False

    reopened = EmbeddingJsonFileStore(store_path)
    assert not await reopened.exists("a")


@pytest.mark.parametrize("content", ["{not json", '{"key": "a"}', '[{"key": "a"}]'])
def test_malformed_file_loads_as_empty(store_path, content):
    """Corrupt state degrades to an empty store instead of failing."""
    store_path.parent.mkdir(parents=True)
    store_path.write_text(content, encoding="utf-8")

    store = EmbeddingJsonFileStore(store_path, dimension=2)
    assert store.count == 0


@pytest.mark.asyncio
async def test_malformed_file_is_overwritten_on_next_store(store_path):
    store_path.parent.mkdir(parents=True)
    store_path.write_text("garbage", encoding="utf-8")

    store = EmbeddingJsonFileStore(store_path, dimension=2)
    await store.store("a", [1.0, 0.0], "c")

    assert json.loads(store_path.read_text(encoding="utf-8"))[0]["key"] == "a"


@pytest.mark.asyncio
async def test_search_matches_memory_semantics(store_path):
    store = EmbeddingJsonFileStore(store_path, dimension=4)
    await store.store("a", [1, 0, 0, 0], "c1")
    await store.store("b", [0, 1, 0, 0], "c2")

    results = await store.search_similar([1, 0, 0, 0], top_k=1, min_similarity=0)
    assert [(r.key, round(r.similarity, 6)) for r in results] == [("a", 1.0)]

    with pytest.raises(ValueError):
        await store.search_similar([1, 0, 0, 0], top_k=-1)


@pytest.mark.asyncio
async def test_dimension_mismatch_does_not_touch_file(store_path):
    store = EmbeddingJsonFileStore(store_path, dimension=2)
    await store.store("a", [1.0, 0.0], "c")
    before = store_path.read_text(encoding="utf-8")

    with pytest.raises(DimensionMismatchError):
        await store.store("a", [1.0, 0.0, 0.0], "c2")

    assert store_path.read_text(encoding="utf-8") == before


@pytest.mark.asyncio
async def test_batch_writes_once(store_path):
    store = EmbeddingJsonFileStore(store_path, dimension=2)
    count = await store.store_batch([("a", [1.0, 0.0], "ca"), ("b", [0.0, 1.0], "cb")])
    assert count == 2

    reopened = EmbeddingJsonFileStore(store_path)
    assert [r.key for r in await reopened.get_batch(["a", "b"])] == ["a", "b"]


@pytest.mark.asyncio
async def test_reload_picks_up_external_changes(store_path):
    store = EmbeddingJsonFileStore(store_path, dimension=2)
    await store.store("a", [1.0, 0.0], "c")

    other = EmbeddingJsonFileStore(store_path)
    await other.store("b", [0.0, 1.0], "c")

    assert not await store.exists("b")
    await store.reload()
    assert await store.exists("b")


@pytest.mark.asyncio
async def test_clear_empties_file(store_path):
    store = EmbeddingJsonFileStore(store_path, dimension=2)
    await store.store("a", [1.0, 0.0], "c")
    await store.clear()

    assert json.loads(store_path.read_text(encoding="utf-8")) == []


@pytest.mark.asyncio
async def test_failed_write_keeps_previous_state(store_path):
    """When the file cannot be written, memory and disk both keep the last good state."""
    store = EmbeddingJsonFileStore(store_path, dimension=2)
    await store.store("a", [1.0, 0.0], "c1")
    before = store_path.read_text(encoding="utf-8")

    # A non-empty directory where the temp file goes makes every write fail
    blocker = store_path.with_name(store_path.name + ".tmp")
    blocker.mkdir()
    (blocker / "occupied").write_text("x", encoding="utf-8")

    with pytest.raises(OSError):
        await store.store("a", [0.0, 1.0], "c2")
    with pytest.raises(OSError):
        await store.store("b", [0.0, 1.0], "cb")
    with pytest.raises(OSError):
        await store.remove("a")
    with pytest.raises(OSError):
        await store.store_batch([("c", [1.0, 1.0], "cc")])

    record = await store.get("a")
    assert record.checksum == "c1"
    assert record.vector == [1.0, 0.0]
    assert not await store.exists("b")
    assert not await store.exists("c")
    assert store.count == 1
    assert store_path.read_text(encoding="utf-8") == before


@pytest.mark.asyncio
async def test_failed_first_write_leaves_dimension_unset(store_path):
    store = EmbeddingJsonFileStore(store_path)
    blocker = store_path.with_name(store_path.name + ".tmp")
    blocker.mkdir(parents=True)
    (blocker / "occupied").write_text("x", encoding="utf-8")

    with pytest.raises(OSError):
        await store.store("a", [1.0, 0.0, 0.0], "c")

    assert store.dimension is None
    assert store.count == 0


@pytest.mark.asyncio
async def test_concurrent_stores_are_all_persisted(store_path):
    store = EmbeddingJsonFileStore(store_path, dimension=2)

    await asyncio.gather(*(store.store(f"k{i}", [float(i), 1.0], f"c{i}") for i in range(20)))
    await asyncio.gather(
        store.remove("k0"),
        store.store_batch([("b1", [1.0, 0.0], "cb1"), ("b2", [0.0, 1.0], "cb2")]),
        store.store("k1", [2.0, 2.0], "updated"),
    )

    reopened = EmbeddingJsonFileStore(store_path)
    assert reopened.count == 21
    assert not await reopened.exists("k0")
    for i in range(1, 20):
        assert await reopened.exists(f"k{i}")
    assert (await reopened.get("k1")).checksum == "updated"
    assert (await reopened.get("b2")).checksum == "cb2"
    assert reopened.count == store.count


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
