"""
Tests for the Embedding value type and record models.
"""

import math

import pytest
from pydantic import ValidationError

from ragstore.vector.types import (
    Embedding,
    EmbeddingRecord,
    PersistedEmbedding,
    ScoredEmbedding,
    cosine_similarity,
)


def test_cosine_similarity_basic():
    """Identical directions score 1, orthogonal 0, opposite -1."""
    a = Embedding([1.0, 0.0, 0.0])
    assert a.cosine_similarity([2.0, 0.0, 0.0]) == pytest.approx(1.0)
    assert a.cosine_similarity([0.0, 3.0, 0.0]) == pytest.approx(0.0)
    assert a.cosine_similarity([-1.0, 0.0, 0.0]) == pytest.approx(-1.0)


def test_cosine_similarity_general_case():
    assert cosine_similarity([1, 1], [1, 0]) == pytest.approx(1 / math.sqrt(2))


def test_cosine_similarity_undefined_for_zero_vector():
    with pytest.raises(ValueError):
        Embedding([0.0, 0.0]).cosine_similarity([1.0, 0.0])


def test_cosine_similarity_rejects_length_mismatch():
    with pytest.raises(ValueError):
        Embedding([1.0, 0.0]).cosine_similarity([1.0, 0.0, 0.0])


def test_embedding_coerces_to_float():
    embedding = Embedding([1, 2, 3])
    assert embedding == [1.0, 2.0, 3.0]
    assert all(isinstance(v, float) for v in embedding)
    assert embedding.dimension == 3


def test_record_coerces_vector():
    record = EmbeddingRecord(key="k", checksum="C", vector=[1, 0])
    assert isinstance(record.vector, Embedding)


def test_scored_embedding_exposes_key():
    record = EmbeddingRecord(key="doc", checksum="C", vector=[1.0])
    scored = ScoredEmbedding(record=record, similarity=0.5)
    assert scored.key == "doc"


def test_persisted_embedding_round_trip():
    record = EmbeddingRecord(key="doc", checksum="ABC", vector=[0.5, -0.5])
    persisted = PersistedEmbedding.from_record(record)

    assert persisted.model_dump() == {"key": "doc", "checksum": "ABC", "embedding": [0.5, -0.5]}
    assert persisted.to_record() == record


def test_persisted_embedding_rejects_empty_key():
    with pytest.raises(ValidationError):
        PersistedEmbedding(key="", checksum="x", embedding=[1.0])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
