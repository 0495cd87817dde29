"""
Value types for embeddings and the records stores keep about them.
"""

from dataclasses import dataclass
from typing import Iterable, List

import numpy as np
from pydantic import BaseModel, ConfigDict, field_validator


class Embedding(list):
    """An ordered vector of floats with cosine similarity."""

    def __init__(self, values: Iterable[float] = ()):
        super().__init__(float(v) for v in values)

    @property
    def dimension(self) -> int:
        return len(self)

    def as_array(self) -> np.ndarray:
        return np.asarray(self, dtype=np.float64)

    def norm(self) -> float:
        return float(np.linalg.norm(self.as_array()))

    def cosine_similarity(self, other: Iterable[float]) -> float:
        """
        Cosine similarity ``dot(a, b) / (|a| * |b|)``.

        Raises:
            ValueError: if the lengths differ or either vector has zero norm
        """
        a = self.as_array()
        b = np.asarray(list(other), dtype=np.float64)
        if a.shape != b.shape:
            raise ValueError(f"Cannot compare vectors of length {a.shape[0]} and {b.shape[0]}")

        norm_product = np.linalg.norm(a) * np.linalg.norm(b)
        if norm_product == 0:
            raise ValueError("Cosine similarity is undefined for zero vectors")
        return float(np.dot(a, b) / norm_product)


def cosine_similarity(a: Iterable[float], b: Iterable[float]) -> float:
    return Embedding(a).cosine_similarity(b)


@dataclass
class EmbeddingRecord:
    """One stored embedding: caller key, source-text checksum and the vector."""

    key: str
    """Unique, caller-assigned identifier"""

    checksum: str
    """Hex SHA-256 of the source text the vector was generated from"""

    vector: Embedding
    """The embedding itself"""

    def __post_init__(self):
        if not isinstance(self.vector, Embedding):
            self.vector = Embedding(self.vector)


@dataclass
class ScoredEmbedding:
    """A search hit. Produced by searches only, never persisted."""

    record: EmbeddingRecord
    similarity: float

    @property
    def key(self) -> str:
        return self.record.key


class PersistedEmbedding(BaseModel):
    """On-disk shape of an embedding record in the JSON file store."""

    model_config = ConfigDict(extra="ignore")

    key: str
    checksum: str
    embedding: List[float]

    @field_validator('key')
    @classmethod
    def key_must_not_be_empty(cls, v):
        if not v:
            raise ValueError('key cannot be empty')
        return v

    @classmethod
    def from_record(cls, record: EmbeddingRecord) -> "PersistedEmbedding":
        return cls(key=record.key, checksum=record.checksum, embedding=list(record.vector))

    def to_record(self) -> EmbeddingRecord:
        return EmbeddingRecord(key=self.key, checksum=self.checksum, vector=Embedding(self.embedding))
