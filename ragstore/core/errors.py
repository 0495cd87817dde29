"""
Error types raised by the storage and retrieval layers.

Missing keys are never errors: read paths return None or an empty list.
Database connectivity failures are left as the driver raised them.
"""


class RagStoreError(Exception):
    """Base class for errors raised by ragstore."""


class DimensionMismatchError(RagStoreError, ValueError):
    """An embedding's length disagrees with the store's configured dimension."""

    def __init__(self, expected: int, actual: int, key: str = None):
        self.expected = expected
        self.actual = actual
        self.key = key
        target = f" for key '{key}'" if key else ""
        super().__init__(
            f"Embedding dimension {actual} does not match expected dimension {expected}{target}"
        )


class EmbeddingGenerationError(RagStoreError):
    """The external embedding generator failed; nothing was cached."""

    def __init__(self, message: str, keys=None):
        self.keys = list(keys or [])
        super().__init__(message)


class MalformedStateError(RagStoreError):
    """Persisted state could not be parsed."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Malformed persisted state in {source}: {reason}")
