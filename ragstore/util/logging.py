"""
Structured logging for storage, indexing and retrieval operations.
"""

import logging
import os
from typing import Any, Dict, Optional


def _resolve_level() -> int:
    if os.getenv("RAGSTORE_DEBUG", "false").lower() == "true":
        return logging.DEBUG
    level_name = os.getenv("RAGSTORE_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _truncate(value: str, limit: int = 50) -> str:
    return value[:limit] + "..." if len(value) > limit else value


class StructuredLogger:
    """Structured logger for embedding, document and search operations."""

    def __init__(self, name: str = "ragstore"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(_resolve_level())

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Optional[Dict[str, Any]] = None,
                      level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_embedding_operation(self, operation: str, key: str, status: str = "success",
                                details: Optional[Dict[str, Any]] = None):
        """Log an embedding store operation for a single key."""
        log_details = {"key": _truncate(key)}
        if details:
            log_details.update(details)

        level = logging.DEBUG if status in ("success", "cached") else logging.WARNING
        self.log_operation(f"embedding.{operation}", status, log_details, level=level)

    def log_document_operation(self, operation: str, name: str, status: str = "success",
                               details: Optional[Dict[str, Any]] = None):
        """Log a document store operation."""
        log_details = {"name": _truncate(name)}
        if details:
            log_details.update(details)

        self.log_operation(f"document.{operation}", status, log_details)

    def log_chunk_operation(self, operation: str, name: str, chunk_count: int, status: str = "success"):
        """Log a chunk mapping operation."""
        log_details = {"name": _truncate(name), "chunks": chunk_count}
        self.log_operation(f"chunks.{operation}", status, log_details, level=logging.DEBUG)

    def log_search(self, store_name: Optional[str], query: str, result_count: int,
                   details: Optional[Dict[str, Any]] = None):
        """Log a similarity search or ranking pass."""
        log_details = {
            "store": store_name or "",
            "query": _truncate(query),
            "results": result_count,
        }
        if details:
            log_details.update(details)

        self.log_operation("search", "success", log_details, level=logging.DEBUG)

    def log_packing(self, included: int, tokens_used: int, max_tokens: int, stop_reason: str):
        """Log the outcome of token-budget packing."""
        log_details = {
            "included": included,
            "tokens_used": tokens_used,
            "max_tokens": max_tokens,
            "stop_reason": stop_reason,
        }
        self.log_operation("relevance.pack", "success", log_details, level=logging.DEBUG)

    def log_malformed_state(self, source: str, error: Exception):
        """Log persisted state that could not be read and was treated as empty."""
        self.log_operation(
            "state.load",
            "malformed",
            {"source": source, "error": str(error)[:100]},
            level=logging.WARNING,
        )

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()
