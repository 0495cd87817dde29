"""
Token counting for budget decisions (chunking, query truncation, context packing).

A single TokenCounter is constructed once and handed to every component that
needs it; nothing here holds process-wide tokenizer state.
"""

from typing import Iterable, List, Optional, Tuple

import tiktoken

DEFAULT_ENCODING = "cl100k_base"


class TokenCounter:
    """Counts model tokens using a fixed tiktoken encoding."""

    def __init__(self, encoding_name: str = DEFAULT_ENCODING, encoding: Optional[tiktoken.Encoding] = None):
        """
        Args:
            encoding_name: tiktoken encoding to load when ``encoding`` is not given
            encoding: Pre-loaded encoding instance to share between counters
        """
        self.encoding_name = encoding_name
        self._encoding = encoding

    @property
    def encoding(self) -> tiktoken.Encoding:
        """Lazy-loaded tokenizer encoding."""
        if self._encoding is None:
            self._encoding = tiktoken.get_encoding(self.encoding_name)
        return self._encoding

    def encode(self, text: str) -> List[int]:
        return self.encoding.encode(text, disallowed_special=())

    def count_tokens(self, text: Optional[str]) -> int:
        """Count tokens in text. Blank or missing text counts as zero."""
        if not text or not text.strip():
            return 0
        return len(self.encode(text))

    def count_total_tokens(self, documents: Optional[Iterable[str]]) -> int:
        """Sum of token counts over a collection of documents."""
        if documents is None:
            return 0
        return sum(self.count_tokens(document) for document in documents)

    def analyze_tokens(self, text: Optional[str]) -> Tuple[int, str]:
        """
        Return the token count and a preview of the first ten decoded tokens.

        Returns:
            Tuple of (token_count, preview); the preview ends with "..." when
            the text has more than ten tokens.
        """
        if not text or not text.strip():
            return 0, ""

        tokens = self.encode(text)
        preview = " ".join(self.encoding.decode([token]) for token in tokens[:10])
        if len(tokens) > 10:
            preview += "..."
        return len(tokens), preview

    def filter_documents_by_token_limit(self, documents: List[str], max_tokens: int) -> List[str]:
        """
        Keep leading documents while their running token total stays within max_tokens.

        Stops at the first document that would overflow the limit; later,
        smaller documents are not considered.
        """
        filtered = []
        current_token_count = 0

        for document in documents:
            document_token_count = self.count_tokens(document)
            if current_token_count + document_token_count > max_tokens:
                break
            filtered.append(document)
            current_token_count += document_token_count

        return filtered
