"""
Tests for TokenCounter.
"""

import pytest

from ragstore.core.tokens import TokenCounter

from conftest import WordTokenCounter


@pytest.fixture(scope="module")
def real_counter():
    """Counter with the real cl100k_base encoding; skipped when it cannot be loaded."""
    counter = TokenCounter()
    try:
        counter.encoding
    except Exception as e:  # encoding files are downloaded on first use
        pytest.skip(f"tiktoken encoding unavailable: {e}")
    return counter


def test_blank_text_counts_zero():
    counter = WordTokenCounter()
    assert counter.count_tokens("") == 0
    assert counter.count_tokens("   \n\t") == 0
    assert counter.count_tokens(None) == 0


def test_count_total_tokens():
    counter = WordTokenCounter()
    assert counter.count_total_tokens(["one two", "three", ""]) == 3
    assert counter.count_total_tokens(None) == 0


def test_filter_documents_stops_at_first_overflow():
    """Smaller later documents are not admitted once one overflows."""
    counter = WordTokenCounter()
    documents = ["a b c", "d e f g h", "i"]

    assert counter.filter_documents_by_token_limit(documents, 7) == ["a b c"]
    assert counter.filter_documents_by_token_limit(documents, 9) == ["a b c", "d e f g h", "i"]
    assert counter.filter_documents_by_token_limit(documents, 2) == []


def test_encoding_is_lazy():
    """Constructing a counter does not load the encoding."""
    counter = TokenCounter()
    assert counter._encoding is None


def test_real_encoding_counts(real_counter):
    assert real_counter.count_tokens("hello world") == 2
    assert real_counter.count_tokens("hello world, this is a longer sentence.") > 2


def test_real_encoding_ignores_special_tokens(real_counter):
    """Special-token text is counted as ordinary text rather than rejected."""
    assert real_counter.count_tokens("<|endoftext|>") > 0


def test_analyze_tokens_preview(real_counter):
    count, preview = real_counter.analyze_tokens("one two three four five six seven eight nine ten eleven twelve")
    assert count > 10
    assert preview.endswith("...")

    count, preview = real_counter.analyze_tokens("hello")
    assert count == 1
    assert not preview.endswith("...")

    assert real_counter.analyze_tokens("  ") == (0, "")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
