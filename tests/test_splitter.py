"""
Tests for the line-based document splitter.
"""

import pytest

from ragstore.documents.splitter import DocumentSplitter, part_key

from conftest import WordTokenCounter


@pytest.fixture
def splitter():
    return DocumentSplitter(WordTokenCounter(), tokens_per_part=3)


def test_nine_lines_make_three_chunks(splitter):
    """With one token per line and a threshold of 3, nine lines give three parts of three."""
    content = "\n".join(f"l{i}" for i in range(1, 10))

    parts = splitter.split(content)

    assert parts == ["l1\nl2\nl3", "l4\nl5\nl6", "l7\nl8\nl9"]
    assert "\n".join(parts) == content


def test_short_document_is_one_part(splitter):
    assert splitter.split("just two") == ["just two"]
    assert splitter.split("") == [""]


def test_oversized_line_becomes_its_own_part(splitter):
    """A single line over the threshold closes its part immediately; nothing is cut mid-line."""
    content = "a\none two three four five six\nb\nc\nd"

    parts = splitter.split(content)

    assert parts == ["a\none two three four five six", "b\nc\nd"]
    assert "\n".join(parts) == content


def test_leading_oversized_line():
    splitter = DocumentSplitter(WordTokenCounter(), tokens_per_part=2)
    parts = splitter.split("w1 w2 w3 w4\nx")
    assert parts == ["w1 w2 w3 w4", "x"]


def test_reconstruction_with_custom_delimiter():
    splitter = DocumentSplitter(WordTokenCounter(), tokens_per_part=2)
    content = "a b|c|d e f|g"

    parts = splitter.split(content, line_delimiter="|")

    assert "|".join(parts) == content
    assert len(parts) > 1


def test_blank_lines_are_preserved(splitter):
    content = "a b c\n\n\nd e f\n"
    assert "\n".join(splitter.split(content)) == content


def test_invalid_arguments():
    with pytest.raises(ValueError):
        DocumentSplitter(WordTokenCounter(), tokens_per_part=0)
    with pytest.raises(ValueError):
        DocumentSplitter(WordTokenCounter()).split(None)
    with pytest.raises(ValueError):
        DocumentSplitter(WordTokenCounter()).split("x", line_delimiter="")


def test_part_key_naming():
    assert part_key("docs/readme.md", 0) == "docs/readme.md part 0"
    assert part_key("x", 12) == "x part 12"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
