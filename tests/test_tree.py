"""
Tests for the document key tree view.
"""

import pytest

from ragstore.documents.tree import build_tree, render_tree, split_key


def test_split_key_accepts_both_separators():
    assert split_key("a/b\\c.md") == ["a", "b", "c.md"]
    assert split_key("/lead//double/") == ["lead", "double"]


def test_keys_with_shared_prefix_share_nodes():
    roots = build_tree(["docs/a.md", "docs/b.md", "notes.txt"])

    assert [r.name for r in roots] == ["docs", "notes.txt"]
    docs = roots[0]
    assert not docs.is_document
    assert [c.name for c in docs.children] == ["a.md", "b.md"]
    assert docs.child("a.md").key == "docs/a.md"
    assert roots[1].key == "notes.txt"


def test_document_that_is_also_a_folder():
    roots = build_tree(["docs", "docs/a.md"])

    assert len(roots) == 1
    assert roots[0].is_document
    assert roots[0].key == "docs"
    assert roots[0].child("a.md").is_document


def test_render_tree():
    roots = build_tree(["x/y/z.md", "x/w.md", "top"])
    assert render_tree(roots) == "x\n  y\n    z.md\n  w.md\ntop"


def test_empty_keys_are_ignored():
    assert build_tree(["", "/"]) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
