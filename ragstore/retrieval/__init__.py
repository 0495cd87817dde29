"""
Relevance selection over one or more document stores.
"""

from .relevance import RelevanceSelector, RelevanceSource, RelevantItem, render_document

__all__ = [
    'RelevanceSelector',
    'RelevanceSource',
    'RelevantItem',
    'render_document',
]
