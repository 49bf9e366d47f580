"""
Text utilities for card name matching.

This package provides:
- normalize_text: punctuation/whitespace/case normalisation
- edit_distance, edit_similarity: Levenshtein-based scores
- token_set_overlap, jaccard_similarity: word-set scores
"""

from tarot_recog.text.similarity import (
    normalize_text,
    edit_distance,
    edit_similarity,
    token_set_overlap,
    jaccard_similarity,
)

__all__ = [
    'normalize_text',
    'edit_distance',
    'edit_similarity',
    'token_set_overlap',
    'jaccard_similarity',
]
