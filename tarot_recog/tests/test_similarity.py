"""
Tests for text normalisation and string similarity helpers
"""

import pytest

from tarot_recog.text.similarity import (
    edit_distance,
    edit_similarity,
    jaccard_similarity,
    normalize_text,
    token_set_overlap,
)


class TestNormalizeText:
    """Test normalize_text"""

    def test_strips_punctuation_and_case(self):
        assert normalize_text("  9. THE   HERMIT!\n") == "9 the hermit"

    def test_collapses_line_breaks(self):
        assert normalize_text("QUEEN\nof\r\nCUPS") == "queen of cups"

    def test_underscores_become_spaces(self):
        assert normalize_text("ace_of_wands") == "ace of wands"

    def test_empty(self):
        assert normalize_text("") == ""
        assert normalize_text("  ...  ") == ""


class TestEditSimilarity:
    """Test Levenshtein-based helpers"""

    def test_distance(self):
        assert edit_distance("hermit", "hermit") == 0
        assert edit_distance("hermit", "hermlt") == 1
        assert edit_distance("", "abc") == 3

    def test_similarity_normalised_by_longest(self):
        assert edit_similarity("hermit", "hermlt") == pytest.approx(1 - 1 / 6)
        assert edit_similarity("abc", "xyz") == 0.0

    def test_two_empty_strings_are_identical(self):
        assert edit_similarity("", "") == 1.0


class TestJaccard:
    """Test word-set Jaccard similarity"""

    def test_strings(self):
        assert jaccard_similarity("the fool", "FOOL") == pytest.approx(0.5)
        assert jaccard_similarity("ace of cups", "cups of ace") == 1.0

    def test_iterables(self):
        assert jaccard_similarity(["a", "b"], {"b", "c"}) == pytest.approx(1 / 3)

    def test_both_empty(self):
        assert jaccard_similarity("", []) == 0.0


class TestTokenSetOverlap:
    """Test fuzzy token-set overlap"""

    def test_order_insensitive(self):
        assert token_set_overlap("of cups ace", "Ace of Cups") == 1.0

    def test_unrelated(self):
        assert token_set_overlap("tower", "queen of cups") < 0.5

    def test_empty_side(self):
        assert token_set_overlap("", "the fool") == 0.0
        assert token_set_overlap("the fool", "!!") == 0.0

    def test_range(self):
        score = token_set_overlap("the hermlt", "the hermit")
        assert 0.0 <= score <= 1.0
