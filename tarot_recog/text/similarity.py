"""
String similarity utilities used by the card name matcher.

OCR output is noisy: letters swapped for look-alikes ("HERM1T"), words split
or merged, stray punctuation. These helpers normalise text and score how
close two strings or word sets are.
"""

import re
from typing import Iterable, Set, Union

import Levenshtein
from fuzzywuzzy import fuzz

_PUNCTUATION = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """
    Normalise free-form text for matching.

    Strips punctuation, collapses whitespace and lowercases.

    Examples:
        >>> normalize_text("  9. THE   HERMIT!\\n")
        '9 the hermit'
    """
    if not text:
        return ""
    cleaned = _PUNCTUATION.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def edit_distance(a: str, b: str) -> int:
    """Levenshtein edit distance between two strings."""
    return Levenshtein.distance(a, b)


def edit_similarity(a: str, b: str) -> float:
    """
    Normalised edit similarity: 1 - distance / max(len_a, len_b).

    Returns 1.0 for two empty strings.
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - edit_distance(a, b) / longest


def _word_set(value: Union[str, Iterable[str]]) -> Set[str]:
    if isinstance(value, str):
        return set(normalize_text(value).split())
    return {w for w in value if w}


def jaccard_similarity(a: Union[str, Iterable[str]], b: Union[str, Iterable[str]]) -> float:
    """
    Jaccard similarity |A & B| / |A | B| over word sets.

    Accepts raw strings (normalised and split on whitespace) or iterables of
    words. Returns 0.0 when both sets are empty.
    """
    set_a = _word_set(a)
    set_b = _word_set(b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def token_set_overlap(a: str, b: str) -> float:
    """
    Order-insensitive token-set overlap in [0, 1].

    Uses fuzzywuzzy's token_set_ratio, so "of cups ace" vs "ace of cups"
    scores 1.0 and extra OCR noise tokens on one side are tolerated.
    """
    a_norm = normalize_text(a)
    b_norm = normalize_text(b)
    if not a_norm or not b_norm:
        return 0.0
    return fuzz.token_set_ratio(a_norm, b_norm) / 100.0
