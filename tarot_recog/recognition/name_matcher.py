"""
Text-to-card matching for OCR and vision-model output.

Turns noisy extracted text ("9. THE HERMIT", "QUEEN of CUPS", "Hermlt")
into a single catalog card with a confidence score. Strategies run in tier
order; the first strategy that clears its own threshold wins, so a weak
fuzzy match can never override a numbered or exact-name match.
"""

import re
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from tarot_recog.catalog.index import CatalogIndex, RANK_TOKENS, SUIT_TOKENS
from tarot_recog.catalog.models import Card, COURT_RANKS, Suit
from tarot_recog.text.similarity import edit_similarity, normalize_text

logger = logging.getLogger(__name__)

STOP_WORDS = {'the', 'of'}

ROMAN_NUMERALS: Dict[str, int] = {
    'i': 1, 'ii': 2, 'iii': 3, 'iv': 4, 'v': 5, 'vi': 6, 'vii': 7,
    'viii': 8, 'ix': 9, 'x': 10, 'xi': 11, 'xii': 12, 'xiii': 13,
    'xiv': 14, 'xv': 15, 'xvi': 16, 'xvii': 17, 'xviii': 18, 'xix': 19,
    'xx': 20, 'xxi': 21,
}


class MatchMethod:
    """Method tags recorded in recognition provenance."""
    NUMBERED_MAJOR = 'numbered-major-pattern'
    EXACT_NAME = 'exact-name'
    RANK_SUIT = 'rank-suit-pattern'
    COURT_CARD = 'court-card-pattern'
    FUZZY_TOKEN = 'fuzzy-token'


@dataclass
class NameMatch:
    """Card guessed from text."""

    card: Card
    """Matched catalog card."""

    confidence: float
    """Confidence score from 0.0 to 1.0."""

    method: str
    """Strategy that produced the match (see MatchMethod)."""


def _content_words(text: str) -> List[str]:
    return [w for w in text.split() if w not in STOP_WORDS]


def _words_overlap(text_words: List[str], card_words: List[str]) -> bool:
    """True if any text word equals a card word, or contains / is contained by one (3+ chars)."""
    for tw in text_words:
        for cw in card_words:
            if tw == cw:
                return True
            if min(len(tw), len(cw)) >= 3 and (tw in cw or cw in tw):
                return True
    return False


class CardNameMatcher:
    """
    Matches free-form text against the card catalog.

    Strategy order (confidence):
    1. Numbered Major Arcana "<N> [the] <words>" (0.98) or Roman numeral (0.97)
    2. Exact card name substring (0.95)
    3. Minor Arcana rank + suit, adjacent in either order (0.90)
    4. Court title + suit anywhere in the text (0.88-0.92)
    5. Fuzzy token scoring (capped at 0.85, accepted above 0.4)

    Usage:
        matcher = CardNameMatcher(CatalogIndex(cards))
        match = matcher.match("9. THE HERMIT")
        if match:
            print(f"{match.card.name} ({match.confidence:.2f}, {match.method})")
    """

    NUMBERED_CONFIDENCE = 0.98
    ROMAN_CONFIDENCE = 0.97
    EXACT_NAME_CONFIDENCE = 0.95
    RANK_SUIT_CONFIDENCE = 0.90
    COURT_CONFIDENCE_UNIQUE = 0.92
    COURT_CONFIDENCE_AMBIGUOUS = 0.88
    FUZZY_MAX_CONFIDENCE = 0.85
    FUZZY_MIN_CONFIDENCE = 0.4

    # Maximum index distance between rank and suit tokens ("ace of cups" = 2)
    RANK_SUIT_WINDOW = 3

    # Pattern 1a: "9 the hermit", "19 sun" (punctuation already stripped)
    PATTERN_NUMBERED = re.compile(r'\b(\d{1,2}) (?:the )?([a-z][a-z ]*)')

    # Pattern 1b: "ix the hermit", "xxi world" - longest numerals first
    PATTERN_ROMAN = re.compile(
        r'\b(' + '|'.join(sorted(ROMAN_NUMERALS, key=len, reverse=True)) + r') (?:the )?([a-z][a-z ]*)'
    )

    def __init__(self, index: CatalogIndex):
        """
        Initialize the matcher.

        Args:
            index: Catalog index built from the current catalog snapshot
        """
        self.index = index
        # Longest names first so "The High Priestess" beats any shorter name inside it
        self._names_by_length: List[Tuple[str, Card]] = sorted(
            index.by_normalized_name.items(),
            key=lambda item: len(item[0]),
            reverse=True
        )
        self._card_words: List[Tuple[Card, List[str]]] = [
            (card, _content_words(normalize_text(card.name))) for card in index
        ]

    def match(self, text: Optional[str]) -> Optional[NameMatch]:
        """
        Match extracted text to a card.

        Args:
            text: Raw extracted text (any case, punctuation, line breaks)

        Returns:
            NameMatch for the first strategy that clears its threshold, or None
        """
        normalized = normalize_text(text or "")
        if not normalized:
            return None

        strategies = (
            self._match_numbered_major,
            self._match_exact_name,
            self._match_rank_suit,
            self._match_court_card,
            self._match_fuzzy_tokens,
        )
        for strategy in strategies:
            result = strategy(normalized)
            if result is not None:
                logger.debug(
                    f"Matched '{normalized}' -> {result.card.name} "
                    f"({result.confidence:.2f}, {result.method})"
                )
                return result

        logger.debug(f"No card match for '{normalized}'")
        return None

    def _match_numbered_major(self, text: str) -> Optional[NameMatch]:
        """Resolve "<N> [the] <words>" or "<roman> [the] <words>" to a Major Arcana card."""
        for pattern, numerals, confidence in (
            (self.PATTERN_NUMBERED, None, self.NUMBERED_CONFIDENCE),
            (self.PATTERN_ROMAN, ROMAN_NUMERALS, self.ROMAN_CONFIDENCE),
        ):
            for m in pattern.finditer(text):
                token = m.group(1)
                number = numerals[token] if numerals else int(token)
                card = self.index.major(number)
                if card is None:
                    continue

                words = _content_words(m.group(2))
                card_words = _content_words(normalize_text(card.name))
                if words and _words_overlap(words, card_words):
                    return NameMatch(card, confidence, MatchMethod.NUMBERED_MAJOR)
        return None

    def _match_exact_name(self, text: str) -> Optional[NameMatch]:
        """Full catalog name on word boundaries inside the text."""
        padded = f" {text} "
        for name, card in self._names_by_length:
            if f" {name} " in padded:
                return NameMatch(card, self.EXACT_NAME_CONFIDENCE, MatchMethod.EXACT_NAME)
        return None

    @staticmethod
    def _find_tokens(tokens: List[str]) -> Tuple[List[Tuple[int, int]], List[Tuple[int, Suit]]]:
        ranks = [(i, RANK_TOKENS[t]) for i, t in enumerate(tokens) if t in RANK_TOKENS]
        suits = [(i, SUIT_TOKENS[t]) for i, t in enumerate(tokens) if t in SUIT_TOKENS]
        return ranks, suits

    def _match_rank_suit(self, text: str) -> Optional[NameMatch]:
        """Rank token and suit token close together, e.g. "ace of cups" or "cups ace"."""
        ranks, suits = self._find_tokens(text.split())
        if not ranks or not suits:
            return None

        best: Optional[Tuple[int, int, Suit]] = None
        for rank_pos, rank in ranks:
            for suit_pos, suit in suits:
                distance = abs(rank_pos - suit_pos)
                if distance > self.RANK_SUIT_WINDOW:
                    continue
                if best is None or distance < best[0]:
                    best = (distance, rank, suit)

        if best is None:
            return None

        card = self.index.minor(best[2], best[1])
        if card is None:
            return None
        return NameMatch(card, self.RANK_SUIT_CONFIDENCE, MatchMethod.RANK_SUIT)

    def _match_court_card(self, text: str) -> Optional[NameMatch]:
        """Court title and suit anywhere in the text (OCR often splits them across lines)."""
        ranks, suits = self._find_tokens(text.split())
        courts = [(pos, rank) for pos, rank in ranks if rank in COURT_RANKS]
        if not courts or not suits:
            return None

        distinct_ranks = {rank for _, rank in courts}
        distinct_suits = {suit for _, suit in suits}
        card = self.index.minor(suits[0][1], courts[0][1])
        if card is None:
            return None

        if len(distinct_ranks) == 1 and len(distinct_suits) == 1:
            confidence = self.COURT_CONFIDENCE_UNIQUE
        else:
            confidence = self.COURT_CONFIDENCE_AMBIGUOUS
        return NameMatch(card, confidence, MatchMethod.COURT_CARD)

    @staticmethod
    def _word_score(card_word: str, text_words: Set[str]) -> float:
        """Best contribution of any text word to one card word."""
        best = 0.0
        for tw in text_words:
            if tw == card_word:
                return 1.0
            if min(len(tw), len(card_word)) >= 3 and (tw in card_word or card_word in tw):
                best = max(best, 0.7)
            elif len(tw) > 3 and len(card_word) > 3 and abs(len(tw) - len(card_word)) <= 2:
                similarity = edit_similarity(tw, card_word)
                if similarity > 0.6:
                    best = max(best, 0.6 * similarity)
        return best

    def _match_fuzzy_tokens(self, text: str) -> Optional[NameMatch]:
        """Weighted word overlap against every card; rejects ties between cards."""
        text_words = set(_content_words(text))
        if not text_words:
            return None

        best_card: Optional[Card] = None
        best_confidence = 0.0
        runner_up = 0.0

        for card, card_words in self._card_words:
            if not card_words:
                continue
            score = sum(self._word_score(cw, text_words) for cw in card_words)
            if score <= 0:
                continue
            confidence = min(self.FUZZY_MAX_CONFIDENCE, score / len(card_words))
            if confidence > best_confidence:
                runner_up = best_confidence
                best_card, best_confidence = card, confidence
            elif confidence > runner_up:
                runner_up = confidence

        if best_card is None or best_confidence <= self.FUZZY_MIN_CONFIDENCE:
            return None
        if runner_up >= best_confidence:
            logger.debug(f"Fuzzy match tie at {best_confidence:.2f}, rejecting")
            return None
        return NameMatch(best_card, best_confidence, MatchMethod.FUZZY_TOKEN)
