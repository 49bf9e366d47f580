"""
tarot_recog/catalog/index.py: In-memory lookup structures over a catalog snapshot

Built once per process from CatalogProvider.list_cards(); never mutated.
"""

import logging
from typing import Dict, Iterator, List, Optional, Tuple

from tarot_recog.catalog.models import Arcana, Card, Suit
from tarot_recog.errors import CatalogEmptyError
from tarot_recog.text.similarity import normalize_text

logger = logging.getLogger(__name__)

# Words OCR and humans use for Minor Arcana ranks
RANK_TOKENS: Dict[str, int] = {
    'ace': 1, '1': 1, 'one': 1,
    '2': 2, 'two': 2,
    '3': 3, 'three': 3,
    '4': 4, 'four': 4,
    '5': 5, 'five': 5,
    '6': 6, 'six': 6,
    '7': 7, 'seven': 7,
    '8': 8, 'eight': 8,
    '9': 9, 'nine': 9,
    '10': 10, 'ten': 10,
    'page': 11,
    'knight': 12,
    'queen': 13,
    'king': 14,
}

# Suit spellings, singular/plural, and deck-specific aliases for Pentacles
SUIT_TOKENS: Dict[str, Suit] = {
    'wands': Suit.WANDS, 'wand': Suit.WANDS,
    'cups': Suit.CUPS, 'cup': Suit.CUPS,
    'swords': Suit.SWORDS, 'sword': Suit.SWORDS,
    'pentacles': Suit.PENTACLES, 'pentacle': Suit.PENTACLES,
    'coins': Suit.PENTACLES, 'coin': Suit.PENTACLES,
    'disks': Suit.PENTACLES, 'disk': Suit.PENTACLES,
    'discs': Suit.PENTACLES, 'disc': Suit.PENTACLES,
}


def parse_minor_name(name: str) -> Optional[Tuple[int, Suit]]:
    """
    Parse "<rank> of <suit>" card names.

    Examples:
        >>> parse_minor_name("Knight of Cups")
        (12, <Suit.CUPS: 'Cups'>)
        >>> parse_minor_name("The Tower") is None
        True
    """
    words = normalize_text(name).split()
    if len(words) < 2:
        return None
    rank = RANK_TOKENS.get(words[0])
    suit = SUIT_TOKENS.get(words[-1])
    if rank is None or suit is None:
        return None
    return rank, suit


class CatalogIndex:
    """
    Lookup tables over an immutable card snapshot.

    - major_by_number: Major Arcana number (0-21) -> Card
    - minor_by_suit_rank: (Suit, rank 1-14) -> Card
    - by_normalized_name: normalised card name -> Card
    """

    def __init__(self, cards: List[Card]):
        if not cards:
            raise CatalogEmptyError("Card catalog is empty")

        self._by_id: Dict[int, Card] = {}
        self.major_by_number: Dict[int, Card] = {}
        self.minor_by_suit_rank: Dict[Tuple[Suit, int], Card] = {}
        self.by_normalized_name: Dict[str, Card] = {}

        for card in cards:
            if card.id in self._by_id:
                logger.warning(f"Duplicate card id {card.id} ({card.name}), keeping first")
                continue
            self._by_id[card.id] = card
            self.by_normalized_name.setdefault(normalize_text(card.name), card)

            if card.arcana == Arcana.MAJOR:
                if card.number is not None:
                    self.major_by_number.setdefault(card.number, card)
                continue

            parsed = parse_minor_name(card.name)
            suit = card.suit or (parsed[1] if parsed else None)
            rank = card.number if card.number is not None else (parsed[0] if parsed else None)
            if suit is not None and rank is not None:
                self.minor_by_suit_rank.setdefault((suit, rank), card)

        logger.debug(
            f"Catalog index: {len(self._by_id)} cards, {len(self.major_by_number)} major, "
            f"{len(self.minor_by_suit_rank)} minor"
        )

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[Card]:
        return iter(self._by_id.values())

    def get(self, card_id: int) -> Optional[Card]:
        return self._by_id.get(card_id)

    def major(self, number: int) -> Optional[Card]:
        return self.major_by_number.get(number)

    def minor(self, suit: Suit, rank: int) -> Optional[Card]:
        return self.minor_by_suit_rank.get((suit, rank))

    def find_by_name(self, name: str) -> Optional[Card]:
        return self.by_normalized_name.get(normalize_text(name))

    def names(self) -> List[str]:
        """Card names in catalog order."""
        return [card.name for card in self._by_id.values()]
