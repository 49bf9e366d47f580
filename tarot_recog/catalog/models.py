"""Card catalog data model."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class Arcana(str, Enum):
    """Major (22 trumps) or Minor (56 suited cards)."""
    MAJOR = "Major"
    MINOR = "Minor"


class Suit(str, Enum):
    """Minor Arcana suits."""
    WANDS = "Wands"
    CUPS = "Cups"
    SWORDS = "Swords"
    PENTACLES = "Pentacles"


# Minor Arcana rank numbers (Ace=1 ... 10, then court cards)
RANK_NAMES = {
    1: "Ace", 2: "Two", 3: "Three", 4: "Four", 5: "Five",
    6: "Six", 7: "Seven", 8: "Eight", 9: "Nine", 10: "Ten",
    11: "Page", 12: "Knight", 13: "Queen", 14: "King",
}
COURT_RANKS = {11: "page", 12: "knight", 13: "queen", 14: "king"}


@dataclass(frozen=True)
class Card:
    """A single catalog card. Immutable for the lifetime of the process."""
    id: int
    name: str
    arcana: Arcana
    number: Optional[int] = None
    suit: Optional[Suit] = None

    @property
    def is_major(self) -> bool:
        return self.arcana == Arcana.MAJOR

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Card":
        """Build a card from a plain dict (JSON deck files, database rows)."""
        suit = data.get('suit')
        number = data.get('number')
        return cls(
            id=int(data['id']),
            name=str(data['name']),
            arcana=Arcana(str(data['arcana']).capitalize()),
            number=int(number) if number is not None else None,
            suit=Suit(str(suit).capitalize()) if suit else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            'id': self.id,
            'name': self.name,
            'arcana': self.arcana.value,
            'number': self.number,
            'suit': self.suit.value if self.suit else None,
        }
