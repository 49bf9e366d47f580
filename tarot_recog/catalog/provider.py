"""
Card catalog providers.

The recognition core only needs a read-only snapshot of the catalog, loaded
once per process. Where the cards live (database, JSON file, hard-coded deck)
is the provider's concern.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from tarot_recog.catalog.models import Arcana, Card, RANK_NAMES, Suit
from tarot_recog.errors import StorageError

logger = logging.getLogger(__name__)

MAJOR_ARCANA = [
    "The Fool", "The Magician", "The High Priestess", "The Empress",
    "The Emperor", "The Hierophant", "The Lovers", "The Chariot",
    "Strength", "The Hermit", "Wheel of Fortune", "Justice",
    "The Hanged Man", "Death", "Temperance", "The Devil",
    "The Tower", "The Star", "The Moon", "The Sun",
    "Judgement", "The World",
]

SUIT_ORDER = [Suit.WANDS, Suit.CUPS, Suit.SWORDS, Suit.PENTACLES]


def standard_deck() -> List[Card]:
    """
    The 78-card Rider-Waite-Smith deck.

    Ids 1-22 are the Major Arcana (id = number + 1), followed by the Minor
    Arcana suit by suit (Wands, Cups, Swords, Pentacles), Ace through King.
    """
    cards = [
        Card(id=number + 1, name=name, arcana=Arcana.MAJOR, number=number)
        for number, name in enumerate(MAJOR_ARCANA)
    ]
    next_id = len(cards) + 1
    for suit in SUIT_ORDER:
        for rank in range(1, 15):
            cards.append(Card(
                id=next_id,
                name=f"{RANK_NAMES[rank]} of {suit.value}",
                arcana=Arcana.MINOR,
                number=rank,
                suit=suit,
            ))
            next_id += 1
    return cards


def load_deck_json(path: Union[str, Path]) -> List[Card]:
    """
    Load a custom deck from a JSON file.

    Expects a list of objects with id, name, arcana and optional number/suit.
    """
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get('cards', [])
    return [Card.from_dict(entry) for entry in data]


class CatalogProvider(ABC):
    """Source of the card catalog snapshot."""

    @abstractmethod
    def list_cards(self) -> List[Card]:
        """
        Return every catalog card.

        Returns:
            List of immutable Card objects (may be empty)
        """
        pass


class StaticCatalogProvider(CatalogProvider):
    """Catalog held in memory (standard deck, JSON file, tests)."""

    def __init__(self, cards: Optional[List[Card]] = None):
        self._cards = list(cards) if cards is not None else standard_deck()

    def list_cards(self) -> List[Card]:
        return list(self._cards)


class DatabaseCatalogProvider(CatalogProvider):
    """Catalog read from the tarot_cards table."""

    def __init__(self, session_factory: Optional[Callable] = None):
        if session_factory is None:
            from tarot_recog.database.schema import SessionLocal
            session_factory = SessionLocal
        self._session_factory = session_factory

    def list_cards(self) -> List[Card]:
        from tarot_recog.database.db import get_all_cards

        db = self._session_factory()
        try:
            rows = get_all_cards(db)
            cards = [
                Card.from_dict({
                    'id': row.id,
                    'name': row.name,
                    'arcana': row.arcana,
                    'number': row.number,
                    'suit': row.suit,
                })
                for row in rows
            ]
        except SQLAlchemyError as e:
            raise StorageError(f"Could not load card catalog: {e}") from e
        finally:
            db.close()

        logger.info(f"Loaded {len(cards)} cards from database")
        return cards
