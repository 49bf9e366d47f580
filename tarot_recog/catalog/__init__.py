"""
Card catalog package.

This package provides:
- Card, Arcana, Suit: the immutable catalog data model
- CatalogIndex: lookups by Major number, suit/rank and normalised name
- CatalogProvider implementations and the standard 78-card deck
"""

from tarot_recog.catalog.models import Arcana, Card, Suit
from tarot_recog.catalog.index import CatalogIndex, parse_minor_name
from tarot_recog.catalog.provider import (
    CatalogProvider,
    DatabaseCatalogProvider,
    StaticCatalogProvider,
    load_deck_json,
    standard_deck,
)

__all__ = [
    'Arcana',
    'Card',
    'Suit',
    'CatalogIndex',
    'parse_minor_name',
    'CatalogProvider',
    'DatabaseCatalogProvider',
    'StaticCatalogProvider',
    'load_deck_json',
    'standard_deck',
]
