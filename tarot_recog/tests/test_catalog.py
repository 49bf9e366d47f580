"""
Tests for the card catalog: models, index and providers
"""

import json

import pytest

from tarot_recog.catalog.index import CatalogIndex, parse_minor_name
from tarot_recog.catalog.models import Arcana, Card, Suit
from tarot_recog.catalog.provider import (
    DatabaseCatalogProvider,
    StaticCatalogProvider,
    load_deck_json,
    standard_deck,
)
from tarot_recog.errors import CatalogEmptyError
from tarot_recog.recognition.name_matcher import CardNameMatcher


class TestStandardDeck:
    """Test the built-in Rider-Waite-Smith deck"""

    def test_card_counts(self, deck):
        assert len(deck) == 78
        assert sum(1 for c in deck if c.is_major) == 22
        assert len({c.id for c in deck}) == 78

    def test_major_ids_follow_numbers(self, deck):
        fool = deck[0]
        assert fool.name == "The Fool"
        assert fool.id == 1
        assert fool.number == 0

    def test_minor_cards(self, deck):
        minors = [c for c in deck if not c.is_major]
        assert len(minors) == 56
        assert minors[0].name == "Ace of Wands"
        assert minors[-1].name == "King of Pentacles"
        assert all(c.suit is not None for c in minors)


class TestCardModel:
    """Test Card serialization"""

    def test_from_dict_normalises_case(self):
        card = Card.from_dict({'id': '5', 'name': 'Two of Cups', 'arcana': 'minor', 'number': 2, 'suit': 'cups'})
        assert card.id == 5
        assert card.arcana == Arcana.MINOR
        assert card.suit == Suit.CUPS

    def test_to_dict(self):
        card = Card(id=10, name="The Hermit", arcana=Arcana.MAJOR, number=9)
        assert card.to_dict() == {
            'id': 10, 'name': "The Hermit", 'arcana': "Major", 'number': 9, 'suit': None
        }


class TestParseMinorName:

    def test_rank_and_suit(self):
        assert parse_minor_name("Knight of Cups") == (12, Suit.CUPS)
        assert parse_minor_name("Ace of Coins") == (1, Suit.PENTACLES)

    def test_not_minor(self):
        assert parse_minor_name("The Tower") is None
        assert parse_minor_name("Cups") is None


class TestCatalogIndex:
    """Test lookup tables"""

    def test_lookups(self, catalog_index):
        assert len(catalog_index) == 78
        assert catalog_index.major(9).name == "The Hermit"
        assert catalog_index.minor(Suit.SWORDS, 3).name == "Three of Swords"
        assert catalog_index.find_by_name("wheel of FORTUNE").number == 10
        assert catalog_index.get(999) is None

    def test_every_card_indexed(self, deck, catalog_index):
        for card in deck:
            if card.is_major:
                assert catalog_index.major(card.number) is card
            else:
                assert catalog_index.minor(card.suit, card.number) is card

    def test_minor_without_number_uses_name(self):
        index = CatalogIndex([Card(id=1, name="Queen of Swords", arcana=Arcana.MINOR)])
        assert index.minor(Suit.SWORDS, 13).id == 1

    def test_duplicate_ids_keep_first(self):
        cards = [
            Card(id=1, name="The Fool", arcana=Arcana.MAJOR, number=0),
            Card(id=1, name="The Magician", arcana=Arcana.MAJOR, number=1),
        ]
        index = CatalogIndex(cards)
        assert len(index) == 1
        assert index.get(1).name == "The Fool"
        assert [c.name for c in index] == ["The Fool"]
        assert index.names() == ["The Fool"]

    def test_repeated_card_scored_once(self):
        hermit = Card(id=10, name="The Hermit", arcana=Arcana.MAJOR, number=9)
        sun = Card(id=20, name="The Sun", arcana=Arcana.MAJOR, number=19)
        index = CatalogIndex([hermit, sun, hermit])
        assert list(index) == [hermit, sun]

        # A card listed twice must not tie with itself in fuzzy matching
        match = CardNameMatcher(index).match("hermlt")
        assert match is not None
        assert match.card is hermit

    def test_empty_catalog_rejected(self):
        with pytest.raises(CatalogEmptyError):
            CatalogIndex([])


class TestProviders:
    """Test catalog providers"""

    def test_static_defaults_to_standard_deck(self):
        assert StaticCatalogProvider().list_cards() == standard_deck()

    def test_load_deck_json(self, temp_dir):
        path = temp_dir / 'deck.json'
        path.write_text(json.dumps({'cards': [
            {'id': 1, 'name': 'The Fool', 'arcana': 'Major', 'number': 0},
            {'id': 2, 'name': 'Ace of Disks', 'arcana': 'Minor', 'number': 1, 'suit': 'Pentacles'},
        ]}))

        cards = load_deck_json(path)
        assert [c.name for c in cards] == ['The Fool', 'Ace of Disks']
        assert cards[1].suit == Suit.PENTACLES

    def test_database_provider(self, seeded_session_factory, deck):
        cards = DatabaseCatalogProvider(seeded_session_factory).list_cards()
        assert cards == deck

    def test_database_provider_empty(self, session_factory):
        assert DatabaseCatalogProvider(session_factory).list_cards() == []
