"""
tarot_recog/tests/conftest.py: Pytest configuration and shared fixtures

Provides:
- Isolated data directories (set before tarot_recog.config is imported)
- Synthetic card images and their encoded bytes
- Catalog fixtures (standard 78-card deck)
- Temporary SQLite databases
- Logging configuration
"""

import os
import shutil
import tempfile
from pathlib import Path

# Keep tests away from the real database and job directories
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="tarot_recog_tests_"))
os.environ["DATABASE_PATH"] = str(_TEST_ROOT / "tarot_recognition.db")
os.environ["LOG_DIR"] = str(_TEST_ROOT / "logs")
os.environ["JOBS_DIR"] = str(_TEST_ROOT / "jobs")

import logging

import pytest

from tarot_recog.tests.helpers import encode_image, pattern_image

# Configure logging for tests
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@pytest.fixture
def temp_dir():
    """
    Function-scoped temporary directory

    Yields:
        Path to temporary directory (cleaned up after test)
    """
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path

    # Cleanup
    if temp_path.exists():
        shutil.rmtree(temp_path)


@pytest.fixture(scope='session')
def deck():
    """Standard 78-card Rider-Waite-Smith deck"""
    from tarot_recog.catalog.provider import standard_deck
    return standard_deck()


@pytest.fixture(scope='session')
def catalog_index(deck):
    from tarot_recog.catalog.index import CatalogIndex
    return CatalogIndex(deck)


@pytest.fixture(scope='session')
def name_matcher(catalog_index):
    from tarot_recog.recognition.name_matcher import CardNameMatcher
    return CardNameMatcher(catalog_index)


@pytest.fixture
def card_image():
    """
    Synthetic card photo: block pattern with a border

    Returns:
        PIL Image object
    """
    return pattern_image(seed=1)


@pytest.fixture
def card_image_bytes(card_image):
    """PNG-encoded card image"""
    return encode_image(card_image, 'PNG')


@pytest.fixture
def other_card_image_bytes():
    """PNG-encoded image unrelated to card_image"""
    return encode_image(pattern_image(seed=2), 'PNG')


# Database fixtures

@pytest.fixture
def session_factory(temp_dir):
    """
    Temporary SQLite database with all core tables

    Yields:
        sessionmaker bound to the test database
    """
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker
    from tarot_recog.database.schema import Base

    db_path = temp_dir / 'test.db'
    engine = create_engine(f"sqlite:///{db_path}", echo=False)
    Base.metadata.create_all(bind=engine)

    TestSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield TestSession

    engine.dispose()


@pytest.fixture
def test_db(session_factory):
    """
    SQLAlchemy session for the test database

    Yields:
        Session (closed after the test)
    """
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seeded_session_factory(session_factory, deck):
    """Test database with the standard deck in tarot_cards"""
    from tarot_recog.database.db import create_cards

    session = session_factory()
    try:
        create_cards(session, deck)
    finally:
        session.close()
    return session_factory


# Pytest hooks

def pytest_configure(config):
    """
    Pytest configuration hook

    Args:
        config: Pytest config object
    """
    # Register custom markers
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (database, HTTP app)")
    config.addinivalue_line("markers", "slow: Slow tests (> 1 second)")


def pytest_collection_modifyitems(config, items):
    """
    Auto-mark tests based on naming conventions

    Args:
        config: Pytest config object
        items: List of collected test items
    """
    for item in items:
        if 'integration' in item.nodeid.lower() or 'test_api' in item.nodeid.lower():
            item.add_marker(pytest.mark.integration)

        if 'slow' in item.nodeid.lower():
            item.add_marker(pytest.mark.slow)


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(_TEST_ROOT, ignore_errors=True)
