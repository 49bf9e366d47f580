"""
tarot_recog/database/db.py: SQLite database operations
Provides helper functions for common database operations
"""

from sqlalchemy.orm import Session
from typing import Iterable, List, Optional
from datetime import datetime
from contextlib import contextmanager

from tarot_recog.catalog.models import Card
from tarot_recog.database.schema import TarotCard, TrainedImage


def get_card_by_id(db: Session, card_id: int) -> Optional[TarotCard]:
    """Get card by ID"""
    return db.query(TarotCard).filter(TarotCard.id == card_id).first()


def get_all_cards(db: Session) -> List[TarotCard]:
    """Get all catalog cards ordered by id"""
    return db.query(TarotCard).order_by(TarotCard.id).all()


def count_cards(db: Session) -> int:
    return db.query(TarotCard).count()


def create_cards(db: Session, cards: Iterable[Card], commit: bool = True) -> int:
    """
    Insert catalog cards, skipping ids that already exist

    Args:
        db: Database session
        cards: Cards to insert
        commit: If False, don't commit immediately (for batch operations)

    Returns:
        Number of cards inserted
    """
    existing = {row[0] for row in db.query(TarotCard.id).all()}
    inserted = 0
    for card in cards:
        if card.id in existing:
            continue
        db.add(TarotCard(
            id=card.id,
            name=card.name,
            arcana=card.arcana.value,
            number=card.number,
            suit=card.suit.value if card.suit else None,
        ))
        existing.add(card.id)
        inserted += 1
    if commit:
        db.commit()
    else:
        db.flush()
    return inserted


def get_trained_image(db: Session, signature: str) -> Optional[TrainedImage]:
    """Get learned association by exact signature"""
    return db.query(TrainedImage).filter(TrainedImage.signature == signature).first()


def get_all_trained_images(db: Session) -> List[TrainedImage]:
    """Get every learned association"""
    return db.query(TrainedImage).all()


def count_trained_images(db: Session) -> int:
    return db.query(TrainedImage).count()


def upsert_trained_image(
    db: Session,
    signature: str,
    card_id: int,
    created_at: Optional[datetime] = None,
    commit: bool = True
) -> TrainedImage:
    """
    Create or overwrite the association for a signature (last write wins)

    Args:
        db: Database session
        signature: Image signature hex string
        card_id: Confirmed card id
        created_at: Association timestamp (default: now)
        commit: If False, don't commit immediately

    Returns:
        The stored TrainedImage row
    """
    created_at = created_at or datetime.utcnow()
    row = get_trained_image(db, signature)
    if row is None:
        row = TrainedImage(signature=signature, card_id=card_id, created_at=created_at)
        db.add(row)
    else:
        row.card_id = card_id
        row.created_at = created_at
    if commit:
        db.commit()
        db.refresh(row)
    else:
        db.flush()
    return row


@contextmanager
def transaction(db: Session):
    """
    Context manager for database transactions
    Automatically commits on success, rolls back on exception

    Usage:
        with transaction(db):
            db.add(some_object)
            # Commit happens automatically on exit
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
