"""
Reading history tables

Readings are persisted by the API after each recognition; the recognition
core never writes them.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Text
from sqlalchemy.orm import Session, declarative_base
from datetime import datetime
from typing import List, Optional

from tarot_recog.database.schema import engine, get_db, SessionLocal  # noqa: F401

Base = declarative_base()


class CardReading(Base):
    """One recognized (or manually entered) card reading"""
    __tablename__ = "card_readings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    card_id = Column(Integer, nullable=False, index=True)
    card_name = Column(String(255), nullable=False)
    method = Column(String(50), nullable=False)
    confidence = Column(Float, nullable=False, default=0.0)
    extracted_text = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


def init_reading_tables(bind=None):
    """Create reading tables if they don't exist"""
    Base.metadata.create_all(bind=bind or engine)


def create_reading(
    db: Session,
    card_id: int,
    card_name: str,
    method: str,
    confidence: float,
    extracted_text: Optional[str] = None
) -> CardReading:
    reading = CardReading(
        card_id=card_id,
        card_name=card_name,
        method=method,
        confidence=confidence,
        extracted_text=extracted_text,
        created_at=datetime.utcnow()
    )
    db.add(reading)
    db.commit()
    db.refresh(reading)
    return reading


def get_readings(db: Session, limit: int = 20) -> List[CardReading]:
    """Most recent readings first"""
    return (
        db.query(CardReading)
        .order_by(CardReading.created_at.desc(), CardReading.id.desc())
        .limit(limit)
        .all()
    )


def get_reading(db: Session, reading_id: int) -> Optional[CardReading]:
    return db.query(CardReading).filter(CardReading.id == reading_id).first()
