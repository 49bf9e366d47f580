"""
tarot_recog/database/schema.py: Database schema definitions using SQLAlchemy
"""

from sqlalchemy import create_engine, Column, Integer, String, DateTime, JSON, Text
from sqlalchemy.orm import declarative_base, sessionmaker
from datetime import datetime

from tarot_recog.config import DATABASE_PATH

Base = declarative_base()


class TarotCard(Base):
    """Catalog card. Read-only from the recognition core's point of view."""
    __tablename__ = "tarot_cards"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    arcana = Column(String(10), nullable=False, index=True)  # 'Major' or 'Minor'
    number = Column(Integer, nullable=True)  # Major 0-21, Minor rank 1-14
    suit = Column(String(20), nullable=True, index=True)  # 'Wands', 'Cups', 'Swords', 'Pentacles'
    meaning = Column(Text, nullable=True)
    keywords = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<TarotCard(id={self.id}, name='{self.name}', arcana='{self.arcana}', number={self.number})>"


class TrainedImage(Base):
    """
    Learned association: perceptual image signature -> confirmed card id.

    One row per signature; re-training the same signature overwrites card_id.
    """
    __tablename__ = "learned_associations"

    signature = Column(String(64), primary_key=True)  # pHash||dHash as hex
    card_id = Column(Integer, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f"<TrainedImage(signature={self.signature}, card_id={self.card_id})>"


# Database engine and session factory
engine = create_engine(f"sqlite:///{DATABASE_PATH}", echo=False)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    """Initialize database - create all tables."""
    Base.metadata.create_all(bind=engine)


def get_db():
    """
    Dependency function for FastAPI to get database session
    Yields a database session and ensures it's closed after use
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
