"""
Reading history routes
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List

from api.database import CardReading, create_reading, get_db, get_reading, get_readings
from api.models import ReadingCreate, ReadingResponse
from tarot_recog.database.db import get_card_by_id

router = APIRouter()


def reading_to_response(reading: CardReading) -> ReadingResponse:
    return ReadingResponse(
        id=reading.id,
        card_id=reading.card_id,
        card_name=reading.card_name,
        method=reading.method,
        confidence=reading.confidence,
        extracted_text=reading.extracted_text,
        created_at=reading.created_at
    )


@router.get("", response_model=List[ReadingResponse])
async def list_readings(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Most recent readings first"""
    return [reading_to_response(r) for r in get_readings(db, limit)]


@router.get("/{reading_id}", response_model=ReadingResponse)
async def get_reading_by_id(reading_id: int, db: Session = Depends(get_db)):
    reading = get_reading(db, reading_id)
    if reading is None:
        raise HTTPException(status_code=404, detail="Reading not found")
    return reading_to_response(reading)


@router.post("", response_model=ReadingResponse)
async def add_reading(body: ReadingCreate, db: Session = Depends(get_db)):
    """Record a reading chosen by hand (manual card selector)"""
    card = get_card_by_id(db, body.card_id)
    if card is None:
        raise HTTPException(status_code=404, detail="Card not found")

    reading = create_reading(db, card.id, card.name, body.method, body.confidence)
    return reading_to_response(reading)
