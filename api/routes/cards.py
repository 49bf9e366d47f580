"""
Catalog routes (read-only)
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List

from api.database import get_db
from api.models import CardResponse
from tarot_recog.database.db import get_all_cards, get_card_by_id

router = APIRouter()


def card_row_to_response(row) -> CardResponse:
    return CardResponse(
        id=row.id,
        name=row.name,
        arcana=row.arcana,
        number=row.number,
        suit=row.suit,
        meaning=row.meaning,
        keywords=row.keywords
    )


@router.get("", response_model=List[CardResponse])
async def list_cards(db: Session = Depends(get_db)):
    """All catalog cards ordered by id"""
    return [card_row_to_response(row) for row in get_all_cards(db)]


@router.get("/{card_id}", response_model=CardResponse)
async def get_card(card_id: int, db: Session = Depends(get_db)):
    row = get_card_by_id(db, card_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Card not found")
    return card_row_to_response(row)
