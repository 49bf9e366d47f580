"""
Recognition routes
Handles recognition, training, and extractor introspection
"""

import asyncio
import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from typing import List, Optional

from api.database import create_reading, get_db
from api.models import (
    AttemptResponse, CardResponse, DebugTextRequest, DebugTextResponse,
    ExtractionDebug, NameMatchResponse, RecognitionOption, RecognitionResponse,
    RecognizeRequest, TrainRequest, TrainResponse, TrainingStats
)
from api.services.rate_limiter import RECOGNIZE_LIMIT, limiter
from api.services.recognition import decode_image_payload, recognizer_dependency
from tarot_recog.catalog.models import Card
from tarot_recog.database.db import get_card_by_id
from tarot_recog.errors import InvalidImageError, StorageError, UnknownCardError
from tarot_recog.recognition.recognizer import CardRecognizer

logger = logging.getLogger(__name__)

router = APIRouter()


def _card_response(db: Session, card: Optional[Card]) -> Optional[CardResponse]:
    """Catalog card enriched with meaning/keywords from the database when present"""
    if card is None:
        return None
    row = get_card_by_id(db, card.id)
    data = card.to_dict()
    return CardResponse(
        **data,
        meaning=row.meaning if row is not None else None,
        keywords=row.keywords if row is not None else None
    )


def _decode(payload: str) -> bytes:
    try:
        return decode_image_payload(payload)
    except InvalidImageError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/recognize-card", response_model=RecognitionResponse)
@limiter.limit(RECOGNIZE_LIMIT)
async def recognize_card(
    request: Request,  # Required for rate limiter
    body: RecognizeRequest,
    db: Session = Depends(get_db),
    recognizer: CardRecognizer = Depends(recognizer_dependency)
):
    """
    Identify the card in an image and save the reading

    Always answers within the recognition deadline; when nothing can be
    identified the response has card=null and confidence 0 (no reading saved).
    """
    image_bytes = _decode(body.image)
    result = await recognizer.recognize(image_bytes, deadline=body.deadline)

    reading_id = None
    if result.card is not None:
        reading = create_reading(
            db,
            card_id=result.card.id,
            card_name=result.card.name,
            method=result.method,
            confidence=result.confidence,
            extracted_text=result.extracted_text
        )
        reading_id = reading.id

    data = result.to_dict()
    return RecognitionResponse(
        card=_card_response(db, result.card),
        confidence=result.confidence,
        method=result.method,
        extracted_text=result.extracted_text,
        provenance=[AttemptResponse(**a) for a in data['provenance']],
        processing_time=result.processing_time,
        reading_id=reading_id
    )


@router.post("/train-card", response_model=TrainResponse)
async def train_card(
    body: TrainRequest,
    recognizer: CardRecognizer = Depends(recognizer_dependency)
):
    """Teach the system that this image shows card_id"""
    image_bytes = _decode(body.image)
    loop = asyncio.get_running_loop()

    try:
        association = await loop.run_in_executor(None, recognizer.train_card, image_bytes, body.card_id)
    except UnknownCardError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidImageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        logger.error(f"Training failed: {e}")
        raise HTTPException(status_code=503, detail=f"Could not save training: {e}")

    card = recognizer.index.get(body.card_id)
    return TrainResponse(
        success=True,
        card_id=card.id,
        card_name=card.name,
        signature=association.signature,
        created_at=association.created_at
    )


@router.get("/training-stats", response_model=TrainingStats)
async def training_stats(recognizer: CardRecognizer = Depends(recognizer_dependency)):
    return TrainingStats(**recognizer.stats())


@router.post("/debug-text-recognition", response_model=DebugTextResponse)
async def debug_text_recognition(
    body: DebugTextRequest,
    db: Session = Depends(get_db),
    recognizer: CardRecognizer = Depends(recognizer_dependency)
):
    """
    Inspect the text path without saving anything

    With text: run the name matcher on it. With image: run every extractor
    and match the first text that names a card.
    """
    if body.text is None and body.image is None:
        raise HTTPException(status_code=400, detail="Provide text or image")

    extractions: List[ExtractionDebug] = []
    match = None

    if body.text is not None:
        match = recognizer.match_text(body.text)
    else:
        results = await recognizer.extract_all(_decode(body.image))
        for result in results:
            extractions.append(ExtractionDebug(
                source=result.source,
                text=result.text,
                confidence=result.confidence,
                error=result.error.value if result.error else None
            ))
            if match is None and result:
                match = recognizer.match_text(result.text)

    return DebugTextResponse(
        extractions=extractions,
        match=NameMatchResponse(
            card=_card_response(db, match.card),
            confidence=match.confidence,
            method=match.method
        ) if match else None
    )


@router.get("/recognition-options", response_model=List[RecognitionOption])
async def recognition_options(recognizer: CardRecognizer = Depends(recognizer_dependency)):
    """Configured extractors in the order their text is matched"""
    loop = asyncio.get_running_loop()
    # is_available() may shell out to tesseract
    described = await loop.run_in_executor(None, lambda: [e.describe() for e in recognizer.extractors])
    return [RecognitionOption(**d) for d in described]
