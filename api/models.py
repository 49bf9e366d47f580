"""
Pydantic models for API request/response schemas
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class CardResponse(BaseModel):
    """Catalog card"""
    id: int
    name: str
    arcana: str
    number: Optional[int] = None
    suit: Optional[str] = None
    meaning: Optional[str] = None
    keywords: Optional[List[str]] = None


class RecognizeRequest(BaseModel):
    """Image to recognize, as a base64 data URL or bare base64"""
    image: str = Field(..., min_length=1, description="data:image/jpeg;base64,... or raw base64")
    deadline: Optional[float] = Field(None, gt=0.0, le=30.0, description="Override recognition deadline (seconds)")


class AttemptResponse(BaseModel):
    """One evidence source's attempt"""
    method: str
    source: str
    tier: str
    card_id: Optional[int] = None
    card_name: Optional[str] = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    extracted_text: Optional[str] = None
    error: Optional[str] = None


class RecognitionResponse(BaseModel):
    """Recognition result with provenance"""
    card: Optional[CardResponse] = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    method: str
    extracted_text: Optional[str] = None
    provenance: List[AttemptResponse]
    processing_time: float
    reading_id: Optional[int] = Field(None, description="Saved reading (only when a card was recognized)")


class TrainRequest(BaseModel):
    """User-confirmed identification"""
    image: str = Field(..., min_length=1)
    card_id: int = Field(..., ge=1)


class TrainResponse(BaseModel):
    success: bool
    card_id: int
    card_name: str
    signature: str
    created_at: datetime


class TrainingStats(BaseModel):
    trained_association_count: int
    trained_card_count: int


class ReadingCreate(BaseModel):
    """Manually recorded reading"""
    card_id: int = Field(..., ge=1)
    method: str = Field("manual", max_length=50)
    confidence: float = Field(1.0, ge=0.0, le=1.0)


class ReadingResponse(BaseModel):
    id: int
    card_id: int
    card_name: str
    method: str
    confidence: float
    extracted_text: Optional[str] = None
    created_at: datetime


class DebugTextRequest(BaseModel):
    """Either text to match, or an image to run extraction on"""
    text: Optional[str] = None
    image: Optional[str] = None


class ExtractionDebug(BaseModel):
    source: str
    text: str
    confidence: float
    error: Optional[str] = None


class NameMatchResponse(BaseModel):
    card: CardResponse
    confidence: float
    method: str


class DebugTextResponse(BaseModel):
    extractions: List[ExtractionDebug] = []
    match: Optional[NameMatchResponse] = None


class RecognitionOption(BaseModel):
    """Configured extractor"""
    name: str
    tier: str
    priority: int
    timeout: float
    available: bool
