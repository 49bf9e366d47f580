"""
tarot_recog/recognition/results.py: Recognition result types

RecognitionAttempt records one piece of evidence; RecognitionResult is what
every recognize() call returns, with the attempts kept as provenance.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from tarot_recog.catalog.models import Card
from tarot_recog.extraction.base import ExtractionError, ReliabilityTier


class RecognitionState(str, Enum):
    """Stages of a single recognition request."""
    TRAINED_LOOKUP = "trained_lookup"
    PARALLEL_EXTRACTION = "parallel_extraction"
    TEXT_MATCHING = "text_matching"
    ENSEMBLE_VOTE = "ensemble_vote"
    FALLBACK = "fallback"
    DONE = "done"


class RecognitionMethod:
    """Method tags for final results (attempts use matcher strategy names)."""
    TRAINED_EXACT = 'trained-exact'
    TRAINED_NEAR = 'trained-near'
    ENSEMBLE = 'ensemble'
    FALLBACK = 'fallback'
    NONE = 'none'


def clamp_confidence(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


@dataclass
class RecognitionAttempt:
    """One source's evidence for a recognition request."""
    method: str
    source: str
    tier: ReliabilityTier
    card: Optional[Card] = None
    confidence: float = 0.0
    extracted_text: Optional[str] = None
    error: Optional[ExtractionError] = None

    def __post_init__(self):
        self.confidence = clamp_confidence(self.confidence)

    @property
    def names_card(self) -> bool:
        return self.card is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            'method': self.method,
            'source': self.source,
            'tier': self.tier.value,
            'card_id': self.card.id if self.card else None,
            'card_name': self.card.name if self.card else None,
            'confidence': float(self.confidence),
            'extracted_text': self.extracted_text,
            'error': self.error.value if self.error else None,
        }


@dataclass
class RecognitionResult:
    """Final recognition result with provenance"""
    card: Optional[Card]
    confidence: float
    method: str
    provenance: List[RecognitionAttempt] = field(default_factory=list)
    processing_time: float = 0.0
    stage: RecognitionState = RecognitionState.DONE
    """Stage of the pipeline that produced the answer."""

    def __post_init__(self):
        self.confidence = clamp_confidence(self.confidence)
        if self.card is None:
            self.confidence = 0.0

    @property
    def extracted_text(self) -> Optional[str]:
        """First non-empty extracted text, for display."""
        for attempt in self.provenance:
            if attempt.extracted_text:
                return attempt.extracted_text
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON/CSV serialization"""
        return {
            'card': self.card.to_dict() if self.card else None,
            'confidence': float(self.confidence),
            'method': self.method,
            'extracted_text': self.extracted_text,
            'provenance': [a.to_dict() for a in self.provenance],
            'stage': self.stage.value,
            'processing_time': float(self.processing_time),
        }

    def to_json(self) -> str:
        """Convert to JSON string"""
        return json.dumps(self.to_dict(), indent=2)
