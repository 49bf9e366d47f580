"""
Base text extractor interface.

Defines the abstract interface for text extraction backends, allowing for
swappable implementations (Tesseract, OCR.space, vision-model APIs, etc.)
"""

import asyncio
import base64
import io
import logging
from abc import ABC, abstractmethod
from concurrent.futures import Executor
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from PIL import Image

logger = logging.getLogger(__name__)


class ExtractionError(str, Enum):
    """Expected adapter failures. Reported as values, never raised."""
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    NO_TEXT_FOUND = "no_text_found"


class ReliabilityTier(str, Enum):
    """How much a source is trusted when nothing clears a threshold."""
    TRAINED = "trained"
    PAID_REMOTE = "paid_remote"
    LOCAL_OCR = "local_ocr"
    FREE_REMOTE_OCR = "free_remote_ocr"
    PATTERN_HEURISTIC = "pattern_heuristic"

    @property
    def weight(self) -> float:
        return RELIABILITY_WEIGHTS[self]


RELIABILITY_WEIGHTS = {
    ReliabilityTier.TRAINED: 1.0,
    ReliabilityTier.PAID_REMOTE: 0.9,
    ReliabilityTier.LOCAL_OCR: 0.8,
    ReliabilityTier.FREE_REMOTE_OCR: 0.7,
    ReliabilityTier.PATTERN_HEURISTIC: 0.6,
}


@dataclass
class ExtractionResult:
    """Result from one text extraction call."""

    text: str = ""
    """Extracted text, stripped of leading/trailing whitespace."""

    confidence: float = 0.0
    """Engine-reported confidence from 0.0 to 1.0. Higher is better."""

    error: Optional[ExtractionError] = None
    """Set when the adapter could not produce text."""

    source: str = ""
    """Name of the adapter that produced this result."""

    card_name: Optional[str] = None
    """Card name proposed directly by the backend (vision models only)."""

    def __bool__(self) -> bool:
        """Return True if text was successfully extracted."""
        return self.error is None and bool(self.text.strip())

    @classmethod
    def failure(cls, source: str, error: ExtractionError) -> "ExtractionResult":
        return cls(text="", confidence=0.0, error=error, source=source)


def image_mime_type(image_bytes: bytes) -> str:
    """MIME type of encoded image bytes (defaults to image/jpeg)."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            return Image.MIME.get(img.format or '', 'image/jpeg')
    except (OSError, ValueError):
        return 'image/jpeg'


def image_data_url(image_bytes: bytes) -> str:
    """Encode image bytes as a base64 data URL."""
    b64_image = base64.b64encode(image_bytes).decode('utf-8')
    return f"data:{image_mime_type(image_bytes)};base64,{b64_image}"


class BaseTextExtractor(ABC):
    """
    Abstract base class for text extraction adapters.

    Implementations should handle:
    - Image preprocessing or encoding for their backend
    - Text extraction
    - Mapping every expected failure to an ExtractionError

    Example usage:
        extractor = TesseractExtractor()
        result = extractor.extract(image_bytes)
        if result:
            print(f"Found: {result.text} (confidence: {result.confidence:.2f})")
        else:
            print(f"Failed: {result.error}")
    """

    name: str = "base"
    tier: ReliabilityTier = ReliabilityTier.LOCAL_OCR
    # Lower runs first when texts are matched
    priority: int = 100

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout

    @abstractmethod
    def extract(self, image_bytes: bytes) -> ExtractionResult:
        """
        Extract text from an image.

        Args:
            image_bytes: Encoded image

        Returns:
            ExtractionResult with extracted text, or with error set
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """
        Check if the backend is properly configured and reachable.

        Returns:
            True if the extractor can be used, False otherwise
        """
        pass

    async def aextract(self, image_bytes: bytes, executor: Optional[Executor] = None) -> ExtractionResult:
        """
        Run extract() in an executor, bounded by this adapter's timeout.

        Subclasses with a native async client override this.
        """
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(executor, self.extract, image_bytes),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"{self.name} timed out after {self.timeout:.1f}s")
            return ExtractionResult.failure(self.name, ExtractionError.TIMEOUT)
        except Exception as e:
            logger.exception(f"{self.name} failed unexpectedly: {e}")
            return ExtractionResult.failure(self.name, ExtractionError.UNAVAILABLE)

    def describe(self) -> dict:
        """Adapter metadata for the recognition-options endpoint."""
        return {
            'name': self.name,
            'tier': self.tier.value,
            'priority': self.priority,
            'timeout': self.timeout,
            'available': self.is_available(),
        }

    def __repr__(self):
        return f"<{self.__class__.__name__}(name={self.name}, priority={self.priority})>"
