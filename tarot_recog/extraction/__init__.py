"""
Text extraction package.

This package provides:
- BaseTextExtractor: Abstract interface for text extraction adapters
- ExtractionResult / ExtractionError: adapter outcomes as values
- TesseractExtractor: local OCR via pytesseract + OpenCV preprocessing
- OCRSpaceExtractor: free remote OCR over HTTP
- VisionModelExtractor: paid chat-completions vision model
- build_extractors: factory driven by configuration
"""

from tarot_recog.extraction.base import (
    BaseTextExtractor,
    ExtractionError,
    ExtractionResult,
    ReliabilityTier,
    RELIABILITY_WEIGHTS,
)
from tarot_recog.extraction.tesseract import TesseractExtractor
from tarot_recog.extraction.ocr_space import OCRSpaceExtractor
from tarot_recog.extraction.vision import VisionModelExtractor
from tarot_recog.extraction.factory import build_extractors, EXTRACTOR_TYPES

__all__ = [
    'BaseTextExtractor',
    'ExtractionError',
    'ExtractionResult',
    'ReliabilityTier',
    'RELIABILITY_WEIGHTS',
    'TesseractExtractor',
    'OCRSpaceExtractor',
    'VisionModelExtractor',
    'build_extractors',
    'EXTRACTOR_TYPES',
]
