"""Builds the configured extraction adapters."""

import logging
from typing import Dict, List, Optional, Type

from tarot_recog.config import ENABLED_EXTRACTORS
from tarot_recog.extraction.base import BaseTextExtractor
from tarot_recog.extraction.ocr_space import OCRSpaceExtractor
from tarot_recog.extraction.tesseract import TesseractExtractor
from tarot_recog.extraction.vision import VisionModelExtractor

logger = logging.getLogger(__name__)

EXTRACTOR_TYPES: Dict[str, Type[BaseTextExtractor]] = {
    TesseractExtractor.name: TesseractExtractor,
    OCRSpaceExtractor.name: OCRSpaceExtractor,
    VisionModelExtractor.name: VisionModelExtractor,
}


def build_extractors(
    names: Optional[List[str]] = None,
    card_names: Optional[List[str]] = None
) -> List[BaseTextExtractor]:
    """
    Instantiate extractors by name, sorted by priority

    Args:
        names: Extractor names (default: ENABLED_EXTRACTORS from config)
        card_names: Catalog names passed to the vision model prompt

    Returns:
        List of extractors, cheapest first

    Raises:
        ValueError: If a name is not a known extractor
    """
    names = ENABLED_EXTRACTORS if names is None else names

    extractors = []
    for name in names:
        extractor_type = EXTRACTOR_TYPES.get(name)
        if extractor_type is None:
            raise ValueError(f"Unknown extractor '{name}'. Choose from: {', '.join(EXTRACTOR_TYPES)}")
        if extractor_type is VisionModelExtractor:
            extractors.append(VisionModelExtractor(card_names=card_names))
        else:
            extractors.append(extractor_type())

    extractors.sort(key=lambda e: e.priority)
    logger.info(f"Extractors: {', '.join(e.name for e in extractors) or 'none'}")
    return extractors
