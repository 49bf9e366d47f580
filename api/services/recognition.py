"""
Recognition service wrapper
Uses one cached CardRecognizer for consistent recognition across API and CLI
"""

import base64
import binascii
import logging
import re
from typing import Optional

from tarot_recog.errors import InvalidImageError
from tarot_recog.recognition.recognizer import CardRecognizer, create_recognizer

logger = logging.getLogger(__name__)

# One recognizer per process: catalog snapshot, store index and worker pool
_recognizer_cache = {}

DATA_URL_PATTERN = re.compile(r'^data:[\w/+.-]+;base64,', re.IGNORECASE)


def get_recognizer() -> CardRecognizer:
    """
    Get or create the cached CardRecognizer (FastAPI dependency)

    Raises:
        CatalogEmptyError: If the catalog has not been seeded
    """
    if 'default' not in _recognizer_cache:
        _recognizer_cache['default'] = create_recognizer()
    return _recognizer_cache['default']


def set_recognizer(recognizer: Optional[CardRecognizer]):
    """Replace (or with None, drop) the cached recognizer"""
    previous = _recognizer_cache.pop('default', None)
    if previous is not None and previous is not recognizer:
        previous.close()
    if recognizer is not None:
        _recognizer_cache['default'] = recognizer


def decode_image_payload(payload: str) -> bytes:
    """
    Decode a base64 data URL (or bare base64) into image bytes

    Raises:
        InvalidImageError: If the payload is not valid base64 or is empty
    """
    data = DATA_URL_PATTERN.sub('', payload.strip(), count=1)
    data = re.sub(r'\s+', '', data)
    try:
        image_bytes = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError(f"Invalid base64 image data: {e}") from e
    if not image_bytes:
        raise InvalidImageError("Empty image data")
    return image_bytes


def recognizer_dependency() -> CardRecognizer:
    """FastAPI dependency: cached recognizer, or 503 while the catalog is unusable"""
    from fastapi import HTTPException
    from tarot_recog.errors import TarotRecognitionError

    try:
        return get_recognizer()
    except TarotRecognitionError as e:
        logger.error(f"Recognizer unavailable: {e}")
        raise HTTPException(status_code=503, detail=f"Recognition unavailable: {e}")
