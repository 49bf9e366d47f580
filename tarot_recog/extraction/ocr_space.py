"""
OCR.space extractor.

Free remote OCR (about 500 requests/day on the public "helloworld" key).
Quota and network problems are reported as UNAVAILABLE so the next request
simply tries again.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from tarot_recog.config import OCR_SPACE_API_KEY, OCR_SPACE_ENGINE, OCR_SPACE_TIMEOUT, OCR_SPACE_URL
from tarot_recog.extraction.base import (
    BaseTextExtractor,
    ExtractionError,
    ExtractionResult,
    ReliabilityTier,
    image_data_url,
)

logger = logging.getLogger(__name__)

# Phrases OCR.space uses when the daily/rate quota is exhausted
QUOTA_MARKERS = ('maximum', 'quota', 'rate limit', 'exceeded', 'too many')


class OCRSpaceExtractor(BaseTextExtractor):
    """
    OCR.space HTTP API adapter.

    Usage:
        extractor = OCRSpaceExtractor()
        result = extractor.extract(image_bytes)
    """

    name = "ocr_space"
    tier = ReliabilityTier.FREE_REMOTE_OCR
    priority = 20

    # OCR.space reports no per-word confidence
    REPORTED_CONFIDENCE = 0.8

    def __init__(
        self,
        api_key: Optional[str] = OCR_SPACE_API_KEY,
        url: str = OCR_SPACE_URL,
        engine: int = OCR_SPACE_ENGINE,
        timeout: float = OCR_SPACE_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None
    ):
        super().__init__(timeout=timeout)
        self.api_key = api_key
        self.url = url
        self.engine = engine
        self._transport = transport

    def is_available(self) -> bool:
        return bool(self.api_key and self.url)

    def _form_data(self, image_bytes: bytes) -> Dict[str, str]:
        return {
            'base64Image': image_data_url(image_bytes),
            'apikey': self.api_key,
            'language': 'eng',
            'isOverlayRequired': 'false',
            'detectOrientation': 'true',
            'scale': 'true',
            'OCREngine': str(self.engine),
        }

    @staticmethod
    def _is_quota_message(message: Any) -> bool:
        text = str(message).lower()
        return any(marker in text for marker in QUOTA_MARKERS)

    def _parse_response(self, response: httpx.Response) -> ExtractionResult:
        """Map an OCR.space HTTP response to an ExtractionResult."""
        if response.status_code in (403, 429):
            logger.warning(f"OCR.space quota exhausted (HTTP {response.status_code})")
            return ExtractionResult.failure(self.name, ExtractionError.UNAVAILABLE)
        if response.status_code >= 400:
            logger.warning(f"OCR.space returned HTTP {response.status_code}")
            return ExtractionResult.failure(self.name, ExtractionError.UNAVAILABLE)

        try:
            payload = response.json()
        except ValueError:
            logger.warning(f"OCR.space returned non-JSON body: {response.text[:200]}")
            return ExtractionResult.failure(self.name, ExtractionError.UNAVAILABLE)

        # Quota errors sometimes come back as a bare JSON string
        if not isinstance(payload, dict):
            if self._is_quota_message(payload):
                logger.warning(f"OCR.space quota exhausted: {payload}")
            else:
                logger.warning(f"Unexpected OCR.space response: {str(payload)[:200]}")
            return ExtractionResult.failure(self.name, ExtractionError.UNAVAILABLE)

        if payload.get('IsErroredOnProcessing'):
            message = payload.get('ErrorMessage') or payload.get('ErrorDetails')
            logger.warning(f"OCR.space processing error: {message}")
            return ExtractionResult.failure(self.name, ExtractionError.UNAVAILABLE)

        parsed = payload.get('ParsedResults') or []
        text = (parsed[0].get('ParsedText') or '').strip() if parsed else ''
        if not text:
            logger.debug("OCR.space returned no text")
            return ExtractionResult.failure(self.name, ExtractionError.NO_TEXT_FOUND)

        logger.debug(f"OCR.space text: '{text}'")
        return ExtractionResult(text=text, confidence=self.REPORTED_CONFIDENCE, source=self.name)

    def extract(self, image_bytes: bytes) -> ExtractionResult:
        if not self.is_available():
            return ExtractionResult.failure(self.name, ExtractionError.UNAVAILABLE)

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.url, data=self._form_data(image_bytes))
        except httpx.TimeoutException as e:
            logger.warning(f"OCR.space timed out: {e}")
            return ExtractionResult.failure(self.name, ExtractionError.TIMEOUT)
        except httpx.HTTPError as e:
            logger.warning(f"OCR.space request failed: {e}")
            return ExtractionResult.failure(self.name, ExtractionError.UNAVAILABLE)

        return self._parse_response(response)

    async def aextract(self, image_bytes: bytes, executor=None) -> ExtractionResult:
        if not self.is_available():
            return ExtractionResult.failure(self.name, ExtractionError.UNAVAILABLE)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await asyncio.wait_for(
                    client.post(self.url, data=self._form_data(image_bytes)),
                    timeout=self.timeout
                )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            logger.warning(f"OCR.space timed out: {e}")
            return ExtractionResult.failure(self.name, ExtractionError.TIMEOUT)
        except httpx.HTTPError as e:
            logger.warning(f"OCR.space request failed: {e}")
            return ExtractionResult.failure(self.name, ExtractionError.UNAVAILABLE)

        return self._parse_response(response)
