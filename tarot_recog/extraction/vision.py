"""
Vision-model extractor.

Sends the card image to an OpenAI-compatible chat-completions endpoint and
asks for the card name plus any printed text as JSON. The most reliable
source but also the slowest and the only one that costs money.
"""

import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from tarot_recog.config import (
    VISION_API_KEY,
    VISION_BASE_URL,
    VISION_MAX_TOKENS,
    VISION_MODEL,
    VISION_TEMPERATURE,
    VISION_TIMEOUT,
)
from tarot_recog.extraction.base import (
    BaseTextExtractor,
    ExtractionError,
    ExtractionResult,
    ReliabilityTier,
    image_data_url,
)

logger = logging.getLogger(__name__)


IDENTIFICATION_PROMPT = '''Identify this tarot card. Analyze the printed title, numbers and imagery carefully.
{deck_hint}
Output ONLY valid JSON matching this exact schema (no markdown, no explanation):
{{
  "card_name": "exact card name from the deck list, e.g. 'Three of Wands' or 'The Fool', or null if unsure",
  "confidence": 0.0 to 1.0,
  "extracted_text": "any text printed on the card, or an empty string"
}}'''

STRICT_SUFFIX = "\n\nIMPORTANT: Output ONLY the JSON object, nothing else."


def parse_json_response(content: str) -> Dict[str, Any]:
    """
    Parse JSON from a model response, handling markdown blocks

    Raises:
        ValueError: If no JSON object can be recovered
    """
    content = content.strip()

    # Handle markdown code blocks
    if "```" in content:
        match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", content)
        if match:
            content = match.group(1).strip()

    try:
        parsed = json.loads(content)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    # Try to find JSON object in content
    match = re.search(r"\{[\s\S]*\}", content)
    if match:
        try:
            parsed = json.loads(match.group(0))
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

    raise ValueError(f"Could not parse JSON from response: {content[:200]}")


class _RequestFailed(Exception):
    """Internal: carries the ExtractionError for a failed HTTP round trip."""

    def __init__(self, error: ExtractionError):
        super().__init__(error.value)
        self.error = error


class VisionModelExtractor(BaseTextExtractor):
    """
    Chat-completions vision adapter (OpenAI or any compatible server).

    Usage:
        extractor = VisionModelExtractor(card_names=index.names())
        result = extractor.extract(image_bytes)
        if result:
            print(result.card_name, result.text)
    """

    name = "vision"
    tier = ReliabilityTier.PAID_REMOTE
    priority = 30

    def __init__(
        self,
        card_names: Optional[List[str]] = None,
        api_key: Optional[str] = VISION_API_KEY,
        base_url: str = VISION_BASE_URL,
        model: str = VISION_MODEL,
        timeout: float = VISION_TIMEOUT,
        max_tokens: int = VISION_MAX_TOKENS,
        temperature: float = VISION_TEMPERATURE,
        transport: Optional[httpx.BaseTransport] = None
    ):
        super().__init__(timeout=timeout)
        self.card_names = list(card_names or [])
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._transport = transport

    def is_available(self) -> bool:
        return bool(self.api_key and self.base_url and self.model)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def _build_payload(self, image_bytes: bytes, strict: bool = False) -> Dict[str, Any]:
        deck_hint = ""
        if self.card_names:
            deck_hint = f"\nAvailable cards in this deck: {', '.join(self.card_names)}\n"
        prompt = IDENTIFICATION_PROMPT.format(deck_hint=deck_hint)
        if strict:
            prompt += STRICT_SUFFIX

        return {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "image_url", "image_url": {"url": image_data_url(image_bytes)}},
                        {"type": "text", "text": prompt},
                    ],
                }
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def _message_content(self, response: httpx.Response) -> str:
        """Pull the assistant message out of a completions response."""
        if response.status_code in (401, 403, 429):
            logger.warning(f"Vision API refused request (HTTP {response.status_code})")
            raise _RequestFailed(ExtractionError.UNAVAILABLE)
        if response.status_code >= 400:
            logger.warning(f"Vision API returned HTTP {response.status_code}")
            raise _RequestFailed(ExtractionError.UNAVAILABLE)

        try:
            return response.json()["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning(f"Malformed vision API response: {e}")
            raise _RequestFailed(ExtractionError.UNAVAILABLE)

    def _to_result(self, parsed: Dict[str, Any]) -> ExtractionResult:
        card_name = parsed.get("card_name") or parsed.get("cardName")
        card_name = str(card_name).strip() if card_name else None
        extracted = str(parsed.get("extracted_text") or parsed.get("extractedText") or "").strip()

        try:
            confidence = float(parsed.get("confidence", 0.0))
        except (TypeError, ValueError):
            confidence = 0.0
        confidence = max(0.0, min(1.0, confidence))

        text = "\n".join(part for part in (card_name, extracted) if part)
        if not text:
            return ExtractionResult.failure(self.name, ExtractionError.NO_TEXT_FOUND)

        logger.debug(f"Vision model: card_name={card_name!r}, text={extracted!r} ({confidence:.2f})")
        return ExtractionResult(
            text=text,
            confidence=confidence,
            source=self.name,
            card_name=card_name
        )

    def extract(self, image_bytes: bytes) -> ExtractionResult:
        if not self.is_available():
            return ExtractionResult.failure(self.name, ExtractionError.UNAVAILABLE)

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                for strict in (False, True):
                    response = client.post(
                        self.endpoint,
                        json=self._build_payload(image_bytes, strict),
                        headers=self._headers()
                    )
                    content = self._message_content(response)
                    try:
                        return self._to_result(parse_json_response(content))
                    except ValueError as e:
                        logger.warning(f"Vision model returned unparseable JSON (strict={strict}): {e}")
        except _RequestFailed as e:
            return ExtractionResult.failure(self.name, e.error)
        except httpx.TimeoutException as e:
            logger.warning(f"Vision API timed out: {e}")
            return ExtractionResult.failure(self.name, ExtractionError.TIMEOUT)
        except httpx.HTTPError as e:
            logger.warning(f"Vision API request failed: {e}")
            return ExtractionResult.failure(self.name, ExtractionError.UNAVAILABLE)

        return ExtractionResult.failure(self.name, ExtractionError.NO_TEXT_FOUND)

    async def _aextract(self, image_bytes: bytes) -> ExtractionResult:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for strict in (False, True):
                response = await client.post(
                    self.endpoint,
                    json=self._build_payload(image_bytes, strict),
                    headers=self._headers()
                )
                content = self._message_content(response)
                try:
                    return self._to_result(parse_json_response(content))
                except ValueError as e:
                    logger.warning(f"Vision model returned unparseable JSON (strict={strict}): {e}")

        return ExtractionResult.failure(self.name, ExtractionError.NO_TEXT_FOUND)

    async def aextract(self, image_bytes: bytes, executor=None) -> ExtractionResult:
        if not self.is_available():
            return ExtractionResult.failure(self.name, ExtractionError.UNAVAILABLE)

        try:
            return await asyncio.wait_for(self._aextract(image_bytes), timeout=self.timeout)
        except _RequestFailed as e:
            return ExtractionResult.failure(self.name, e.error)
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            logger.warning(f"Vision API timed out: {e}")
            return ExtractionResult.failure(self.name, ExtractionError.TIMEOUT)
        except httpx.HTTPError as e:
            logger.warning(f"Vision API request failed: {e}")
            return ExtractionResult.failure(self.name, ExtractionError.UNAVAILABLE)
