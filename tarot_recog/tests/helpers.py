"""
tarot_recog/tests/helpers.py: Test doubles and synthetic images
"""

import asyncio
import io
import threading
from typing import Optional

import numpy as np
from PIL import Image, ImageDraw

from tarot_recog.extraction.base import (
    BaseTextExtractor,
    ExtractionError,
    ExtractionResult,
    ReliabilityTier,
)


def pattern_image(seed: int = 0, size: int = 256) -> Image.Image:
    """
    Blocky random pattern with a dark card border

    Coarse 8x8 blocks survive re-encoding, so perceptual hashes of a JPEG
    and a PNG of the same pattern stay close, while different seeds differ.
    """
    rng = np.random.RandomState(seed)
    blocks = rng.randint(0, 256, (8, 8), dtype=np.uint8)
    img = Image.fromarray(blocks).resize((size, size), Image.NEAREST).convert('RGB')

    draw = ImageDraw.Draw(img)
    draw.rectangle([0, 0, size - 1, size - 1], outline='black', width=4)
    return img


def encode_image(img: Image.Image, fmt: str = 'PNG', **save_kwargs) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


class FakeExtractor(BaseTextExtractor):
    """
    Scripted extractor: returns a fixed result after an optional delay

    Counts calls so tests can assert that a tier was skipped.
    """

    def __init__(
        self,
        name: str,
        text: str = "",
        confidence: float = 0.8,
        error: Optional[ExtractionError] = None,
        tier: ReliabilityTier = ReliabilityTier.LOCAL_OCR,
        priority: int = 10,
        delay: float = 0.0,
        timeout: float = 5.0
    ):
        super().__init__(timeout=timeout)
        self.name = name
        self.tier = tier
        self.priority = priority
        self.text = text
        self.confidence = confidence
        self.error = error
        self.delay = delay
        self.calls = 0
        self.cancelled = False
        self._lock = threading.Lock()

    def _result(self) -> ExtractionResult:
        if self.error is not None:
            return ExtractionResult.failure(self.name, self.error)
        if not self.text:
            return ExtractionResult.failure(self.name, ExtractionError.NO_TEXT_FOUND)
        return ExtractionResult(text=self.text, confidence=self.confidence, source=self.name)

    def extract(self, image_bytes: bytes) -> ExtractionResult:
        with self._lock:
            self.calls += 1
        return self._result()

    def is_available(self) -> bool:
        return self.error != ExtractionError.UNAVAILABLE

    async def aextract(self, image_bytes: bytes, executor=None) -> ExtractionResult:
        with self._lock:
            self.calls += 1
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return self._result()


class BrokenExtractor(FakeExtractor):
    """Violates the adapter contract by raising instead of reporting"""

    async def aextract(self, image_bytes: bytes, executor=None) -> ExtractionResult:
        with self._lock:
            self.calls += 1
        raise RuntimeError("adapter bug")
