"""
Tesseract OCR extractor.

Uses pytesseract to read the printed title of a card. Works offline; the
cheapest adapter and the first one whose text is matched.
"""

import logging
import platform
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from tarot_recog.config import OCR_PSM_MODE, TESSERACT_CMD, TESSERACT_TIMEOUT
from tarot_recog.extraction.base import (
    BaseTextExtractor,
    ExtractionError,
    ExtractionResult,
    ReliabilityTier,
)

logger = logging.getLogger(__name__)

# Lazy import pytesseract to avoid import errors if not installed
_pytesseract = None

# Common Tesseract install locations on Windows
WINDOWS_TESSERACT_PATHS = [
    r"C:\Program Files\Tesseract-OCR\tesseract.exe",
    r"C:\Program Files (x86)\Tesseract-OCR\tesseract.exe",
    r"C:\ProgramData\chocolatey\bin\tesseract.exe",
]

# Long edge of the image handed to Tesseract; phone photos are downscaled
MAX_OCR_DIMENSION = 1600


def _find_tesseract_windows() -> Optional[str]:
    """Find Tesseract executable on Windows."""
    for path in WINDOWS_TESSERACT_PATHS:
        if Path(path).exists():
            logger.info(f"Found Tesseract at: {path}")
            return path
    return None


def _get_pytesseract():
    """Lazy load pytesseract module and configure path if needed."""
    global _pytesseract
    if _pytesseract is None:
        import pytesseract

        # On Windows, auto-configure Tesseract path if not in PATH
        if platform.system() == "Windows" and not TESSERACT_CMD:
            tesseract_path = _find_tesseract_windows()
            if tesseract_path:
                pytesseract.pytesseract.tesseract_cmd = tesseract_path

        _pytesseract = pytesseract
    return _pytesseract


def decode_to_array(image_bytes: bytes) -> Optional[np.ndarray]:
    """Decode encoded image bytes into a BGR array (None if undecodable)."""
    if not image_bytes:
        return None
    buffer = np.frombuffer(image_bytes, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if image is None or image.size == 0:
        return None

    h, w = image.shape[:2]
    scale = MAX_OCR_DIMENSION / max(h, w)
    if scale < 1.0:
        image = cv2.resize(image, (int(w * scale), int(h * scale)), interpolation=cv2.INTER_AREA)
    return image


class TesseractExtractor(BaseTextExtractor):
    """
    Tesseract-based extractor for printed card titles.

    Tries raw grayscale first, then falls back through preprocessing
    variants for dark or low-contrast card borders:
    1. Raw grayscale
    2. Otsu binarization
    3. Inverted binary (light text on dark borders)
    4. CLAHE enhanced

    Usage:
        extractor = TesseractExtractor()
        result = extractor.extract(image_bytes)
    """

    name = "tesseract"
    tier = ReliabilityTier.LOCAL_OCR
    priority = 10

    # Valid Tesseract PSM modes (0-13)
    VALID_PSM_MODES = range(0, 14)

    def __init__(
        self,
        tesseract_cmd: Optional[str] = TESSERACT_CMD,
        psm: int = OCR_PSM_MODE,
        lang: str = 'eng',
        timeout: float = TESSERACT_TIMEOUT
    ):
        """
        Initialize the Tesseract extractor.

        Args:
            tesseract_cmd: Optional path to tesseract executable.
                          If not provided, uses system PATH.
            psm: Page segmentation mode (default 6 = uniform block of text)
            lang: Tesseract language code
            timeout: Per-call timeout in seconds
        """
        super().__init__(timeout=timeout)
        if psm not in self.VALID_PSM_MODES:
            raise ValueError(f"Invalid PSM mode: {psm}. Must be 0-13.")
        self.psm = psm
        self.lang = lang
        self._tesseract_cmd = tesseract_cmd
        self._available: Optional[bool] = None

    def _configure(self):
        pytesseract = _get_pytesseract()
        if self._tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self._tesseract_cmd
        return pytesseract

    def is_available(self) -> bool:
        """Check if Tesseract is properly installed (cached after first check)."""
        if self._available is None:
            try:
                version = self._configure().get_tesseract_version()
                logger.info(f"Tesseract version: {version}")
                self._available = True
            except Exception as e:
                logger.warning(f"Tesseract not available: {e}")
                self._available = False
        return self._available

    @staticmethod
    def _to_grayscale(image: np.ndarray) -> np.ndarray:
        """Convert image to grayscale."""
        if len(image.shape) == 3:
            if image.shape[2] == 4:
                return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
            elif image.shape[2] == 3:
                return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        return image.copy()

    def _run_tesseract(self, image: np.ndarray, config: str) -> ExtractionResult:
        """
        Run Tesseract OCR on a preprocessed image.

        Word confidences from image_to_data are averaged into one score.
        """
        pytesseract = self._configure()

        data = pytesseract.image_to_data(
            image,
            lang=self.lang,
            config=config,
            output_type=pytesseract.Output.DICT,
            timeout=self.timeout
        )

        text_parts = []
        confidences = []

        for i, word in enumerate(data['text']):
            if word.strip():
                text_parts.append(word.strip())
                conf = float(data['conf'][i])
                if conf >= 0:
                    confidences.append(conf / 100.0)

        text = ' '.join(text_parts)
        confidence = sum(confidences) / len(confidences) if confidences else 0.0

        return ExtractionResult(text=text, confidence=confidence, source=self.name)

    def _preprocessed_variants(self, gray: np.ndarray):
        """Yield (label, image) pairs in the order they are tried."""
        yield 'raw', gray

        _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
        yield 'binary', binary

        yield 'inverted', cv2.bitwise_not(binary)

        clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))
        yield 'clahe', clahe.apply(gray)

    def extract(self, image_bytes: bytes) -> ExtractionResult:
        image = decode_to_array(image_bytes)
        if image is None:
            logger.warning("Undecodable image provided to Tesseract")
            return ExtractionResult.failure(self.name, ExtractionError.NO_TEXT_FOUND)

        if not self.is_available():
            return ExtractionResult.failure(self.name, ExtractionError.UNAVAILABLE)

        gray = self._to_grayscale(image)
        config = f'--psm {self.psm} --oem 3'

        for label, variant in self._preprocessed_variants(gray):
            try:
                result = self._run_tesseract(variant, config)
            except RuntimeError as e:
                # pytesseract kills the process on timeout with "Tesseract process timeout"
                if 'timeout' in str(e).lower():
                    logger.warning(f"Tesseract timed out ({label}): {e}")
                    return ExtractionResult.failure(self.name, ExtractionError.TIMEOUT)
                logger.error(f"Tesseract failed ({label}): {e}")
                return ExtractionResult.failure(self.name, ExtractionError.UNAVAILABLE)
            except Exception as e:
                logger.error(f"Tesseract failed ({label}): {e}")
                return ExtractionResult.failure(self.name, ExtractionError.UNAVAILABLE)

            if result:
                logger.debug(f"Tesseract OCR ({label}): '{result.text}' (conf: {result.confidence:.2f})")
                return result

        logger.debug("Tesseract OCR: all attempts returned empty")
        return ExtractionResult.failure(self.name, ExtractionError.NO_TEXT_FOUND)
