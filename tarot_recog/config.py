"""Configuration for the tarot card recognition system."""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).parent.parent

# Paths
DATABASE_PATH = Path(os.getenv("DATABASE_PATH", "data/tarot_recognition.db"))
DATABASE_PATH = BASE_DIR / DATABASE_PATH if not DATABASE_PATH.is_absolute() else DATABASE_PATH

LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
LOG_DIR = BASE_DIR / LOG_DIR if not LOG_DIR.is_absolute() else LOG_DIR

JOBS_DIR = Path(os.getenv("JOBS_DIR", "data/jobs"))
JOBS_DIR = BASE_DIR / JOBS_DIR if not JOBS_DIR.is_absolute() else JOBS_DIR

# Recognition cascade
RECOGNITION_DEADLINE = float(os.getenv("RECOGNITION_DEADLINE", "8.0"))  # seconds, shared by all adapters
TRAINED_EXACT_THRESHOLD = float(os.getenv("TRAINED_EXACT_THRESHOLD", "0.9"))
TEXT_ACCEPT_THRESHOLD = float(os.getenv("TEXT_ACCEPT_THRESHOLD", "0.7"))
ENSEMBLE_ACCEPT_THRESHOLD = float(os.getenv("ENSEMBLE_ACCEPT_THRESHOLD", "0.4"))
FALLBACK_CONFIDENCE_CAP = float(os.getenv("FALLBACK_CONFIDENCE_CAP", "0.6"))

# Learned associations
# 64-bit pHash + 64-bit dHash per signature
SIGNATURE_HASH_SIZE = int(os.getenv("SIGNATURE_HASH_SIZE", "8"))
EXACT_MATCH_CONFIDENCE = 0.95
NEAR_MATCH_FLOOR = max(0.6, float(os.getenv("NEAR_MATCH_FLOOR", "0.85")))
NEAR_MATCH_CONFIDENCE_RANGE = (0.7, 0.9)
# Above this many associations, near-match scans only the signature's prefix bucket
BUCKET_SCAN_THRESHOLD = int(os.getenv("BUCKET_SCAN_THRESHOLD", "5000"))

# Extraction adapters (comma-separated, order does not matter: priority decides)
ENABLED_EXTRACTORS = [
    name.strip() for name in os.getenv("ENABLED_EXTRACTORS", "tesseract,ocr_space,vision").split(",")
    if name.strip()
]

# Tesseract (local OCR)
TESSERACT_CMD = os.getenv("TESSERACT_CMD")  # None = use system PATH
OCR_PSM_MODE = int(os.getenv("OCR_PSM_MODE", "6"))  # 6 = uniform block of text
TESSERACT_TIMEOUT = float(os.getenv("TESSERACT_TIMEOUT", "6.0"))

# OCR.space (free remote OCR, ~500 requests/day on the public key)
OCR_SPACE_URL = os.getenv("OCR_SPACE_URL", "https://api.ocr.space/parse/image")
OCR_SPACE_API_KEY = os.getenv("OCR_SPACE_API_KEY", "helloworld")
OCR_SPACE_TIMEOUT = float(os.getenv("OCR_SPACE_TIMEOUT", "7.0"))
OCR_SPACE_ENGINE = int(os.getenv("OCR_SPACE_ENGINE", "2"))

# Vision model (paid, OpenAI-compatible chat completions)
VISION_BASE_URL = os.getenv("VISION_BASE_URL", "https://api.openai.com/v1")
VISION_API_KEY = os.getenv("VISION_API_KEY") or os.getenv("OPENAI_API_KEY")
VISION_MODEL = os.getenv("VISION_MODEL", "gpt-4o")
VISION_TIMEOUT = float(os.getenv("VISION_TIMEOUT", "7.5"))
VISION_MAX_TOKENS = int(os.getenv("VISION_MAX_TOKENS", "300"))
VISION_TEMPERATURE = float(os.getenv("VISION_TEMPERATURE", "0.1"))

# API
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
RECOGNIZE_RATE_LIMIT = os.getenv("RECOGNIZE_RATE_LIMIT", "30/minute")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Create directories
for dir_path in [DATABASE_PATH.parent, LOG_DIR, JOBS_DIR]:
    dir_path.mkdir(parents=True, exist_ok=True)
