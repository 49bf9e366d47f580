"""
FastAPI Backend for Tarot Card Recognition Service
Handles recognition, training, catalog and reading history
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import logging

from tarot_recog import __version__
from tarot_recog.config import API_HOST, API_PORT, LOG_FORMAT, LOG_LEVEL

# Configure logging to show INFO level messages
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format=LOG_FORMAT
)

logger = logging.getLogger(__name__)

from api.database import init_reading_tables
from api.routes import cards, readings, recognition
from api.services.rate_limiter import limiter
from api.services.recognition import get_recognizer, set_recognizer
from tarot_recog.database.schema import init_db
from tarot_recog.errors import TarotRecognitionError


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: create tables and warm the recognizer on startup."""
    init_db()
    init_reading_tables()

    try:
        recognizer = get_recognizer()
        logger.info(f"Recognizer loaded with {len(recognizer.index)} cards")
    except TarotRecognitionError as e:
        # Recognition endpoints answer 503 until the catalog is seeded
        logger.warning(f"Recognizer not ready: {e}")

    yield  # App runs here

    set_recognizer(None)
    logger.info("Shutting down Tarot Recognition API")


app = FastAPI(
    title="Tarot Card Recognition API",
    description="Card recognition with learned associations and reading history",
    version=__version__,
    lifespan=lifespan
)

# Attach rate limiter to app
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(cards.router, prefix="/api/cards", tags=["cards"])
app.include_router(readings.router, prefix="/api/readings", tags=["readings"])
app.include_router(recognition.router, prefix="/api", tags=["recognition"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "tarot-recognition"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.main:app", host=API_HOST, port=API_PORT, reload=True)
