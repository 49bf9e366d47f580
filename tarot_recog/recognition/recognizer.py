"""
tarot_recog/recognition/recognizer.py: Main card recognition pipeline

1. Input: encoded image bytes
2. Learned association lookup (exact signature match short-circuits)
3. Run every text extractor concurrently against one shared deadline
4. Match extracted texts to catalog cards, cheapest adapter first
5. Ensemble vote over sub-threshold attempts
6. Fallback to the most trusted single attempt (capped confidence)
"""

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Union

from tarot_recog.catalog.index import CatalogIndex
from tarot_recog.catalog.models import Card
from tarot_recog.catalog.provider import CatalogProvider
from tarot_recog.config import (
    ENSEMBLE_ACCEPT_THRESHOLD,
    FALLBACK_CONFIDENCE_CAP,
    RECOGNITION_DEADLINE,
    TEXT_ACCEPT_THRESHOLD,
    TRAINED_EXACT_THRESHOLD,
)
from tarot_recog.errors import InvalidImageError, StorageError, UnknownCardError
from tarot_recog.extraction.base import (
    BaseTextExtractor,
    ExtractionError,
    ExtractionResult,
    ReliabilityTier,
)
from tarot_recog.learning.repository import LearnedAssociation
from tarot_recog.learning.store import LearnedAssociationStore, LookupResult
from tarot_recog.recognition.ensemble import ensemble_vote, fallback_pick
from tarot_recog.recognition.name_matcher import CardNameMatcher, MatchMethod, NameMatch
from tarot_recog.recognition.results import (
    RecognitionAttempt,
    RecognitionMethod,
    RecognitionResult,
    RecognitionState,
)

logger = logging.getLogger(__name__)

NO_MATCH_METHOD = 'no-match'


class CardRecognizer:
    """
    Recognition orchestrator.

    One instance per process: it owns the catalog snapshot, the name matcher
    and a worker pool for blocking extractors. recognize() may be called
    concurrently from many requests.

    Usage:
        recognizer = CardRecognizer(
            StaticCatalogProvider(),
            store=LearnedAssociationStore(SqlAlchemyAssociationRepository()),
        )
        result = recognizer.recognize_sync(image_bytes)
        print(result.to_json())
    """

    def __init__(
        self,
        catalog: Union[CatalogIndex, CatalogProvider, List[Card]],
        store: Optional[LearnedAssociationStore] = None,
        extractors: Optional[List[BaseTextExtractor]] = None,
        deadline: float = RECOGNITION_DEADLINE,
        trained_exact_threshold: float = TRAINED_EXACT_THRESHOLD,
        text_accept_threshold: float = TEXT_ACCEPT_THRESHOLD,
        ensemble_threshold: float = ENSEMBLE_ACCEPT_THRESHOLD,
        fallback_cap: float = FALLBACK_CONFIDENCE_CAP,
        max_workers: Optional[int] = None
    ):
        """
        Initialize the recognizer

        Args:
            catalog: Catalog index, provider, or plain card list
            store: Learned association store (None disables the trained tier)
            extractors: Text extractors (None = build from configuration)
            deadline: Default overall budget for extraction, in seconds
            trained_exact_threshold: Minimum confidence for the trained short-circuit
            text_accept_threshold: Minimum matcher confidence to accept a text match
            ensemble_threshold: Minimum ensemble score
            fallback_cap: Maximum confidence of a fallback result
            max_workers: Worker threads for blocking extractors

        Raises:
            CatalogEmptyError: If the catalog has no cards
        """
        if isinstance(catalog, CatalogIndex):
            self.index = catalog
        elif isinstance(catalog, CatalogProvider):
            self.index = CatalogIndex(catalog.list_cards())
        else:
            self.index = CatalogIndex(list(catalog))

        self.matcher = CardNameMatcher(self.index)
        self.store = store

        if extractors is None:
            from tarot_recog.extraction.factory import build_extractors
            extractors = build_extractors(card_names=self.index.names())
        self.extractors = sorted(extractors, key=lambda e: e.priority)

        self.deadline = deadline
        self.trained_exact_threshold = trained_exact_threshold
        self.text_accept_threshold = text_accept_threshold
        self.ensemble_threshold = ensemble_threshold
        self.fallback_cap = fallback_cap

        # Own pool: abandoned extractor threads never hold up the event loop's default executor
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or max(4, 2 * len(self.extractors) + 1),
            thread_name_prefix="tarot-extract"
        )

        logger.info(
            f"Recognizer ready: {len(self.index)} cards, "
            f"extractors=[{', '.join(e.name for e in self.extractors)}], "
            f"trained store={'on' if store else 'off'}"
        )

    def close(self):
        """Release worker threads (in-flight extractor calls are abandoned)."""
        self._executor.shutdown(wait=False)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # Trained lookup

    def _lookup(self, image_bytes: bytes) -> Optional[LookupResult]:
        if self.store is None:
            return None
        try:
            return self.store.lookup(image_bytes)
        except InvalidImageError as e:
            # Remote OCR may still read formats PIL cannot decode
            logger.warning(f"Skipping trained lookup: {e}")
            return None

    def _lookup_attempt(self, lookup: Optional[LookupResult]) -> Optional[RecognitionAttempt]:
        if not lookup:
            return None
        card = self.index.get(lookup.card_id)
        if card is None:
            logger.warning(f"Learned association points at unknown card {lookup.card_id}, ignoring")
            return None
        return RecognitionAttempt(
            method=RecognitionMethod.TRAINED_EXACT if lookup.exact else RecognitionMethod.TRAINED_NEAR,
            source='trained',
            tier=ReliabilityTier.TRAINED,
            card=card,
            confidence=lookup.confidence
        )

    # Extraction

    async def _run_extractors(self, image_bytes: bytes, budget: float) -> Dict[BaseTextExtractor, ExtractionResult]:
        """
        Run every extractor concurrently; whatever is not done when the
        budget runs out is cancelled and reported as UNAVAILABLE.
        """
        tasks = {
            asyncio.ensure_future(extractor.aextract(image_bytes, self._executor)): extractor
            for extractor in self.extractors
        }
        results: Dict[BaseTextExtractor, ExtractionResult] = {}
        try:
            if tasks:
                done, pending = await asyncio.wait(tasks.keys(), timeout=max(0.0, budget))
                for task in pending:
                    extractor = tasks[task]
                    task.cancel()
                    logger.warning(f"{extractor.name} missed the recognition deadline, cancelled")
                    results[extractor] = ExtractionResult.failure(
                        extractor.name, ExtractionError.UNAVAILABLE
                    )
                for task in done:
                    extractor = tasks[task]
                    try:
                        results[extractor] = task.result()
                    except Exception as e:
                        logger.error(f"{extractor.name} raised instead of reporting a failure: {e}")
                        results[extractor] = ExtractionResult.failure(
                            extractor.name, ExtractionError.UNAVAILABLE
                        )
        finally:
            # Parent cancelled: take every in-flight adapter call down with it
            for task in tasks:
                if not task.done():
                    task.cancel()
        return results

    def _text_attempt(self, extractor: BaseTextExtractor, result: ExtractionResult) -> RecognitionAttempt:
        if not result:
            return RecognitionAttempt(
                method=NO_MATCH_METHOD,
                source=extractor.name,
                tier=extractor.tier,
                extracted_text=result.text or None,
                error=result.error or ExtractionError.NO_TEXT_FOUND
            )

        match = self.matcher.match(result.text)
        if match is None:
            return RecognitionAttempt(
                method=NO_MATCH_METHOD,
                source=extractor.name,
                tier=extractor.tier,
                extracted_text=result.text
            )

        # Fuzzy guesses are only as trustworthy as the heuristic, whatever the source
        tier = ReliabilityTier.PATTERN_HEURISTIC if match.method == MatchMethod.FUZZY_TOKEN else extractor.tier
        return RecognitionAttempt(
            method=match.method,
            source=extractor.name,
            tier=tier,
            card=match.card,
            confidence=match.confidence,
            extracted_text=result.text
        )

    # Pipeline

    def _finish(
        self,
        card: Optional[Card],
        confidence: float,
        method: str,
        provenance: List[RecognitionAttempt],
        stage: RecognitionState,
        start: float
    ) -> RecognitionResult:
        result = RecognitionResult(
            card=card,
            confidence=confidence,
            method=method,
            provenance=provenance,
            processing_time=time.perf_counter() - start,
            stage=stage
        )
        logger.info(
            f"Recognized {card.name if card else 'nothing'} "
            f"({result.confidence:.2f}, {method}, {stage.value}) in {result.processing_time:.2f}s"
        )
        return result

    async def recognize(self, image_bytes: bytes, deadline: Optional[float] = None) -> RecognitionResult:
        """
        Identify the card in an image

        Never raises for adapter or storage problems: if every source fails
        the result has card=None and confidence 0.

        Args:
            image_bytes: Encoded image
            deadline: Overall time budget in seconds (default: configured deadline)

        Returns:
            RecognitionResult with provenance of every attempt
        """
        start = time.perf_counter()
        budget = self.deadline if deadline is None else deadline
        loop = asyncio.get_running_loop()
        provenance: List[RecognitionAttempt] = []

        # 1. Trained lookup
        lookup = None
        if self.store is not None:
            try:
                lookup = await asyncio.wait_for(
                    loop.run_in_executor(self._executor, self._lookup, image_bytes),
                    timeout=max(0.01, budget)
                )
            except asyncio.TimeoutError:
                logger.warning("Trained lookup missed the deadline, skipping")

        trained = self._lookup_attempt(lookup)
        if trained is not None:
            provenance.append(trained)
            if lookup.exact and trained.confidence >= self.trained_exact_threshold:
                return self._finish(
                    trained.card, trained.confidence, trained.method, provenance,
                    RecognitionState.TRAINED_LOOKUP, start
                )

        # 2. Parallel extraction
        remaining = budget - (time.perf_counter() - start)
        results = await self._run_extractors(image_bytes, remaining)

        # 3. Text matching, cheapest adapter first
        text_attempts = [self._text_attempt(e, results[e]) for e in self.extractors]
        provenance.extend(text_attempts)
        for attempt in text_attempts:
            if attempt.card is not None and attempt.confidence >= self.text_accept_threshold:
                return self._finish(
                    attempt.card, attempt.confidence, attempt.method, provenance,
                    RecognitionState.TEXT_MATCHING, start
                )

        # 4. Ensemble vote
        vote = ensemble_vote(provenance, self.ensemble_threshold)
        if vote is not None:
            return self._finish(
                vote.card, vote.score, RecognitionMethod.ENSEMBLE, provenance,
                RecognitionState.ENSEMBLE_VOTE, start
            )

        # 5. Fallback
        pick = fallback_pick(provenance, self.fallback_cap)
        if pick is not None:
            return self._finish(
                pick.card, pick.score, RecognitionMethod.FALLBACK, provenance,
                RecognitionState.FALLBACK, start
            )

        return self._finish(None, 0.0, RecognitionMethod.NONE, provenance, RecognitionState.FALLBACK, start)

    def recognize_sync(self, image_bytes: bytes, deadline: Optional[float] = None) -> RecognitionResult:
        """Blocking wrapper for scripts and the CLI (not for use inside a running event loop)."""
        return asyncio.run(self.recognize(image_bytes, deadline))

    async def extract_all(self, image_bytes: bytes, deadline: Optional[float] = None) -> List[ExtractionResult]:
        """Run extractors only (debug endpoint); results in priority order."""
        budget = self.deadline if deadline is None else deadline
        results = await self._run_extractors(image_bytes, budget)
        return [results[e] for e in self.extractors]

    # Training and introspection

    def train_card(self, image_bytes: bytes, card_id: int) -> LearnedAssociation:
        """
        Record a user-confirmed identification

        Raises:
            UnknownCardError: If card_id is not in the catalog
            InvalidImageError: If the image cannot be decoded
            StorageError: If the association could not be stored
        """
        card = self.index.get(card_id)
        if card is None:
            raise UnknownCardError(card_id)
        if self.store is None:
            raise StorageError("No learned association store configured")

        association = self.store.train(image_bytes, card.id)
        logger.info(f"Trained image as {card.name}")
        return association

    def stats(self) -> Dict[str, int]:
        """Learned association counts."""
        if self.store is None:
            return {'trained_association_count': 0, 'trained_card_count': 0}
        return {
            'trained_association_count': self.store.count(),
            'trained_card_count': len(self.store.trained_card_ids()),
        }

    def match_text(self, text: str) -> Optional[NameMatch]:
        """Run the name matcher alone (debugging OCR output)."""
        return self.matcher.match(text)


def create_recognizer(
    extractor_names: Optional[List[str]] = None,
    session_factory=None,
    deadline: float = RECOGNITION_DEADLINE
) -> CardRecognizer:
    """
    Recognizer wired to the SQLite catalog and learned association tables

    Args:
        extractor_names: Extractors to enable (default: ENABLED_EXTRACTORS)
        session_factory: SQLAlchemy session factory (default: SessionLocal)
        deadline: Default recognition deadline in seconds

    Raises:
        CatalogEmptyError: If the tarot_cards table is empty (run `seed` first)
        StorageError: If the catalog cannot be read
    """
    from tarot_recog.catalog.provider import DatabaseCatalogProvider
    from tarot_recog.extraction.factory import build_extractors
    from tarot_recog.learning.repository import SqlAlchemyAssociationRepository

    index = CatalogIndex(DatabaseCatalogProvider(session_factory).list_cards())
    store = LearnedAssociationStore(SqlAlchemyAssociationRepository(session_factory))
    extractors = build_extractors(extractor_names, card_names=index.names())
    return CardRecognizer(index, store=store, extractors=extractors, deadline=deadline)
