"""
Tests for the recognition pipeline

Extractors are scripted fakes; the learned association store runs on the
in-memory repository.
"""

import asyncio
import time

import pytest

from tarot_recog.catalog.provider import StaticCatalogProvider
from tarot_recog.errors import CatalogEmptyError, StorageError, UnknownCardError
from tarot_recog.extraction.base import ExtractionError, ReliabilityTier
from tarot_recog.learning.repository import InMemoryAssociationRepository
from tarot_recog.learning.signature import compute_signature
from tarot_recog.learning.store import LearnedAssociationStore
from tarot_recog.recognition.name_matcher import MatchMethod
from tarot_recog.recognition.recognizer import CardRecognizer, NO_MATCH_METHOD, create_recognizer
from tarot_recog.recognition.results import RecognitionMethod, RecognitionState
from tarot_recog.tests.helpers import BrokenExtractor, FakeExtractor


def local(text="", **kwargs):
    return FakeExtractor("tesseract", text, tier=ReliabilityTier.LOCAL_OCR, priority=10, **kwargs)


def free_remote(text="", **kwargs):
    return FakeExtractor("ocr_space", text, tier=ReliabilityTier.FREE_REMOTE_OCR, priority=20, **kwargs)


def paid_remote(text="", **kwargs):
    return FakeExtractor("vision", text, tier=ReliabilityTier.PAID_REMOTE, priority=30, **kwargs)


def unavailable_extractors():
    return [
        local(error=ExtractionError.UNAVAILABLE),
        free_remote(error=ExtractionError.UNAVAILABLE),
        paid_remote(error=ExtractionError.UNAVAILABLE),
    ]


@pytest.fixture
def store():
    return LearnedAssociationStore(InMemoryAssociationRepository())


@pytest.fixture
def make_recognizer(catalog_index, store):
    """Factory building recognizers that are closed after the test"""
    created = []

    def factory(extractors, **kwargs):
        kwargs.setdefault('store', store)
        recognizer = CardRecognizer(catalog_index, extractors=extractors, **kwargs)
        created.append(recognizer)
        return recognizer

    yield factory

    for recognizer in created:
        recognizer.close()


class TestTrainedLookup:
    """Test the learned association short-circuit"""

    def test_exact_match_skips_extractors(self, make_recognizer, store, catalog_index, card_image_bytes):
        extractors = [local("THE SUN"), free_remote("THE SUN"), paid_remote("THE SUN")]
        recognizer = make_recognizer(extractors)
        hermit = catalog_index.major(9)
        recognizer.train_card(card_image_bytes, hermit.id)

        result = recognizer.recognize_sync(card_image_bytes)

        assert result.card is hermit
        assert result.confidence == pytest.approx(0.95)
        assert result.method == RecognitionMethod.TRAINED_EXACT
        assert result.stage == RecognitionState.TRAINED_LOOKUP
        assert len(result.provenance) == 1
        assert all(e.calls == 0 for e in extractors)

    def test_near_match_still_runs_extractors(self, make_recognizer, store, catalog_index, card_image_bytes):
        signature = compute_signature(card_image_bytes)
        flipped = format(int(signature[0], 16) ^ 1, 'x') + signature[1:]
        store.train(flipped, catalog_index.major(9).id)

        extractors = unavailable_extractors()
        result = make_recognizer(extractors).recognize_sync(card_image_bytes)

        assert all(e.calls == 1 for e in extractors)
        assert result.provenance[0].method == RecognitionMethod.TRAINED_NEAR
        assert result.card.name == "The Hermit"
        # A lone near match is not an ensemble; it falls back at capped confidence
        assert result.method == RecognitionMethod.FALLBACK
        assert result.provenance[0].confidence > 0.6
        assert result.confidence == pytest.approx(0.6)

    def test_association_to_removed_card_ignored(self, make_recognizer, store, card_image_bytes):
        store.train(card_image_bytes, 999)
        result = make_recognizer(unavailable_extractors()).recognize_sync(card_image_bytes)
        assert result.card is None

    def test_undecodable_image_skips_lookup(self, make_recognizer):
        result = make_recognizer([local("9. THE HERMIT")]).recognize_sync(b"not an image")
        assert result.card.name == "The Hermit"

    def test_storage_down_degrades_to_text(self, catalog_index, card_image_bytes):
        class DownRepository(InMemoryAssociationRepository):
            def load_all(self):
                raise StorageError("disk I/O error")

        store = LearnedAssociationStore(DownRepository())
        with CardRecognizer(catalog_index, store=store, extractors=[local("THE STAR")]) as recognizer:
            result = recognizer.recognize_sync(card_image_bytes)
        assert result.card.name == "The Star"


class TestTextMatching:
    """Test text extraction and matching"""

    def test_numbered_title(self, make_recognizer, card_image_bytes):
        result = make_recognizer([local("9. THE HERMIT")]).recognize_sync(card_image_bytes)

        assert result.card.name == "The Hermit"
        assert result.confidence == pytest.approx(0.98)
        assert result.method == MatchMethod.NUMBERED_MAJOR
        assert result.stage == RecognitionState.TEXT_MATCHING
        assert result.extracted_text == "9. THE HERMIT"

    def test_cheapest_confident_adapter_wins(self, make_recognizer, card_image_bytes):
        extractors = [paid_remote("THE HERMIT"), local("ACE OF CUPS")]
        result = make_recognizer(extractors).recognize_sync(card_image_bytes)

        assert result.card.name == "Ace of Cups"
        assert [a.source for a in result.provenance] == ["tesseract", "vision"]

    def test_weak_cheap_text_does_not_block_strong_text(self, make_recognizer, card_image_bytes):
        extractors = [local("hermlt"), free_remote(error=ExtractionError.TIMEOUT), paid_remote("THE SUN")]
        result = make_recognizer(extractors).recognize_sync(card_image_bytes)

        assert result.card.name == "The Sun"
        assert result.method == MatchMethod.EXACT_NAME
        errors = {a.source: a.error for a in result.provenance}
        assert errors["ocr_space"] == ExtractionError.TIMEOUT

    def test_text_without_card(self, make_recognizer, card_image_bytes):
        result = make_recognizer([local("lorem qqqq")]).recognize_sync(card_image_bytes)

        assert result.card is None
        assert result.provenance[0].method == NO_MATCH_METHOD
        assert result.provenance[0].extracted_text == "lorem qqqq"

    def test_contract_violation_contained(self, make_recognizer, card_image_bytes):
        extractors = [BrokenExtractor("tesseract"), paid_remote("THE MOON")]
        result = make_recognizer(extractors).recognize_sync(card_image_bytes)

        assert result.card.name == "The Moon"
        assert result.provenance[0].error == ExtractionError.UNAVAILABLE


class TestEnsembleAndFallback:

    def test_weak_agreeing_sources(self, make_recognizer, card_image_bytes):
        extractors = [local("hermlt"), free_remote("HERMlT"), paid_remote("hermlt")]
        result = make_recognizer(extractors).recognize_sync(card_image_bytes)

        assert result.card.name == "The Hermit"
        assert result.method == RecognitionMethod.ENSEMBLE
        assert result.stage == RecognitionState.ENSEMBLE_VOTE
        assert result.confidence == pytest.approx(1 - 0.5 ** 3, abs=0.05)
        # Fuzzy guesses are demoted whatever their source
        assert all(a.tier == ReliabilityTier.PATTERN_HEURISTIC for a in result.provenance)

    def test_fallback_is_capped_and_weighted(self, make_recognizer, card_image_bytes):
        recognizer = make_recognizer([local("hermlt")], ensemble_threshold=0.95)
        result = recognizer.recognize_sync(card_image_bytes)

        assert result.card.name == "The Hermit"
        assert result.method == RecognitionMethod.FALLBACK
        assert result.stage == RecognitionState.FALLBACK
        assert result.confidence == pytest.approx(result.provenance[0].confidence * 0.6)
        assert result.confidence <= 0.6

    def test_lone_fuzzy_guess_falls_back(self, make_recognizer, card_image_bytes):
        extractors = [
            local("hermlt"),
            free_remote(error=ExtractionError.UNAVAILABLE),
            paid_remote(error=ExtractionError.UNAVAILABLE),
        ]
        result = make_recognizer(extractors).recognize_sync(card_image_bytes)

        assert result.card.name == "The Hermit"
        assert result.method == RecognitionMethod.FALLBACK
        assert result.stage == RecognitionState.FALLBACK
        assert result.confidence <= 0.6
        assert result.confidence < result.provenance[0].confidence

    def test_two_sources_agreeing_form_ensemble(self, make_recognizer, card_image_bytes):
        extractors = [local("hermlt"), free_remote(error=ExtractionError.TIMEOUT), paid_remote("HERMlT")]
        result = make_recognizer(extractors).recognize_sync(card_image_bytes)

        assert result.card.name == "The Hermit"
        assert result.method == RecognitionMethod.ENSEMBLE


class TestDeadline:
    """Test failure handling and the shared deadline"""

    def test_all_unavailable(self, make_recognizer, card_image_bytes):
        result = make_recognizer(unavailable_extractors()).recognize_sync(card_image_bytes)

        assert result.card is None
        assert result.confidence == 0.0
        assert result.method == RecognitionMethod.NONE
        assert len(result.provenance) == 3
        assert all(a.error == ExtractionError.UNAVAILABLE for a in result.provenance)

    def test_slow_adapters_cancelled_at_deadline(self, make_recognizer, card_image_bytes):
        extractors = [local("THE SUN", delay=5.0), paid_remote("THE SUN", delay=5.0)]
        recognizer = make_recognizer(extractors, deadline=0.3)

        start = time.perf_counter()
        result = recognizer.recognize_sync(card_image_bytes)
        elapsed = time.perf_counter() - start

        assert elapsed < 2.0
        assert result.card is None
        assert all(a.error == ExtractionError.UNAVAILABLE for a in result.provenance)
        assert all(e.cancelled for e in extractors)

    def test_fast_adapter_kept_when_slow_one_cut(self, make_recognizer, card_image_bytes):
        extractors = [local("THE SUN"), paid_remote("THE MOON", delay=5.0)]
        result = make_recognizer(extractors).recognize_sync(card_image_bytes, deadline=0.3)

        assert result.card.name == "The Sun"
        assert result.provenance[1].error == ExtractionError.UNAVAILABLE

    def test_parent_cancellation_cancels_adapters(self, make_recognizer, card_image_bytes):
        extractors = [local("THE SUN", delay=5.0), paid_remote("THE SUN", delay=5.0)]
        recognizer = make_recognizer(extractors, deadline=10.0)

        async def cancel_midway():
            task = asyncio.ensure_future(recognizer.recognize(card_image_bytes))
            await asyncio.sleep(0.2)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            await asyncio.sleep(0.05)

        asyncio.run(cancel_midway())
        assert all(e.cancelled for e in extractors)

    def test_concurrent_requests(self, make_recognizer, card_image_bytes):
        recognizer = make_recognizer([local("9. THE HERMIT", delay=0.05)])

        async def many():
            return await asyncio.gather(*(recognizer.recognize(card_image_bytes) for _ in range(10)))

        results = asyncio.run(many())
        assert all(r.card.name == "The Hermit" for r in results)


class TestRecognizerSetup:

    def test_empty_catalog(self):
        with pytest.raises(CatalogEmptyError):
            CardRecognizer([], extractors=[])

    def test_accepts_provider(self):
        with CardRecognizer(StaticCatalogProvider(), extractors=[]) as recognizer:
            assert len(recognizer.index) == 78
            assert recognizer.stats() == {'trained_association_count': 0, 'trained_card_count': 0}

    def test_extractors_sorted(self, make_recognizer):
        recognizer = make_recognizer([paid_remote(), local(), free_remote()])
        assert [e.name for e in recognizer.extractors] == ["tesseract", "ocr_space", "vision"]

    def test_extract_all(self, make_recognizer, card_image_bytes):
        recognizer = make_recognizer([paid_remote("THE SUN"), local(error=ExtractionError.TIMEOUT)])
        results = asyncio.run(recognizer.extract_all(card_image_bytes))
        assert [r.source for r in results] == ["tesseract", "vision"]
        assert results[1].text == "THE SUN"


class TestTraining:

    def test_unknown_card(self, make_recognizer, card_image_bytes):
        with pytest.raises(UnknownCardError):
            make_recognizer([]).train_card(card_image_bytes, 999)

    def test_without_store(self, make_recognizer, card_image_bytes):
        with pytest.raises(StorageError):
            make_recognizer([], store=None).train_card(card_image_bytes, 1)

    def test_stats(self, make_recognizer, card_image_bytes, other_card_image_bytes):
        recognizer = make_recognizer([])
        recognizer.train_card(card_image_bytes, 1)
        recognizer.train_card(other_card_image_bytes, 1)
        assert recognizer.stats() == {'trained_association_count': 2, 'trained_card_count': 1}

    def test_match_text(self, make_recognizer):
        assert make_recognizer([]).match_text("XIX THE SUN").card.name == "The Sun"


class TestCreateRecognizer:
    """Test database wiring"""

    def test_from_database(self, seeded_session_factory, card_image_bytes):
        recognizer = create_recognizer(extractor_names=[], session_factory=seeded_session_factory)
        try:
            recognizer.train_card(card_image_bytes, 10)
            assert recognizer.recognize_sync(card_image_bytes).card.name == "The Hermit"
        finally:
            recognizer.close()

        again = create_recognizer(extractor_names=[], session_factory=seeded_session_factory)
        try:
            assert again.stats()['trained_association_count'] == 1
        finally:
            again.close()

    def test_unseeded_database(self, session_factory):
        with pytest.raises(CatalogEmptyError):
            create_recognizer(extractor_names=[], session_factory=session_factory)
