"""
tarot_recog/learning/store.py: Learned association store
Exact and near-duplicate lookup of user-confirmed image -> card mappings
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Set, Union

import numpy as np

from tarot_recog.config import (
    BUCKET_SCAN_THRESHOLD,
    EXACT_MATCH_CONFIDENCE,
    NEAR_MATCH_CONFIDENCE_RANGE,
    NEAR_MATCH_FLOOR,
    SIGNATURE_HASH_SIZE,
)
from tarot_recog.errors import StorageError
from tarot_recog.learning.repository import AssociationRepository, LearnedAssociation
from tarot_recog.learning.signature import (
    batch_hamming_distance,
    compute_signature,
    signature_bits,
    signature_bucket,
)

logger = logging.getLogger(__name__)


@dataclass
class LookupResult:
    """Result of a learned association lookup."""

    card_id: Optional[int] = None
    """Associated card id, None when nothing matched."""

    confidence: float = 0.0
    """0.95 for exact matches, 0.7-0.9 for near matches, else 0."""

    exact: bool = False

    similarity: float = 0.0
    """Signature similarity of the best candidate (1 - hamming / bits)."""

    signature: Optional[str] = None
    """Signature of the queried image."""

    def __bool__(self) -> bool:
        return self.card_id is not None


BUCKET_KEYS = '0123456789abcdef'


class _Snapshot:
    """
    In-memory index split into one bucket per leading hex digit.

    Each bucket dict is never mutated once published; a write copies only the
    bucket its signature falls in and swaps that one reference. The outer dict
    always holds the same keys, so readers can iterate it without a lock.
    """

    def __init__(self, associations: List[LearnedAssociation]):
        self.buckets: Dict[str, Dict[str, LearnedAssociation]] = {key: {} for key in BUCKET_KEYS}
        for association in associations:
            self.buckets.setdefault(signature_bucket(association.signature), {})[association.signature] = association

    def get(self, signature: str) -> Optional[LearnedAssociation]:
        return self.buckets.get(signature_bucket(signature), {}).get(signature)

    def bucket(self, signature: str) -> Dict[str, LearnedAssociation]:
        return self.buckets.get(signature_bucket(signature), {})

    def put(self, association: LearnedAssociation):
        """Publish one association; caller holds the lock for its bucket."""
        key = signature_bucket(association.signature)
        bucket = dict(self.buckets.get(key, {}))
        bucket[association.signature] = association
        self.buckets[key] = bucket

    def associations(self) -> List[LearnedAssociation]:
        return [a for bucket in list(self.buckets.values()) for a in bucket.values()]

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in list(self.buckets.values()))


class LearnedAssociationStore:
    """
    Signature -> card cache with durable backing.

    Reads go against an in-memory index and never take a lock. A write locks
    only the bucket its signature falls in and copies only that bucket, so
    images in different buckets train at the same time.

    Example usage:
        store = LearnedAssociationStore(SqlAlchemyAssociationRepository())
        store.train(image_bytes, card_id=10)
        result = store.lookup(image_bytes)
        if result:
            print(f"Card {result.card_id} ({result.confidence:.2f})")
    """

    def __init__(
        self,
        repository: AssociationRepository,
        near_match_floor: float = NEAR_MATCH_FLOOR,
        hash_size: int = SIGNATURE_HASH_SIZE,
        bucket_scan_threshold: int = BUCKET_SCAN_THRESHOLD
    ):
        """
        Initialize the store. Nothing is loaded until the first lookup or train.

        Args:
            repository: Durable backend
            near_match_floor: Minimum similarity for a near match (clamped to >= 0.6)
            hash_size: Size of each perceptual hash in the signature
            bucket_scan_threshold: Above this many associations, near-match scans one bucket
        """
        self.repository = repository
        self.near_match_floor = max(0.6, near_match_floor)
        self.hash_size = hash_size
        self.bucket_scan_threshold = bucket_scan_threshold

        self._snapshot: Optional[_Snapshot] = None
        self._load_lock = threading.Lock()
        self._bucket_locks = {key: threading.Lock() for key in BUCKET_KEYS}
        self._spare_lock = threading.Lock()

    def _bucket_lock(self, signature: str) -> threading.Lock:
        return self._bucket_locks.get(signature_bucket(signature), self._spare_lock)

    def _load(self) -> _Snapshot:
        """Return the current snapshot, loading from the repository on first use."""
        snapshot = self._snapshot
        if snapshot is not None:
            return snapshot

        with self._load_lock:
            if self._snapshot is None:
                associations = self.repository.load_all()
                self._snapshot = _Snapshot(associations)
            return self._snapshot

    def reload(self):
        """Drop the in-memory index; next access reloads from storage."""
        with self._load_lock:
            self._snapshot = None

    def train(self, image: Union[bytes, str], card_id: int) -> LearnedAssociation:
        """
        Associate an image with a confirmed card.

        Args:
            image: Encoded image bytes, or a precomputed signature
            card_id: Confirmed card id (validated by the caller)

        Returns:
            The stored association. When the signature already maps to
            card_id nothing is written and the existing row is returned.

        Raises:
            InvalidImageError: If image bytes cannot be decoded
            StorageError: If the durable write fails
        """
        signature = image if isinstance(image, str) else compute_signature(image, self.hash_size)

        with self._bucket_lock(signature):
            snapshot = self._load()
            existing = snapshot.get(signature)
            if existing is not None and existing.card_id == card_id:
                logger.debug(f"Association {signature} -> {card_id} already stored")
                return existing

            association = self.repository.upsert(signature, card_id, datetime.utcnow())
            snapshot.put(association)

        if existing is not None:
            logger.info(f"Re-trained {signature}: card {existing.card_id} -> {card_id}")
        else:
            logger.info(f"Trained {signature} -> card {card_id}")
        return association

    def lookup(self, image: Union[bytes, str]) -> LookupResult:
        """
        Find the card associated with an image.

        Args:
            image: Encoded image bytes, or a precomputed signature

        Returns:
            LookupResult; falsy when nothing matched or storage is unavailable

        Raises:
            InvalidImageError: If image bytes cannot be decoded
        """
        signature = image if isinstance(image, str) else compute_signature(image, self.hash_size)

        try:
            snapshot = self._load()
        except StorageError as e:
            logger.warning(f"Learned associations unavailable, skipping lookup: {e}")
            return LookupResult(signature=signature)

        exact = snapshot.get(signature)
        if exact is not None:
            return LookupResult(
                card_id=exact.card_id,
                confidence=EXACT_MATCH_CONFIDENCE,
                exact=True,
                similarity=1.0,
                signature=signature
            )

        return self._near_match(snapshot, signature)

    def _near_match(self, snapshot: _Snapshot, signature: str) -> LookupResult:
        if len(snapshot) > self.bucket_scan_threshold:
            pool = list(snapshot.bucket(signature).values())
        else:
            pool = snapshot.associations()
        # Signatures computed with another hash size are not comparable
        pool = [a for a in pool if len(a.signature) == len(signature)]
        if not pool:
            return LookupResult(signature=signature)
        candidates = [a.signature for a in pool]

        distances = batch_hamming_distance(signature, candidates)
        best_idx = int(np.argmin(distances))
        similarity = 1.0 - float(distances[best_idx]) / signature_bits(signature)

        if similarity < self.near_match_floor:
            return LookupResult(similarity=similarity, signature=signature)

        low, high = NEAR_MATCH_CONFIDENCE_RANGE
        if self.near_match_floor >= 1.0:
            confidence = high
        else:
            confidence = low + (high - low) * (similarity - self.near_match_floor) / (1.0 - self.near_match_floor)

        match = pool[best_idx]
        logger.debug(f"Near match {match.signature} -> card {match.card_id} (similarity {similarity:.3f})")
        return LookupResult(
            card_id=match.card_id,
            confidence=min(high, confidence),
            exact=False,
            similarity=similarity,
            signature=signature
        )

    def count(self) -> int:
        """Number of learned associations (0 if storage is unavailable)."""
        try:
            return len(self._load())
        except StorageError as e:
            logger.warning(f"Learned associations unavailable: {e}")
            return 0

    def trained_card_ids(self) -> Set[int]:
        """Distinct card ids with at least one association."""
        try:
            return {a.card_id for a in self._load().associations()}
        except StorageError as e:
            logger.warning(f"Learned associations unavailable: {e}")
            return set()
