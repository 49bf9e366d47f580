"""
Durable storage for learned associations.

The store keeps its index in memory; repositories only persist rows and
hand them back on load. Every backend failure surfaces as StorageError.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from tarot_recog.errors import StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LearnedAssociation:
    """Confirmed mapping of an image signature to a card."""
    signature: str
    card_id: int
    created_at: datetime

    def to_dict(self) -> Dict:
        return {
            'signature': self.signature,
            'card_id': self.card_id,
            'created_at': self.created_at.isoformat(),
        }


class AssociationRepository(ABC):
    """Persistence boundary for learned associations."""

    @abstractmethod
    def load_all(self) -> List[LearnedAssociation]:
        """Return every stored association."""
        pass

    @abstractmethod
    def get(self, signature: str) -> Optional[LearnedAssociation]:
        pass

    @abstractmethod
    def upsert(self, signature: str, card_id: int, created_at: datetime) -> LearnedAssociation:
        """
        Create or overwrite the association for a signature.

        Raises:
            StorageError: If the write did not reach durable storage
        """
        pass

    @abstractmethod
    def count(self) -> int:
        pass


class InMemoryAssociationRepository(AssociationRepository):
    """Process-local repository (tests, ephemeral deployments)."""

    def __init__(self, associations: Optional[List[LearnedAssociation]] = None):
        self._rows: Dict[str, LearnedAssociation] = {a.signature: a for a in associations or []}
        self._lock = threading.Lock()

    def load_all(self) -> List[LearnedAssociation]:
        with self._lock:
            return list(self._rows.values())

    def get(self, signature: str) -> Optional[LearnedAssociation]:
        return self._rows.get(signature)

    def upsert(self, signature: str, card_id: int, created_at: datetime) -> LearnedAssociation:
        association = LearnedAssociation(signature, card_id, created_at)
        with self._lock:
            self._rows[signature] = association
        return association

    def count(self) -> int:
        return len(self._rows)


class SqlAlchemyAssociationRepository(AssociationRepository):
    """Repository backed by the learned_associations table."""

    def __init__(self, session_factory: Optional[Callable] = None):
        if session_factory is None:
            from tarot_recog.database.schema import SessionLocal
            session_factory = SessionLocal
        self._session_factory = session_factory

    @staticmethod
    def _to_association(row) -> LearnedAssociation:
        return LearnedAssociation(row.signature, row.card_id, row.created_at)

    def load_all(self) -> List[LearnedAssociation]:
        from tarot_recog.database.db import get_all_trained_images

        db = self._session_factory()
        try:
            rows = get_all_trained_images(db)
            associations = [self._to_association(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Could not load learned associations: {e}") from e
        finally:
            db.close()

        logger.info(f"Loaded {len(associations)} learned associations")
        return associations

    def get(self, signature: str) -> Optional[LearnedAssociation]:
        from tarot_recog.database.db import get_trained_image

        db = self._session_factory()
        try:
            row = get_trained_image(db, signature)
            return self._to_association(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"Could not read learned association: {e}") from e
        finally:
            db.close()

    def upsert(self, signature: str, card_id: int, created_at: datetime) -> LearnedAssociation:
        from tarot_recog.database.db import transaction, upsert_trained_image

        db = self._session_factory()
        try:
            with transaction(db):
                row = upsert_trained_image(db, signature, card_id, created_at, commit=False)
                association = self._to_association(row)
        except SQLAlchemyError as e:
            logger.error(f"Failed to store association {signature} -> {card_id}: {e}")
            raise StorageError(f"Could not store learned association: {e}") from e
        finally:
            db.close()
        return association

    def count(self) -> int:
        from tarot_recog.database.db import count_trained_images

        db = self._session_factory()
        try:
            return count_trained_images(db)
        except SQLAlchemyError as e:
            raise StorageError(f"Could not count learned associations: {e}") from e
        finally:
            db.close()
