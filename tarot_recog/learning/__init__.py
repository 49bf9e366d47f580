"""
Learned association package.

This package provides:
- Perceptual image signatures (pHash + dHash of decoded pixels)
- AssociationRepository backends (SQLAlchemy, in-memory)
- LearnedAssociationStore: exact and near-duplicate lookup with training
"""

from tarot_recog.learning.repository import (
    AssociationRepository,
    InMemoryAssociationRepository,
    LearnedAssociation,
    SqlAlchemyAssociationRepository,
)
from tarot_recog.learning.signature import compute_signature, decode_image, signature_similarity
from tarot_recog.learning.store import LearnedAssociationStore, LookupResult

__all__ = [
    'AssociationRepository',
    'InMemoryAssociationRepository',
    'LearnedAssociation',
    'SqlAlchemyAssociationRepository',
    'compute_signature',
    'decode_image',
    'signature_similarity',
    'LearnedAssociationStore',
    'LookupResult',
]
