"""
tarot_recog/learning/signature.py: Perceptual image signatures
Computes pHash/dHash fingerprints of decoded pixels for the learned association store
"""

import io
import logging

import imagehash
import numpy as np
from PIL import Image, ImageOps
from typing import List, Union

from tarot_recog.config import SIGNATURE_HASH_SIZE
from tarot_recog.errors import InvalidImageError

logger = logging.getLogger(__name__)


def decode_image(image_bytes: bytes) -> Image.Image:
    """
    Decode raw image bytes into an RGB PIL image

    EXIF orientation is applied so a phone photo and its rotated re-upload
    decode to the same pixels.

    Args:
        image_bytes: Encoded image (JPEG, PNG, WebP, ...)

    Returns:
        RGB PIL Image

    Raises:
        InvalidImageError: If the bytes are empty or not a decodable image
    """
    if not image_bytes:
        raise InvalidImageError("Empty image data")

    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
        img = ImageOps.exif_transpose(img)
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        raise InvalidImageError(f"Could not decode image: {e}") from e

    # Convert to RGB if needed
    if img.mode != 'RGB':
        img = img.convert('RGB')

    return img


def compute_phash(image: Image.Image, hash_size: int = SIGNATURE_HASH_SIZE) -> str:
    """Perceptual hash (DCT based) as hex string"""
    return str(imagehash.phash(image, hash_size=hash_size))


def compute_dhash(image: Image.Image, hash_size: int = SIGNATURE_HASH_SIZE) -> str:
    """Difference hash (gradient based) as hex string"""
    return str(imagehash.dhash(image, hash_size=hash_size))


def compute_signature(
    image: Union[bytes, Image.Image],
    hash_size: int = SIGNATURE_HASH_SIZE
) -> str:
    """
    Compute the image signature: pHash followed by dHash

    With hash_size=8 this is a 128-bit value (32 hex characters). Two
    re-encodings of the same picture produce the same or a very close
    signature; the raw byte stream is never hashed.

    Args:
        image: Encoded image bytes or an already decoded PIL Image
        hash_size: Size of each hash (8 = 64-bit hash)

    Returns:
        Signature as hex string

    Raises:
        InvalidImageError: If bytes cannot be decoded
    """
    if isinstance(image, (bytes, bytearray)):
        img = decode_image(bytes(image))
    else:
        img = image if image.mode == 'RGB' else image.convert('RGB')

    return compute_phash(img, hash_size) + compute_dhash(img, hash_size)


def signature_bits(signature: str) -> int:
    """Number of bits in a signature"""
    return len(signature) * 4


def hamming_distance(sig1: str, sig2: str) -> int:
    """
    Compute Hamming distance between two signatures

    Args:
        sig1: First signature as hex string
        sig2: Second signature as hex string

    Returns:
        Hamming distance (number of differing bits)

    Raises:
        ValueError: If the signatures have different lengths
    """
    if len(sig1) != len(sig2):
        raise ValueError(f"Signature length mismatch: {len(sig1)} != {len(sig2)}")
    return bin(int(sig1, 16) ^ int(sig2, 16)).count('1')


def signature_similarity(sig1: str, sig2: str) -> float:
    """Similarity in [0, 1]: 1 - hamming / bits"""
    bits = signature_bits(sig1)
    if bits == 0:
        return 0.0
    return 1.0 - hamming_distance(sig1, sig2) / bits


def batch_hamming_distance(query_sig: str, candidate_sigs: List[str]) -> np.ndarray:
    """
    Compute Hamming distances between a query signature and many candidates
    Uses vectorized operations over the raw signature bytes

    Args:
        query_sig: Query signature as hex string
        candidate_sigs: Candidate signatures, all the same length as the query

    Returns:
        Numpy array of Hamming distances
    """
    if not candidate_sigs:
        return np.array([], dtype=np.int32)

    query = np.frombuffer(bytes.fromhex(query_sig), dtype=np.uint8)
    try:
        candidates = np.frombuffer(
            b''.join(bytes.fromhex(s) for s in candidate_sigs), dtype=np.uint8
        ).reshape(len(candidate_sigs), query.size)
    except ValueError as e:
        raise ValueError(f"Candidate signatures must match query length {len(query_sig)}") from e

    # XOR gives bits that differ, unpackbits + sum counts them
    xor_result = np.bitwise_xor(candidates, query)
    return np.unpackbits(xor_result, axis=1).sum(axis=1).astype(np.int32)


def signature_bucket(signature: str) -> str:
    """Bucket key for large-store scans (first hex digit of the pHash)"""
    return signature[:1].lower()
