"""
Tests for perceptual image signatures
"""

import numpy as np
import pytest
from PIL import Image

from tarot_recog.errors import InvalidImageError
from tarot_recog.learning.signature import (
    batch_hamming_distance,
    compute_signature,
    decode_image,
    hamming_distance,
    signature_bits,
    signature_bucket,
    signature_similarity,
)
from tarot_recog.tests.helpers import encode_image, pattern_image


class TestDecodeImage:
    """Test image decoding"""

    def test_rgb_output(self, card_image):
        img = decode_image(encode_image(card_image.convert('L'), 'PNG'))
        assert img.mode == 'RGB'
        assert img.size == card_image.size

    @pytest.mark.parametrize("data", [b"", b"not an image", b"\x89PNG\r\n\x1a\n\x00\x00"])
    def test_invalid_bytes(self, data):
        with pytest.raises(InvalidImageError):
            decode_image(data)


class TestComputeSignature:
    """Test signature computation"""

    def test_format(self, card_image_bytes):
        sig = compute_signature(card_image_bytes)
        assert len(sig) == 32
        assert signature_bits(sig) == 128
        int(sig, 16)

    def test_deterministic(self, card_image_bytes):
        assert compute_signature(card_image_bytes) == compute_signature(card_image_bytes)

    def test_bytes_and_image_agree(self, card_image, card_image_bytes):
        assert compute_signature(card_image) == compute_signature(card_image_bytes)

    def test_reencoding_stays_close(self, card_image, card_image_bytes):
        jpeg = encode_image(card_image, 'JPEG', quality=90)
        assert jpeg != card_image_bytes
        similarity = signature_similarity(compute_signature(jpeg), compute_signature(card_image_bytes))
        assert similarity >= 0.9

    def test_different_images_differ(self, card_image_bytes, other_card_image_bytes):
        similarity = signature_similarity(
            compute_signature(card_image_bytes),
            compute_signature(other_card_image_bytes)
        )
        assert similarity < 0.85

    def test_hash_size(self, card_image):
        assert len(compute_signature(card_image, hash_size=16)) == 128

    def test_rgba_image(self):
        img = pattern_image(seed=3).convert('RGBA')
        assert len(compute_signature(img)) == 32

    def test_invalid_bytes(self):
        with pytest.raises(InvalidImageError):
            compute_signature(b"garbage")


class TestHamming:
    """Test Hamming distance helpers"""

    def test_distance(self):
        assert hamming_distance("00", "00") == 0
        assert hamming_distance("00", "ff") == 8
        assert hamming_distance("0f", "1f") == 1

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            hamming_distance("00", "000")

    def test_similarity(self):
        assert signature_similarity("0" * 32, "0" * 32) == 1.0
        assert signature_similarity("0" * 32, "f" + "0" * 31) == pytest.approx(1 - 4 / 128)

    def test_batch_matches_scalar(self):
        query = "a5" * 16
        candidates = ["a5" * 16, "5a" * 16, "a4" + "a5" * 15]
        distances = batch_hamming_distance(query, candidates)
        assert isinstance(distances, np.ndarray)
        assert distances.tolist() == [hamming_distance(query, c) for c in candidates]

    def test_batch_empty(self):
        assert len(batch_hamming_distance("00", [])) == 0

    def test_batch_length_mismatch(self):
        with pytest.raises(ValueError):
            batch_hamming_distance("0000", ["00"])

    def test_bucket(self):
        assert signature_bucket("A1b2") == "a"
