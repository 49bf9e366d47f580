"""
Exception types raised by the recognition core.

Adapter-level failures (network, quota, timeout, empty OCR output) are not
exceptions: they are reported as ExtractionError values on an
ExtractionResult so that one failing adapter never fails a request.
"""


class TarotRecognitionError(Exception):
    """Base class for recognition core errors."""

    pass


class CatalogEmptyError(TarotRecognitionError):
    """The card catalog has no cards; recognition cannot produce a meaningful guess."""

    pass


class StorageError(TarotRecognitionError):
    """Durable read/write of learned associations failed."""

    pass


class InvalidImageError(TarotRecognitionError):
    """Image bytes could not be decoded into pixels."""

    pass


class UnknownCardError(TarotRecognitionError):
    """A card id does not exist in the catalog."""

    def __init__(self, card_id: int):
        super().__init__(f"Card not found: {card_id}")
        self.card_id = card_id
