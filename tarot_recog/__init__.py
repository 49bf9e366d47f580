"""Tarot card recognition: learned associations, OCR adapters and text matching."""

__version__ = "0.1.0"
