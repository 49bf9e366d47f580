"""
Recognition package.

This package provides:
- CardNameMatcher: extracted text -> catalog card
- ensemble_vote / fallback_pick: combining sub-threshold evidence
- CardRecognizer: the recognition cascade with provenance
"""

from tarot_recog.recognition.name_matcher import CardNameMatcher, MatchMethod, NameMatch
from tarot_recog.recognition.results import (
    RecognitionAttempt,
    RecognitionMethod,
    RecognitionResult,
    RecognitionState,
)
from tarot_recog.recognition.ensemble import CardVote, ensemble_vote, fallback_pick, tally_votes
from tarot_recog.recognition.recognizer import CardRecognizer, create_recognizer

__all__ = [
    'CardNameMatcher',
    'MatchMethod',
    'NameMatch',
    'RecognitionAttempt',
    'RecognitionMethod',
    'RecognitionResult',
    'RecognitionState',
    'CardVote',
    'ensemble_vote',
    'fallback_pick',
    'tally_votes',
    'CardRecognizer',
    'create_recognizer',
]
