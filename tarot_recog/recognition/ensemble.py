"""
Combining sub-threshold evidence.

When no single attempt is confident enough, agreement between independent
sources is the next best signal; failing that, the most trusted source wins
at a capped, low-trust confidence.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from tarot_recog.catalog.models import Card
from tarot_recog.config import ENSEMBLE_ACCEPT_THRESHOLD, FALLBACK_CONFIDENCE_CAP
from tarot_recog.recognition.results import RecognitionAttempt

logger = logging.getLogger(__name__)

MIN_ENSEMBLE_VOTES = 2


@dataclass
class CardVote:
    """Aggregated votes for one card."""
    card: Card
    votes: int
    agreement: float
    score: float


def tally_votes(attempts: List[RecognitionAttempt]) -> List[CardVote]:
    """
    Group card-naming attempts by card and score each group

    score = (votes / attempts naming any card) * agreement, where agreement is
    the noisy-OR of the group's confidences, 1 - prod(1 - c). For a single
    vote agreement equals that vote's confidence; several weak votes for the
    same card reinforce each other instead of averaging out.

    Returns:
        Votes sorted by score descending (ties keep first-seen order)
    """
    naming = [a for a in attempts if a.card is not None]
    if not naming:
        return []

    groups: Dict[int, List[RecognitionAttempt]] = {}
    for attempt in naming:
        groups.setdefault(attempt.card.id, []).append(attempt)

    total = len(naming)
    votes = []
    for group in groups.values():
        miss = 1.0
        for attempt in group:
            miss *= 1.0 - attempt.confidence
        agreement = 1.0 - miss
        votes.append(CardVote(
            card=group[0].card,
            votes=len(group),
            agreement=agreement,
            score=(len(group) / total) * agreement
        ))

    votes.sort(key=lambda v: v.score, reverse=True)
    return votes


def ensemble_vote(
    attempts: List[RecognitionAttempt],
    threshold: float = ENSEMBLE_ACCEPT_THRESHOLD
) -> Optional[CardVote]:
    """
    Pick the best-supported card if its score reaches the threshold

    The winner needs at least MIN_ENSEMBLE_VOTES agreeing attempts; a lone
    guess is left to the fallback, which weights and caps it.

    Args:
        attempts: Sub-threshold attempts (those without a card are ignored)
        threshold: Minimum ensemble score

    Returns:
        Winning CardVote, or None
    """
    votes = tally_votes(attempts)
    if not votes:
        return None

    best = votes[0]
    logger.debug(
        f"Ensemble: {best.card.name} votes={best.votes} agreement={best.agreement:.2f} "
        f"score={best.score:.2f}"
    )
    if best.votes >= MIN_ENSEMBLE_VOTES and best.score >= threshold:
        return best
    return None


def fallback_pick(
    attempts: List[RecognitionAttempt],
    cap: float = FALLBACK_CONFIDENCE_CAP
) -> Optional[CardVote]:
    """
    Most trusted single attempt: confidence x reliability weight, capped

    Returns:
        CardVote with score = capped weighted confidence, or None if no attempt named a card
    """
    best: Optional[RecognitionAttempt] = None
    best_weighted = -1.0
    for attempt in attempts:
        if attempt.card is None:
            continue
        weighted = attempt.confidence * attempt.tier.weight
        if weighted > best_weighted:
            best, best_weighted = attempt, weighted

    if best is None:
        return None

    return CardVote(
        card=best.card,
        votes=1,
        agreement=best.confidence,
        score=min(cap, best_weighted)
    )
