from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet

from insurance_inbox.models import Category
from insurance_inbox.rules.categories import guess_category
from insurance_inbox.rules.core import MailItem
from insurance_inbox.rules.signals import SIGNALS

# Decision bands on the summed score.
ACCEPT_MIN_SCORE = 6
REJECT_MAX_SCORE = 2

SPAM_CONFIDENCE = 0.95


class Band(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    BORDERLINE = "borderline"


@dataclass(frozen=True)
class ScoreResult:
    score: int
    category_guess: Category
    reasons: FrozenSet[str]

    @property
    def band(self) -> Band:
        return band_for(self.score)


def band_for(score: int) -> Band:
    if score >= ACCEPT_MIN_SCORE:
        return Band.ACCEPT
    if score <= REJECT_MAX_SCORE:
        return Band.REJECT
    return Band.BORDERLINE


def accept_confidence(score: int) -> float:
    return min(0.8 + 0.05 * (score - ACCEPT_MIN_SCORE), 0.95)


def reject_confidence(score: int) -> float:
    return max(0.2 - 0.05 * score, 0.0)


def borderline_rejection_confidence(score: int) -> float:
    return min(score * 0.1, 0.3)


def score_email(*, sender: str, subject: str, snippet: str) -> ScoreResult:
    """
    Deterministic relevance score: sum of the weights of every matching signal.
    Pure function, no network. Spam is checked separately before this runs.
    """
    mail = MailItem(sender=sender or "", subject=subject or "", snippet=snippet or "")

    score = 0
    reasons = set()
    for signal in SIGNALS:
        result = signal.evaluate(mail)
        if result.matched:
            score += result.points
            reasons.add(result.reason)

    return ScoreResult(
        score=score,
        category_guess=guess_category(f"{mail.subject} {mail.snippet}"),
        reasons=frozenset(reasons),
    )
