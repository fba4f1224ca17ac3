from __future__ import annotations

import logging

from insurance_inbox.llm.fallback import FallbackValidator
from insurance_inbox.models import Category, ClassificationVerdict, ClassifiedBy, NormalizedEmail
from insurance_inbox.rules.classification import (
    SPAM_CONFIDENCE,
    Band,
    accept_confidence,
    borderline_rejection_confidence,
    reject_confidence,
    score_email,
)
from insurance_inbox.rules.core import MailItem
from insurance_inbox.rules.spam import spam_reasons

logger = logging.getLogger(__name__)

# raw_score of a spam verdict: the scorer never ran.
SPAM_SCORE = -1


class Classifier:
    """
    Spam pre-check -> deterministic score -> fallback validator.

    Each stage exits early. The validator is reachable only through the
    borderline band, so most verdicts stay reproducible and AI spend is
    bounded by the borderline share of traffic.
    """

    def __init__(self, validator: FallbackValidator):
        self._validator = validator

    def classify(self, email: NormalizedEmail) -> ClassificationVerdict:
        return self.classify_parts(sender=email.sender, subject=email.subject, snippet=email.snippet)

    def classify_parts(self, *, sender: str, subject: str, snippet: str) -> ClassificationVerdict:
        # Stage 1: spam (and excluded finance) pre-check.
        spam = spam_reasons(MailItem(sender=sender or "", subject=subject or "", snippet=snippet or ""))
        if spam:
            return ClassificationVerdict(
                is_spam=True,
                is_insurance_related=False,
                category=Category.SPAM,
                confidence=SPAM_CONFIDENCE,
                classified_by=ClassifiedBy.DETERMINISTIC,
                raw_score=SPAM_SCORE,
                reasons=tuple(spam),
            )

        # Stage 2: deterministic score.
        result = score_email(sender=sender, subject=subject, snippet=snippet)
        reasons = tuple(sorted(result.reasons)) or ("no_insurance_signals",)
        logger.debug("[classify] score=%d band=%s reasons=%s", result.score, result.band.value, ",".join(reasons))

        if result.band is Band.ACCEPT:
            return ClassificationVerdict(
                is_spam=False,
                is_insurance_related=True,
                category=result.category_guess,
                confidence=accept_confidence(result.score),
                classified_by=ClassifiedBy.DETERMINISTIC,
                raw_score=result.score,
                reasons=reasons,
            )
        if result.band is Band.REJECT:
            return ClassificationVerdict(
                is_spam=False,
                is_insurance_related=False,
                category=Category.OTHER,
                confidence=reject_confidence(result.score),
                classified_by=ClassifiedBy.DETERMINISTIC,
                raw_score=result.score,
                reasons=reasons,
            )

        # Stage 3: borderline only.
        fallback = self._validator.validate(sender=sender, subject=subject, snippet=snippet)
        if self._validator.accepts(fallback):
            logger.info("[classify] Fallback accepted borderline score %d (confidence=%.2f)",
                        result.score, fallback.confidence)
            return ClassificationVerdict(
                is_spam=False,
                is_insurance_related=True,
                category=result.category_guess,
                confidence=fallback.confidence,
                classified_by=ClassifiedBy.AI_FALLBACK,
                raw_score=result.score,
                reasons=reasons + ("fallback_accepted",),
            )

        logger.info("[classify] Fallback rejected borderline score %d (is_insurance=%s, confidence=%.2f)",
                    result.score, fallback.is_insurance, fallback.confidence)
        return ClassificationVerdict(
            is_spam=False,
            is_insurance_related=False,
            category=Category.OTHER,
            confidence=borderline_rejection_confidence(result.score),
            classified_by=ClassifiedBy.AI_FALLBACK,
            raw_score=result.score,
            reasons=reasons + ("fallback_rejected",),
        )
