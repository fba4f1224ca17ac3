from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Category(str, Enum):
    RENEWAL = "renewal"
    CLAIM = "claim"
    PAYMENT = "payment"
    NEW_POLICY = "new_policy"
    LOAN_REPAYMENT = "loan_repayment"
    GENERAL = "general"
    SPAM = "spam"
    OTHER = "other"


class ClassifiedBy(str, Enum):
    DETERMINISTIC = "deterministic"
    AI_FALLBACK = "ai_fallback"


@dataclass(frozen=True)
class NormalizedEmail:
    provider_message_id: str
    sender: str
    subject: str
    snippet: str
    received_at: datetime


@dataclass(frozen=True)
class ClassificationVerdict:
    is_spam: bool
    is_insurance_related: bool
    category: Category
    confidence: float
    classified_by: ClassifiedBy
    raw_score: int
    # Signal names that contributed to the verdict, for explainability.
    reasons: Tuple[str, ...] = ()


@dataclass(frozen=True)
class StoredEmailRecord:
    user_id: str
    provider_message_id: str
    sender: str
    subject: str
    snippet: str
    received_at: datetime
    is_spam: bool
    is_insurance_related: bool
    category: Category
    confidence: float
    classified_by: ClassifiedBy
    raw_score: int
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_classification(
        cls,
        user_id: str,
        email: NormalizedEmail,
        verdict: ClassificationVerdict,
        fetched_at: Optional[datetime] = None,
    ) -> "StoredEmailRecord":
        return cls(
            user_id=user_id,
            provider_message_id=email.provider_message_id,
            sender=email.sender,
            subject=email.subject,
            snippet=email.snippet,
            received_at=email.received_at,
            is_spam=verdict.is_spam,
            is_insurance_related=verdict.is_insurance_related,
            category=verdict.category,
            confidence=verdict.confidence,
            classified_by=verdict.classified_by,
            raw_score=verdict.raw_score,
            fetched_at=fetched_at or datetime.now(timezone.utc),
        )

    def to_public_dict(self) -> Dict[str, Any]:
        """JSON-friendly view used by the sync summary and the HTTP surface."""
        return {
            "provider_message_id": self.provider_message_id,
            "sender": self.sender,
            "subject": self.subject,
            "snippet": self.snippet,
            "received_at": self.received_at.isoformat(),
            "fetched_at": self.fetched_at.isoformat(),
            "is_spam": self.is_spam,
            "is_insurance_related": self.is_insurance_related,
            "category": self.category.value,
            "confidence": self.confidence,
            "classified_by": self.classified_by.value,
            "raw_score": self.raw_score,
        }


@dataclass
class CredentialState:
    access_token: str
    refresh_token: Optional[str]
    expires_at: datetime

    def expires_within(self, margin: timedelta, now: datetime) -> bool:
        return self.expires_at - now < margin

    def refreshed(self, access_token: str, expires_at: datetime) -> "CredentialState":
        # Providers may omit a rotated refresh token; keep the existing one then.
        return replace(self, access_token=access_token, expires_at=expires_at)
