from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Sequence

from insurance_inbox.rules.core import MailItem, RuleMatch


class BaseRule(ABC):
    """
    Base class for spam checks and scoring signals.

    Design goals:
    - Provide consistent, reusable text matching helpers.
    - Keep rule logic readable and declarative.
    - Let the scorer sum `weight` over matching signals without knowing them.
    """

    # Human-/debug-friendly unique name, reported as the verdict reason.
    name: str = "base_rule"

    # Points added to the relevance score on match (0 for spam checks).
    weight: int = 0

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, weight={self.weight})"

    # --- Helpers (None-safe, case-insensitive) ---

    def norm(self, s: str | None) -> str:
        """Normalize text for matching (None-safe, lowercased)."""
        return (s or "").lower()

    def subject(self, mail: MailItem) -> str:
        return self.norm(mail.subject)

    def sender(self, mail: MailItem) -> str:
        return self.norm(mail.sender)

    def snippet(self, mail: MailItem) -> str:
        return self.norm(mail.snippet)

    def body(self, mail: MailItem) -> str:
        """Subject and snippet, lowercased."""
        return f"{self.subject(mail)} {self.snippet(mail)}"

    def everywhere(self, mail: MailItem) -> str:
        """Subject, snippet and sender, lowercased."""
        return f"{self.body(mail)} {self.sender(mail)}"

    def contains_any(self, text: str | None, needles: Sequence[str]) -> bool:
        """True if any needle is a substring of text (case-insensitive)."""
        t = self.norm(text)
        return any(n.lower() in t for n in needles)

    def contains_term(self, text: str | None, needles: Sequence[str], *, stem: bool = False) -> bool:
        """
        True if any needle occurs as a whole word or phrase.
        With stem=True only the left edge must be a word boundary, so "renew"
        matches "renewal" while "emi" still does not match "premium".
        """
        t = self.norm(text)
        tail = "" if stem else r"(?!\w)"
        return any(re.search(r"(?<!\w)" + re.escape(n.lower()) + tail, t) for n in needles)

    def regex(self, text: str | None, pattern: str) -> bool:
        """Regex search on text (case-insensitive)."""
        return bool(re.search(pattern, self.norm(text), flags=re.IGNORECASE))

    # --- Rule API ---

    @abstractmethod
    def match(self, mail: MailItem) -> bool:
        """Return True if the rule applies to this mail."""
        raise NotImplementedError

    def evaluate(self, mail: MailItem) -> RuleMatch:
        """Default implementation: wrap match() and award the fixed weight."""
        if self.match(mail):
            return RuleMatch(matched=True, reason=self.name, points=self.weight)
        return RuleMatch(matched=False)
