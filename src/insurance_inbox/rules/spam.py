from __future__ import annotations

from email.utils import parseaddr
from typing import List

from insurance_inbox.rules.core import MailItem
from insurance_inbox.rules.BaseRule import BaseRule


class BulkSenderRule(BaseRule):
    name = "bulk_sender"

    TOKENS = ("noreply", "no-reply", "promo", "marketing")

    def match(self, mail: MailItem) -> bool:
        return self.contains_any(self.sender(mail), self.TOKENS)


class PromotionalSubjectRule(BaseRule):
    name = "promotional_subject"

    # Whole words only: "win" must not fire on "window", "sale" not on "wholesale".
    VOCABULARY = (
        "free",
        "win",
        "offer",
        "limited time",
        "discount",
        "sale",
        "cashback",
    )

    def match(self, mail: MailItem) -> bool:
        return self.contains_term(self.subject(mail), self.VOCABULARY)


class ExcludedFinanceRule(BaseRule):
    """Stock-market / trading mail. Not malicious, but never insurance."""

    name = "excluded_financial"

    VOCABULARY = (
        "nse",
        "bse",
        "nsdl",
        "cdsl",
        "demat",
        "contract note",
        "trade confirmation",
        "buy order",
        "sell order",
        "equity",
        "derivative",
        "f&o",
        "mutual fund statement",
        "folio",
        "nav",
    )

    def match(self, mail: MailItem) -> bool:
        return self.contains_term(self.body(mail), self.VOCABULARY)


class ShoutingRule(BaseRule):
    name = "shouting"

    MAX_EXCLAMATIONS = 3
    MAX_CAPS_WORDS = 3
    CAPS_WORD_MIN_LEN = 5

    def match(self, mail: MailItem) -> bool:
        # Case matters here, so work on the raw text.
        text = " ".join(part for part in (mail.subject, mail.snippet) if part)
        if text.count("!") >= self.MAX_EXCLAMATIONS:
            return True
        caps_words = [w for w in text.split() if len(w) >= self.CAPS_WORD_MIN_LEN and w.isupper()]
        return len(caps_words) >= self.MAX_CAPS_WORDS


class PromoDomainRule(BaseRule):
    name = "promo_domain"

    def match(self, mail: MailItem) -> bool:
        address = parseaddr(mail.sender or "")[1] or (mail.sender or "")
        domain = address.rpartition("@")[2] if "@" in address else ""
        return self.regex(domain, r"(info|promo|offers|marketing)\.")


SPAM_RULES: List[BaseRule] = [
    BulkSenderRule(),
    PromotionalSubjectRule(),
    ExcludedFinanceRule(),
    ShoutingRule(),
    PromoDomainRule(),
]


def spam_reasons(mail: MailItem) -> List[str]:
    """Names of every spam check that fires; empty when the mail is clean."""
    return [rule.name for rule in SPAM_RULES if rule.match(mail)]


def is_spam_email(mail: MailItem) -> bool:
    return any(rule.match(mail) for rule in SPAM_RULES)
