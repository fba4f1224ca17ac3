from __future__ import annotations

import re
from typing import List

from insurance_inbox.rules.core import MailItem, RuleMatch
from insurance_inbox.rules.BaseRule import BaseRule

# Two+ uppercase letters followed by 6+ digits, e.g. "POL123456". Case-sensitive.
POLICY_NUMBER_RE = re.compile(r"\b[A-Z]{2,}\d{6,}\b")

# Amount coupled with a billing period, e.g. "₹500/year", "$40 per month", "Rs. 1,200/month".
CURRENCY_DURATION_RE = re.compile(
    r"(?:[$₹€£]|\b(?:rs\.?|inr|usd)\s?)\s?\d[\d,]*(?:\.\d+)?\s*(?:/|per\s+)\s*"
    r"(?:year|yr|annum|month|mo|quarter|week|day)\b",
    flags=re.IGNORECASE,
)


class PolicyNumberSignal(BaseRule):
    name = "policy_number_detected"
    weight = 5

    def match(self, mail: MailItem) -> bool:
        raw = f"{mail.subject or ''} {mail.snippet or ''} {mail.sender or ''}"
        return bool(POLICY_NUMBER_RE.search(raw))


class InsuranceKeywordSignal(BaseRule):
    name = "insurance_keywords_in_subject"
    weight = 2

    KEYWORDS = (
        "policy",
        "premium",
        "renewal",
        "claim",
        "coverage",
        "sum assured",
        "endorsement",
        "policy number",
        "insured",
        "beneficiary",
    )

    def match(self, mail: MailItem) -> bool:
        return self.contains_term(self.subject(mail), self.KEYWORDS, stem=True)


class ClaimLifecycleSignal(BaseRule):
    name = "claim_lifecycle_terms"
    weight = 3

    TERMS = (
        "claim",
        "settlement",
        "approval",
        "denied",
        "approved",
        "processing",
        "status",
    )

    def match(self, mail: MailItem) -> bool:
        return self.contains_term(self.everywhere(mail), self.TERMS, stem=True)


class CurrencyDurationSignal(BaseRule):
    name = "currency_duration_coupling"
    weight = 2

    def match(self, mail: MailItem) -> bool:
        return bool(CURRENCY_DURATION_RE.search(self.everywhere(mail)))


class RegulatorySignal(BaseRule):
    name = "regulatory_phrases"
    weight = 1

    PHRASES = (
        "irda",
        "irdai",
        "terms and conditions",
        "policy document",
        "statutory",
        "compliance",
        "regulation",
    )

    def match(self, mail: MailItem) -> bool:
        return self.contains_term(self.everywhere(mail), self.PHRASES, stem=True)


class InsuranceProviderSignal(BaseRule):
    name = "insurance_provider_match"
    weight = 2

    # Whole words: "lic" must not fire inside "policy" or "public".
    PROVIDERS = (
        "lic",
        "hdfc life",
        "icici lombard",
        "bajaj allianz",
        "tata aig",
        "max life",
    )

    def match(self, mail: MailItem) -> bool:
        return self.contains_term(self.everywhere(mail), self.PROVIDERS)


class LoanRepaymentSignal(BaseRule):
    """
    Loan repayment mail (not loan offers). A strong phrase in the subject is
    worth 5; otherwise a loan term next to a statement/due/paid word is worth 3.
    """

    name = "loan_repayment"
    weight = 5
    weak_weight = 3

    STRONG_PHRASES = (
        "loan statement",
        "repayment schedule",
        "emi alert",
        "loan account",
    )
    WEAK_TERMS = (
        "loan",
        "loans",
        "emi",
        "emis",
        "principal",
        "interest",
        "installment",
        "installments",
        "borrower",
    )
    CONTEXT_WORDS = ("statement", "due", "paid")

    def strong(self, mail: MailItem) -> bool:
        return self.contains_term(self.subject(mail), self.STRONG_PHRASES)

    def weak(self, mail: MailItem) -> bool:
        hay = self.everywhere(mail)
        return self.contains_term(hay, self.WEAK_TERMS) and self.contains_term(hay, self.CONTEXT_WORDS, stem=True)

    def match(self, mail: MailItem) -> bool:
        return self.strong(mail) or self.weak(mail)

    def evaluate(self, mail: MailItem) -> RuleMatch:
        if self.strong(mail):
            return RuleMatch(matched=True, reason="strong_loan_signal", points=self.weight)
        if self.weak(mail):
            return RuleMatch(matched=True, reason="loan_context_detected", points=self.weak_weight)
        return RuleMatch(matched=False)


SIGNALS: List[BaseRule] = [
    PolicyNumberSignal(),
    InsuranceKeywordSignal(),
    ClaimLifecycleSignal(),
    CurrencyDurationSignal(),
    RegulatorySignal(),
    InsuranceProviderSignal(),
    LoanRepaymentSignal(),
]
