from __future__ import annotations

import re
from typing import Tuple

from insurance_inbox.models import Category

# Ordered: the first category with a matching keyword wins.
CATEGORY_RULES: Tuple[Tuple[Category, Tuple[str, ...]], ...] = (
    (Category.RENEWAL, ("renew", "expiry", "due", "reminder", "upcoming")),
    (Category.CLAIM, ("claim", "settlement", "approval", "denied", "processing")),
    (Category.NEW_POLICY, ("issued", "welcome", "policy document", "congratulations")),
    (Category.PAYMENT, ("premium received", "receipt", "payment confirmed", "transaction")),
    (
        Category.LOAN_REPAYMENT,
        ("emi", "loan statement", "repayment", "outstanding", "principal", "tenure", "installment"),
    ),
)


def guess_category(text: str) -> Category:
    """First-match-wins lookup over CATEGORY_RULES; GENERAL when nothing matches."""
    lowered = (text or "").lower()
    for category, keywords in CATEGORY_RULES:
        # Left word boundary only, so "renew" still matches "renewal".
        if any(re.search(r"(?<!\w)" + re.escape(kw), lowered) for kw in keywords):
            return category
    return Category.GENERAL
