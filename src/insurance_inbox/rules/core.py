from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class MailItem:
    sender: str
    subject: str
    snippet: str


@dataclass(frozen=True)
class RuleMatch:
    """Result of evaluating one rule against a mail."""
    matched: bool
    reason: str = ""
    points: int = 0
