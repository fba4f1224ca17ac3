from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from insurance_inbox.errors import ProviderError
from insurance_inbox.gmail.client import MessagePage

FIXED_NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def raw_message(
    message_id: str,
    *,
    sender: str = "friend@example.com",
    subject: str = "Lunch on Friday?",
    snippet: str = "Let's meet at noon.",
    internal_date_ms: Optional[int] = 1_760_000_000_000,
) -> Dict[str, Any]:
    msg: Dict[str, Any] = {
        "id": message_id,
        "snippet": snippet,
        "payload": {
            "headers": [
                {"name": "From", "value": sender},
                {"name": "Subject", "value": subject},
                {"name": "Date", "value": "Mon, 1 Jan 2001 00:00:00 +0000"},
            ]
        },
    }
    if internal_date_ms is not None:
        msg["internalDate"] = str(internal_date_ms)
    return msg


class FakeMailbox:
    """In-memory MailProvider: pages of raw messages, continuation token = page index."""

    def __init__(
        self,
        pages: Sequence[Sequence[Dict[str, Any]]],
        *,
        fail_on_page: Optional[int] = None,
        failing_ids: Sequence[str] = (),
    ):
        self.pages = [list(p) for p in pages]
        self.messages = {m["id"]: m for page in self.pages for m in page}
        self.fail_on_page = fail_on_page
        self.failing_ids = set(failing_ids)
        self.list_calls: List[tuple] = []
        self.get_calls: List[str] = []

    def list_messages(self, query: str, page_size: int, page_token: Optional[str] = None) -> MessagePage:
        self.list_calls.append((query, page_size, page_token))
        index = int(page_token or 0)
        if index == self.fail_on_page:
            raise ProviderError(f"list failed on page {index}")
        if index >= len(self.pages):
            return MessagePage()
        next_token = str(index + 1) if index + 1 < len(self.pages) else None
        return MessagePage(message_ids=[m["id"] for m in self.pages[index]], next_page_token=next_token)

    def get_message(self, message_id: str) -> Dict[str, Any]:
        self.get_calls.append(message_id)
        if message_id in self.failing_ids:
            raise ProviderError(f"get failed for {message_id}")
        return self.messages[message_id]


class FakeModel:
    """LanguageModel stand-in returning a canned reply and recording prompts."""

    def __init__(self, reply: str = "", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.prompts: List[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


INSURANCE_MAIL = dict(
    sender="LIC India <alerts@licindia.in>",
    subject="Your LIC Policy POL123456 Premium Due ₹5000/year",
    snippet="Your premium is due on 15 Nov.",
)
SPAM_MAIL = dict(
    sender="deals@travel.example",
    subject="50% OFF!!! WIN a FREE cruise!!!",
    snippet="Book today.",
)
PLAIN_MAIL = dict(
    sender="friend@example.com",
    subject="Lunch on Friday?",
    snippet="Let's meet at noon.",
)
# Claim-lifecycle term (+3) plus a regulatory phrase (+1).
BORDERLINE_MAIL = dict(
    sender="helpdesk@acme-services.com",
    subject="Status update on your request",
    snippet="Please review the terms and conditions attached.",
)
