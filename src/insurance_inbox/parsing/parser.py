from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from insurance_inbox.models import NormalizedEmail

NO_SUBJECT = "(no subject)"
UNKNOWN_SENDER = "unknown"


def get_header(headers: Optional[Iterable[Dict[str, Any]]], name: str) -> Optional[str]:
    """Return the first header value whose name matches case-insensitively."""
    wanted = name.lower()
    for header in headers or []:
        if str(header.get("name") or "").lower() == wanted:
            return header.get("value")
    return None


def normalize_message(raw: Dict[str, Any], *, now: Optional[datetime] = None) -> NormalizedEmail:
    """
    Flatten a Gmail message resource into a NormalizedEmail.
    Never raises: absent fields fall back to placeholders.
    """
    headers = (raw.get("payload") or {}).get("headers") or []

    sender = (get_header(headers, "from") or "").strip() or UNKNOWN_SENDER
    subject = (get_header(headers, "subject") or "").strip() or NO_SUBJECT

    return NormalizedEmail(
        provider_message_id=str(raw.get("id") or ""),
        sender=sender,
        subject=subject,
        snippet=raw.get("snippet") or "",
        received_at=_received_at(raw.get("internalDate"), now),
    )


def _received_at(internal_date: Any, now: Optional[datetime]) -> datetime:
    # internalDate is the provider's arrival time in ms; the Date header is
    # sender-controlled and is deliberately ignored.
    try:
        return datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return now or datetime.now(timezone.utc)
