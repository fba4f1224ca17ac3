from __future__ import annotations
import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from insurance_inbox.errors import SyncConfigurationError
from insurance_inbox.models import CredentialState

_SAFE_USER_ID = re.compile(r"[^A-Za-z0-9_.@-]")


class CredentialStore:
    """Per-user provider tokens, one JSON file per user under `root`."""

    def __init__(self, root: Path):
        self._root = root

    def path_for(self, user_id: str) -> Path:
        # User ids end up in file names; keep them inside root.
        safe = _SAFE_USER_ID.sub("_", user_id).lstrip(".") or "_"
        return self._root / f"{safe}.json"

    def load(self, user_id: str) -> Optional[CredentialState]:
        path = self.path_for(user_id)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except ValueError as exc:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors.
            raise _unreadable(user_id) from exc
        if not isinstance(data, dict):
            raise _unreadable(user_id)
        # Keep load resilient to legacy/extra fields.
        access_token = data.get("access_token") or ""
        if not access_token:
            return None
        return CredentialState(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or None,
            expires_at=_parse_expiry(data.get("expires_at")),
        )

    def save(self, user_id: str, state: CredentialState) -> None:
        path = self.path_for(user_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "access_token": state.access_token,
            "refresh_token": state.refresh_token,
            "expires_at": state.expires_at.isoformat(),
        }
        # Write-then-rename so a crash never leaves half a token file.
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        tmp.replace(path)


def _unreadable(user_id: str) -> SyncConfigurationError:
    return SyncConfigurationError(
        f"Stored Gmail credentials for {user_id} are unreadable. Please re-authenticate."
    )


def _parse_expiry(value) -> datetime:
    # Missing or unreadable expiry counts as already expired, forcing a refresh.
    try:
        if isinstance(value, (int, float)):
            # Epoch milliseconds.
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, OverflowError, OSError):
        return datetime.fromtimestamp(0, tz=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
