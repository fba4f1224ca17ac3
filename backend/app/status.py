from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock
from time import time
from typing import Any, Dict, Optional, List


@dataclass
class SyncStatus:
    state: str = "idle"
    step: str = "idle"
    detail: Optional[str] = None
    metrics: Dict[str, Any] = field(default_factory=dict)
    summary: Optional[Dict[str, Any]] = None
    # Keep a small rolling window of recent errors for UI visibility.
    recent_errors: List[Dict[str, Any]] = field(default_factory=list)
    updated_at: float = field(default_factory=time)


class SyncStatusStore:
    """Latest sync status per user, polled by the UI."""

    MAX_ERRORS = 50

    def __init__(self) -> None:
        self._lock = Lock()
        self._statuses: Dict[str, SyncStatus] = {}

    def update(self, user_id: str, **fields: Any) -> None:
        # Lock ensures UI polling sees consistent snapshots across threads.
        with self._lock:
            status = self._statuses.setdefault(user_id, SyncStatus())
            for key, value in fields.items():
                if hasattr(status, key):
                    setattr(status, key, value)
            status.updated_at = time()

    def record_error(self, user_id: str, error: Dict[str, Any]) -> None:
        with self._lock:
            status = self._statuses.setdefault(user_id, SyncStatus())
            # Keep most recent errors first.
            status.recent_errors = ([error] + status.recent_errors)[: self.MAX_ERRORS]
            status.updated_at = time()

    def snapshot(self, user_id: str) -> Dict[str, Any]:
        # Return a copy to avoid mutation by callers.
        with self._lock:
            status = self._statuses.get(user_id) or SyncStatus()
            return {
                "state": status.state,
                "step": status.step,
                "detail": status.detail,
                "metrics": dict(status.metrics),
                "summary": status.summary,
                "recent_errors": list(status.recent_errors),
                "updated_at": status.updated_at,
            }


sync_status_store = SyncStatusStore()
