"""SQLite persistence for insurance-relevant email records.

Records are keyed by the provider message id; writing the same id twice
overwrites the row, which makes re-running a sync over the same window safe.
A provider id reused across mailboxes would therefore merge into one row.
"""
from __future__ import annotations

import sqlite3
from contextlib import closing
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Literal, Optional, Tuple

from insurance_inbox.errors import StorageError
from insurance_inbox.models import Category, ClassifiedBy, StoredEmailRecord

RecordFilter = Literal["all", "insurance", "spam"]
SortOrder = Literal["newest", "oldest"]

_SCHEMA = """
CREATE TABLE IF NOT EXISTS emails (
    provider_message_id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    sender TEXT NOT NULL,
    subject TEXT NOT NULL,
    snippet TEXT NOT NULL,
    received_at TEXT NOT NULL,
    fetched_at TEXT NOT NULL,
    is_spam INTEGER NOT NULL,
    is_insurance_related INTEGER NOT NULL,
    category TEXT NOT NULL,
    confidence REAL NOT NULL,
    classified_by TEXT NOT NULL,
    raw_score INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_emails_user_received ON emails (user_id, received_at);
"""

_COLUMNS = (
    "provider_message_id",
    "user_id",
    "sender",
    "subject",
    "snippet",
    "received_at",
    "fetched_at",
    "is_spam",
    "is_insurance_related",
    "category",
    "confidence",
    "classified_by",
    "raw_score",
)

_UPSERT = (
    f"INSERT INTO emails ({', '.join(_COLUMNS)}) VALUES ({', '.join('?' for _ in _COLUMNS)}) "
    "ON CONFLICT(provider_message_id) DO UPDATE SET "
    + ", ".join(f"{c} = excluded.{c}" for c in _COLUMNS if c != "provider_message_id")
)

_FILTERS: Dict[str, str] = {
    "all": "",
    "insurance": " AND is_insurance_related = 1",
    "spam": " AND is_spam = 1",
}


class SqliteEmailStore:
    def __init__(self, path: Path):
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._execute_script(_SCHEMA)

    def _connect(self) -> sqlite3.Connection:
        # One short-lived connection per call keeps the store usable from worker threads.
        conn = sqlite3.connect(str(self._path), timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    def _execute_script(self, script: str) -> None:
        try:
            with closing(self._connect()) as conn:
                conn.executescript(script)
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to initialise email store at {self._path}: {exc}") from exc

    def upsert_many(self, records: Iterable[StoredEmailRecord]) -> int:
        """Insert or overwrite records keyed by provider_message_id. Returns rows written."""
        rows = [_to_row(r) for r in records]
        if not rows:
            return 0
        try:
            with closing(self._connect()) as conn, conn:
                conn.executemany(_UPSERT, rows)
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to store {len(rows)} emails: {exc}") from exc
        return len(rows)

    def list_records(
        self,
        user_id: str,
        *,
        record_filter: RecordFilter = "all",
        limit: int = 50,
        offset: int = 0,
        sort: SortOrder = "newest",
    ) -> Tuple[List[StoredEmailRecord], int]:
        """Return one page of a user's records plus the total matching count."""
        if record_filter not in _FILTERS:
            raise ValueError(f"Unknown filter: {record_filter!r}")
        where = "WHERE user_id = ?" + _FILTERS[record_filter]
        direction = "DESC" if sort == "newest" else "ASC"
        try:
            with closing(self._connect()) as conn:
                total = conn.execute(f"SELECT COUNT(*) FROM emails {where}", (user_id,)).fetchone()[0]
                rows = conn.execute(
                    f"SELECT * FROM emails {where} "
                    f"ORDER BY received_at {direction}, provider_message_id {direction} LIMIT ? OFFSET ?",
                    (user_id, limit, offset),
                ).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to query emails: {exc}") from exc
        return [_from_row(r) for r in rows], int(total)

    def get_record(self, user_id: str, provider_message_id: str) -> Optional[StoredEmailRecord]:
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(
                    "SELECT * FROM emails WHERE user_id = ? AND provider_message_id = ?",
                    (user_id, provider_message_id),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to load email {provider_message_id}: {exc}") from exc
        return _from_row(row) if row is not None else None

    def stats(self, user_id: str) -> Dict[str, Any]:
        """Aggregate counts over a user's stored records."""
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(
                    "SELECT COUNT(*) AS total, "
                    "COALESCE(SUM(is_insurance_related), 0) AS insurance, "
                    "COALESCE(SUM(is_spam), 0) AS spam, "
                    "MIN(received_at) AS oldest, MAX(received_at) AS newest "
                    "FROM emails WHERE user_id = ?",
                    (user_id,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to compute email stats: {exc}") from exc

        total = int(row["total"])
        insurance = int(row["insurance"])
        spam = int(row["spam"])
        return {
            "total_emails": total,
            "insurance_related": insurance,
            "spam": spam,
            "other": total - insurance - spam,
            "oldest_email_date": row["oldest"],
            "newest_email_date": row["newest"],
            "percentage_insurance": round(insurance / total * 100, 2) if total else 0.0,
        }


def _to_row(record: StoredEmailRecord) -> Tuple[Any, ...]:
    return (
        record.provider_message_id,
        record.user_id,
        record.sender,
        record.subject,
        record.snippet,
        record.received_at.isoformat(),
        record.fetched_at.isoformat(),
        int(record.is_spam),
        int(record.is_insurance_related),
        record.category.value,
        float(record.confidence),
        record.classified_by.value,
        int(record.raw_score),
    )


def _from_row(row: sqlite3.Row) -> StoredEmailRecord:
    return StoredEmailRecord(
        user_id=row["user_id"],
        provider_message_id=row["provider_message_id"],
        sender=row["sender"],
        subject=row["subject"],
        snippet=row["snippet"],
        received_at=datetime.fromisoformat(row["received_at"]),
        fetched_at=datetime.fromisoformat(row["fetched_at"]),
        is_spam=bool(row["is_spam"]),
        is_insurance_related=bool(row["is_insurance_related"]),
        category=Category(row["category"]),
        confidence=float(row["confidence"]),
        classified_by=ClassifiedBy(row["classified_by"]),
        raw_score=int(row["raw_score"]),
    )
