# backend/app/api/emails.py
from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query

from insurance_inbox.storage.emails import SqliteEmailStore
from backend.app.deps import get_email_store

router = APIRouter()


@router.get("/users/{user_id}/emails")
def list_emails(
    user_id: str,
    filter: Literal["all", "insurance", "spam"] = "all",
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    sort: Literal["newest", "oldest"] = "newest",
    store: SqliteEmailStore = Depends(get_email_store),
) -> dict:
    records, total = store.list_records(user_id, record_filter=filter, limit=limit, offset=offset, sort=sort)
    return {
        "ok": True,
        "filter": filter,
        "limit": limit,
        "offset": offset,
        "sort": sort,
        "count": len(records),
        "total_count": total,
        "emails": [r.to_public_dict() for r in records],
    }


# Registered before the {message_id} route so "stats" is not taken for an id.
@router.get("/users/{user_id}/emails/stats")
def email_stats(user_id: str, store: SqliteEmailStore = Depends(get_email_store)) -> dict:
    return {"ok": True, "stats": store.stats(user_id)}


@router.get("/users/{user_id}/emails/{message_id}")
def get_email(user_id: str, message_id: str, store: SqliteEmailStore = Depends(get_email_store)) -> dict:
    record = store.get_record(user_id, message_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Email not found")
    return {"ok": True, "email": record.to_public_dict()}
