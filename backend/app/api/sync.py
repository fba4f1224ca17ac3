# backend/app/api/sync.py
from typing import Any
from fastapi import APIRouter, Depends, HTTPException
from starlette.concurrency import run_in_threadpool

from insurance_inbox.app.sync import Ingestor
from insurance_inbox.errors import CredentialRefreshError, IngestionError, SyncConfigurationError
from backend.app.deps import get_ingestor
from backend.app.status import sync_status_store

router = APIRouter()


@router.post("/users/{user_id}/sync")
async def sync_endpoint(user_id: str, ingestor: Ingestor = Depends(get_ingestor)) -> dict:
    sync_status_store.update(user_id, state="running", step="starting", detail="Starting sync", metrics={})

    def progress_cb(step: str, event: dict[str, Any]) -> None:
        status_update = {
            "state": "running",
            "step": step,
            "detail": event.get("detail"),
        }
        if "metrics" in event:
            status_update["metrics"] = event.get("metrics") or {}
        sync_status_store.update(user_id, **status_update)

    try:
        # Run blocking Gmail processing in a worker thread so FastAPI stays responsive.
        summary = await run_in_threadpool(ingestor.sync, user_id, progress_cb)
    except SyncConfigurationError as exc:
        _mark_failed(user_id, exc)
        raise HTTPException(status_code=403, detail=f"Not configured: {exc}") from exc
    except CredentialRefreshError as exc:
        _mark_failed(user_id, exc)
        raise HTTPException(status_code=401, detail=f"Please re-authenticate with Google: {exc}") from exc
    except IngestionError as exc:
        _mark_failed(user_id, exc)
        raise HTTPException(status_code=502, detail=f"Gmail sync failed: {exc}") from exc
    except Exception as exc:
        _mark_failed(user_id, exc)
        raise

    if summary.get("aborted"):
        sync_status_store.record_error(user_id, {"step": "paginate", "error": summary.get("abort_reason")})

    sync_status_store.update(
        user_id,
        state="done",
        step="done",
        detail="Sync completed",
        summary=summary,
    )
    return {"ok": True, "message": "Gmail sync complete", "summary": summary}


@router.get("/users/{user_id}/sync/status")
async def sync_status(user_id: str) -> dict:
    return {"ok": True, "status": sync_status_store.snapshot(user_id)}


def _mark_failed(user_id: str, exc: Exception) -> None:
    error = f"{type(exc).__name__}: {exc}"
    sync_status_store.record_error(user_id, {"step": "sync", "error": error})
    sync_status_store.update(user_id, state="error", step="error", detail=str(exc))
