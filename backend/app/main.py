# backend/app/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.app.api.emails import router as emails_router
from backend.app.api.sync import router as sync_router
from backend.app.deps import get_settings
from insurance_inbox.config.logging import configure_logging


@asynccontextmanager
async def lifespan(_app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level, settings.logs_dir)
    yield


app = FastAPI(title="insurance-inbox API", lifespan=lifespan)
app.include_router(sync_router, prefix="/api")
app.include_router(emails_router, prefix="/api")


@app.get("/api/health", include_in_schema=False)
def health() -> dict:
    return {"ok": True}
