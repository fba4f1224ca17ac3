# backend/app/deps.py
from __future__ import annotations

from functools import lru_cache

from insurance_inbox.app.sync import Ingestor, build_ingestor
from insurance_inbox.config.settings import Settings, load_settings
from insurance_inbox.storage.emails import SqliteEmailStore


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


@lru_cache(maxsize=1)
def get_ingestor() -> Ingestor:
    # One Ingestor per process so the per-user refresh locks are shared.
    return build_ingestor(get_settings())


@lru_cache(maxsize=1)
def get_email_store() -> SqliteEmailStore:
    return SqliteEmailStore(get_settings().emails_db_path)
