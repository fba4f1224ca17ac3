"""Explicit runtime settings.

Everything the sync needs from the process environment is read once by
``load_settings`` and handed to constructors as frozen dataclasses, so the
classifier and ingestor never look at ``os.environ`` themselves.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Mapping, Optional

from insurance_inbox.errors import ConfigError

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_FALLBACK_MODEL = "llama-3.3-70b-versatile"


@dataclass(frozen=True)
class GoogleOAuthConfig:
    # OAuth client used to exchange refresh tokens; issued in Google Cloud Console.
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    token_uri: str = GOOGLE_TOKEN_URI

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass(frozen=True)
class FallbackConfig:
    # Without an API key the validator rejects every borderline email.
    api_key: Optional[str] = None
    model: str = DEFAULT_FALLBACK_MODEL
    base_url: str = GROQ_BASE_URL
    timeout_seconds: float = 12.0
    acceptance_threshold: float = 0.7
    temperature: float = 0.1


@dataclass(frozen=True)
class SyncConfig:
    window_days: int = 10
    page_size: int = 100
    max_workers: int = 8
    refresh_margin: timedelta = timedelta(minutes=5)
    sample_size: int = 5


@dataclass(frozen=True)
class Settings:
    state_dir: Path
    logs_dir: Path
    log_level: str = "INFO"
    google: GoogleOAuthConfig = field(default_factory=GoogleOAuthConfig)
    fallback: FallbackConfig = field(default_factory=FallbackConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)

    @property
    def credentials_dir(self) -> Path:
        return self.state_dir / "credentials"

    @property
    def emails_db_path(self) -> Path:
        return self.state_dir / "emails.sqlite3"


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build ``Settings`` from an environment mapping (``os.environ`` by default)."""
    # Importing paths runs load_dotenv(), so .env values are visible below.
    from insurance_inbox.config.paths import DEFAULT_LOGS_DIR, DEFAULT_STATE_DIR, resolve_dir

    env = os.environ if env is None else env

    google = GoogleOAuthConfig(
        client_id=_optional(env, "GOOGLE_CLIENT_ID"),
        client_secret=_optional(env, "GOOGLE_CLIENT_SECRET"),
        token_uri=env.get("GOOGLE_TOKEN_URI") or GOOGLE_TOKEN_URI,
    )
    fallback = FallbackConfig(
        api_key=_optional(env, "GROQ_API_KEY"),
        model=env.get("INSURANCE_INBOX_FALLBACK_MODEL") or DEFAULT_FALLBACK_MODEL,
        base_url=env.get("INSURANCE_INBOX_FALLBACK_BASE_URL") or GROQ_BASE_URL,
        timeout_seconds=_number(env, "INSURANCE_INBOX_FALLBACK_TIMEOUT", 12.0, float),
    )
    sync = SyncConfig(
        window_days=_number(env, "INSURANCE_INBOX_SYNC_WINDOW_DAYS", 10, int),
        page_size=_number(env, "INSURANCE_INBOX_SYNC_PAGE_SIZE", 100, int),
        max_workers=_number(env, "INSURANCE_INBOX_SYNC_MAX_WORKERS", 8, int),
    )

    return Settings(
        state_dir=resolve_dir(env.get("INSURANCE_INBOX_STATE_DIR"), DEFAULT_STATE_DIR),
        logs_dir=resolve_dir(env.get("INSURANCE_INBOX_LOGS_DIR"), DEFAULT_LOGS_DIR),
        log_level=(env.get("INSURANCE_INBOX_LOG_LEVEL") or "INFO").upper(),
        google=google,
        fallback=fallback,
        sync=sync,
    )


def _optional(env: Mapping[str, str], key: str) -> Optional[str]:
    value = (env.get(key) or "").strip()
    return value or None


def _number(env: Mapping[str, str], key: str, default, cast):
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {raw!r}")
    return value
