# src/insurance_inbox/app/sync.py
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, asdict, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from insurance_inbox.config.settings import Settings, SyncConfig
from insurance_inbox.errors import StorageError, SyncConfigurationError
from insurance_inbox.gmail.client import GmailClient, GoogleTokenRefresher, MailProvider
from insurance_inbox.llm.fallback import FallbackValidator
from insurance_inbox.models import StoredEmailRecord
from insurance_inbox.parsing.parser import normalize_message
from insurance_inbox.pipeline.orchestrator import Classifier
from insurance_inbox.storage.credentials import CredentialStore
from insurance_inbox.storage.emails import SqliteEmailStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, Dict[str, Any]], None]
TokenRefresher = Callable[[str], Tuple[str, datetime]]
ProviderFactory = Callable[[str], MailProvider]


@dataclass
class SyncSummary:
    user_id: str
    timeframe: str
    total_fetched: int = 0
    # Rows written by the upsert, overwrites of earlier syncs included.
    total_inserted: int = 0
    insurance_related_count: int = 0
    pages: int = 0
    skipped: int = 0
    errors: int = 0
    aborted: bool = False
    abort_reason: Optional[str] = None
    sample_emails: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class _MessageOutcome:
    record: Optional[StoredEmailRecord] = None
    skipped: bool = False
    error: bool = False


def gmail_window_query(now: datetime, window_days: int) -> str:
    # Gmail "after:" expects seconds since epoch, not milliseconds.
    epoch_seconds = max(0, int((now - timedelta(days=window_days)).timestamp()))
    return f"after:{epoch_seconds}"


class Ingestor:
    """
    One sync per call: credential check -> paginate -> fetch detail ->
    classify -> upsert. Pages are walked sequentially; messages within a
    page are fetched and classified on a bounded thread pool and written
    back as one upsert batch per page.
    """

    def __init__(
        self,
        *,
        credentials: CredentialStore,
        store: SqliteEmailStore,
        classifier: Classifier,
        refresher: Optional[TokenRefresher],
        provider_factory: ProviderFactory = GmailClient,
        config: SyncConfig = SyncConfig(),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._credentials = credentials
        self._store = store
        self._classifier = classifier
        self._refresher = refresher
        self._provider_factory = provider_factory
        self._cfg = config
        self._clock = clock
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _user_lock(self, user_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(user_id, threading.Lock())

    # --- credential check ---

    def ensure_access_token(self, user_id: str) -> str:
        """
        Return a usable access token, refreshing it when it expires within the
        configured margin. Serialized per user: providers usually invalidate a
        refresh token after its first use.
        """
        with self._user_lock(user_id):
            # Re-read inside the lock; an overlapping sync may have refreshed already.
            state = self._credentials.load(user_id)
            if state is None:
                raise SyncConfigurationError(
                    f"No Gmail credentials stored for user {user_id}. Please authenticate first."
                )

            now = self._clock()
            if not state.expires_within(self._cfg.refresh_margin, now):
                return state.access_token

            logger.info("[sync] Access token for %s expiring soon, refreshing", user_id)
            if not state.refresh_token:
                raise SyncConfigurationError("No refresh token available. Please re-authenticate.")
            if self._refresher is None:
                raise SyncConfigurationError(
                    "Google OAuth client is not configured (GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET)."
                )

            access_token, expires_at = self._refresher(state.refresh_token)
            self._credentials.save(user_id, state.refreshed(access_token, expires_at))
            logger.info("[sync] Token refresh successful, new expiry: %s", expires_at.isoformat())
            return access_token

    # --- per message ---

    def _process_message(self, provider: MailProvider, user_id: str, message_id: str) -> _MessageOutcome:
        try:
            raw = provider.get_message(message_id)
        except Exception as exc:
            logger.warning("[sync] Failed to fetch message %s: %s: %s", message_id, type(exc).__name__, exc)
            return _MessageOutcome(skipped=True)

        try:
            email = normalize_message(raw, now=self._clock())
            if not email.provider_message_id:
                email = replace(email, provider_message_id=message_id)
            verdict = self._classifier.classify(email)
        except Exception as exc:
            logger.error("[sync] Error processing message %s: %s: %s", message_id, type(exc).__name__, exc)
            return _MessageOutcome(error=True)

        # Storage minimization: only insurance-related mail is ever persisted.
        if not verdict.is_insurance_related:
            return _MessageOutcome()
        return _MessageOutcome(
            record=StoredEmailRecord.from_classification(user_id, email, verdict, fetched_at=self._clock())
        )

    # --- sync ---

    def sync(self, user_id: str, progress_cb: Optional[ProgressCallback] = None) -> Dict[str, Any]:
        """
        Execute one sync for a user and return a machine-readable summary.

        Raises SyncConfigurationError / CredentialRefreshError before any
        mail is read. A failed page request or upsert stops pagination and
        returns the partial counts with aborted=True.
        """

        def report(step: str, *, detail: str | None = None, **extra: Any) -> None:
            if not progress_cb:
                return
            payload: Dict[str, Any] = {"detail": detail}
            payload.update(extra)
            progress_cb(step, payload)

        summary = SyncSummary(user_id=user_id, timeframe=f"last_{self._cfg.window_days}_days")

        report("credentials", detail="Checking Gmail credentials")
        access_token = self.ensure_access_token(user_id)
        provider = self._provider_factory(access_token)

        query = gmail_window_query(self._clock(), self._cfg.window_days)
        logger.info("[sync] Starting pagination for %s with query %r", user_id, query)

        page_token: Optional[str] = None
        with ThreadPoolExecutor(max_workers=self._cfg.max_workers) as pool:
            while True:
                page_number = summary.pages + 1
                report("fetch_page", detail=f"Fetching page {page_number}", metrics=_metrics(summary))
                try:
                    page = provider.list_messages(query, self._cfg.page_size, page_token)
                except Exception as exc:
                    logger.error(
                        "[sync] Page %d failed, aborting remaining pagination: %s: %s",
                        page_number,
                        type(exc).__name__,
                        exc,
                    )
                    summary.aborted = True
                    summary.abort_reason = str(exc)
                    break

                if not page.message_ids:
                    logger.info("[sync] Page %d returned no messages, stopping pagination", page_number)
                    break

                summary.pages = page_number
                summary.total_fetched += len(page.message_ids)
                logger.info("[sync] Page %d: found %d messages", page_number, len(page.message_ids))

                outcomes = list(
                    pool.map(lambda mid: self._process_message(provider, user_id, mid), page.message_ids)
                )
                batch = [o.record for o in outcomes if o.record is not None]
                summary.skipped += sum(1 for o in outcomes if o.skipped)
                summary.errors += sum(1 for o in outcomes if o.error)

                if batch:
                    try:
                        written = self._store.upsert_many(batch)
                    except StorageError as exc:
                        logger.error("[sync] Upsert failed on page %d, aborting: %s", page_number, exc)
                        summary.aborted = True
                        summary.abort_reason = str(exc)
                        break
                    summary.total_inserted += written
                    summary.insurance_related_count += sum(1 for r in batch if r.is_insurance_related)
                    room = self._cfg.sample_size - len(summary.sample_emails)
                    if room > 0:
                        summary.sample_emails.extend(_sample(r) for r in batch[:room])

                report("processing", detail=f"Processed page {page_number}", metrics=_metrics(summary))

                page_token = page.next_page_token
                if not page_token:
                    logger.info("[sync] No nextPageToken, pagination complete")
                    break

        logger.info(
            "[sync] Sync complete for %s: %d pages, %d fetched, %d inserted, %d skipped, %d errors%s",
            user_id,
            summary.pages,
            summary.total_fetched,
            summary.total_inserted,
            summary.skipped,
            summary.errors,
            " (aborted)" if summary.aborted else "",
        )
        result = asdict(summary)
        report("done", detail="Sync completed", metrics=_metrics(summary))
        return result


def build_ingestor(settings: Settings) -> Ingestor:
    """Wire the production Ingestor from explicit settings."""
    refresher = GoogleTokenRefresher(settings.google) if settings.google.configured else None
    return Ingestor(
        credentials=CredentialStore(settings.credentials_dir),
        store=SqliteEmailStore(settings.emails_db_path),
        classifier=Classifier(FallbackValidator(settings.fallback)),
        refresher=refresher,
        config=settings.sync,
    )


def _metrics(summary: SyncSummary) -> Dict[str, Any]:
    return {
        "pages": summary.pages,
        "total_fetched": summary.total_fetched,
        "total_inserted": summary.total_inserted,
        "skipped": summary.skipped,
        "errors": summary.errors,
    }


def _sample(record: StoredEmailRecord) -> Dict[str, Any]:
    return {
        "provider_message_id": record.provider_message_id,
        "sender": record.sender,
        "subject": record.subject,
        "category": record.category.value,
        "is_insurance_related": record.is_insurance_related,
        "received_at": record.received_at.isoformat(),
    }