from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from fakes import FIXED_NOW, INSURANCE_MAIL, SPAM_MAIL, FakeMailbox, raw_message
from backend.app.deps import get_email_store, get_ingestor
from backend.app.main import app
from backend.app.status import sync_status_store
from insurance_inbox.app.sync import Ingestor
from insurance_inbox.config.settings import FallbackConfig
from insurance_inbox.errors import CredentialRefreshError, ProviderError, SyncConfigurationError
from insurance_inbox.llm.fallback import FallbackValidator
from insurance_inbox.models import CredentialState
from insurance_inbox.pipeline.orchestrator import Classifier
from insurance_inbox.storage.credentials import CredentialStore
from insurance_inbox.storage.emails import SqliteEmailStore


class RaisingIngestor:
    def __init__(self, error: Exception):
        self.error = error

    def sync(self, user_id, progress_cb=None):
        raise self.error


@pytest.fixture()
def store(tmp_path) -> SqliteEmailStore:
    return SqliteEmailStore(tmp_path / "emails.sqlite3")


@pytest.fixture()
def ingestor(tmp_path, store) -> Ingestor:
    credentials = CredentialStore(tmp_path / "credentials")
    credentials.save("alice", CredentialState("token", "refresh", FIXED_NOW + timedelta(hours=1)))
    mailbox = FakeMailbox(
        [[raw_message("ins-1", **INSURANCE_MAIL), raw_message("spam-1", **SPAM_MAIL)]]
    )
    return Ingestor(
        credentials=credentials,
        store=store,
        classifier=Classifier(FallbackValidator(FallbackConfig())),
        refresher=None,
        provider_factory=lambda token: mailbox,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture()
def client(store, ingestor):
    app.dependency_overrides[get_email_store] = lambda: store
    app.dependency_overrides[get_ingestor] = lambda: ingestor
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client) -> None:
    assert client.get("/api/health").json() == {"ok": True}


def test_sync_then_list_and_fetch(client) -> None:
    resp = client.post("/api/users/alice/sync")

    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["summary"]["total_inserted"] == 1

    listing = client.get("/api/users/alice/emails", params={"filter": "insurance"}).json()
    assert listing["total_count"] == 1
    assert listing["emails"][0]["provider_message_id"] == "ins-1"
    assert listing["emails"][0]["category"] == "renewal"

    detail = client.get("/api/users/alice/emails/ins-1").json()
    assert detail["email"]["classified_by"] == "deterministic"

    stats = client.get("/api/users/alice/emails/stats").json()["stats"]
    assert stats["total_emails"] == 1
    assert stats["percentage_insurance"] == 100.0

    status = client.get("/api/users/alice/sync/status").json()["status"]
    assert status["state"] == "done"
    assert status["summary"]["total_fetched"] == 2


def test_unknown_email_is_404(client) -> None:
    assert client.get("/api/users/alice/emails/missing").status_code == 404


def test_list_rejects_bad_query(client) -> None:
    assert client.get("/api/users/alice/emails", params={"limit": 0}).status_code == 422
    assert client.get("/api/users/alice/emails", params={"filter": "bogus"}).status_code == 422


@pytest.mark.parametrize(
    ("error", "status_code"),
    [
        (SyncConfigurationError("no credentials"), 403),
        (CredentialRefreshError("invalid_grant"), 401),
        (ProviderError("gmail down"), 502),
    ],
)
def test_sync_errors_map_to_http_status(client, error, status_code) -> None:
    app.dependency_overrides[get_ingestor] = lambda: RaisingIngestor(error)

    resp = client.post("/api/users/bob/sync")

    assert resp.status_code == status_code
    snapshot = sync_status_store.snapshot("bob")
    assert snapshot["state"] == "error"
    assert type(error).__name__ in snapshot["recent_errors"][0]["error"]


def test_corrupt_credentials_fail_the_sync_cleanly(tmp_path, client) -> None:
    CredentialStore(tmp_path / "credentials").path_for("carol").write_text("{not json", encoding="utf-8")

    resp = client.post("/api/users/carol/sync")

    assert resp.status_code == 403
    assert "re-authenticate" in resp.json()["detail"]
    assert sync_status_store.snapshot("carol")["state"] == "error"


def test_unexpected_sync_failure_marks_status_as_error(client) -> None:
    app.dependency_overrides[get_ingestor] = lambda: RaisingIngestor(RuntimeError("worker crashed"))

    resp = TestClient(app, raise_server_exceptions=False).post("/api/users/dave/sync")

    assert resp.status_code == 500
    snapshot = sync_status_store.snapshot("dave")
    assert snapshot["state"] == "error"
    assert snapshot["recent_errors"][0]["error"] == "RuntimeError: worker crashed"
