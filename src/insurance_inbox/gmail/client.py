from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Protocol, Tuple

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from insurance_inbox.config.settings import GoogleOAuthConfig
from insurance_inbox.errors import CredentialRefreshError, ProviderError


# Readonly is enough: the sync never modifies the mailbox.
SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]

# Only these headers are needed; bodies are never parsed.
METADATA_HEADERS = ["From", "Subject", "Date"]

# The bound access token can expire mid-sync; google-auth then fails the
# implicit refresh with RefreshError since no refresh token is attached.
_REQUEST_ERRORS = (HttpError, httplib2.HttpLib2Error, OSError, RefreshError, TransportError)


@dataclass(frozen=True)
class MessagePage:
    message_ids: List[str] = field(default_factory=list)
    next_page_token: Optional[str] = None


class MailProvider(Protocol):
    def list_messages(self, query: str, page_size: int, page_token: Optional[str] = None) -> MessagePage: ...
    def get_message(self, message_id: str) -> Dict[str, Any]: ...


class GmailClient:
    """
    Gmail REST client bound to one access token.

    googleapiclient services share an httplib2 connection that is not
    thread-safe, so each worker thread builds its own service lazily.
    """

    def __init__(self, access_token: str, user_id: str = "me"):
        self._creds = Credentials(token=access_token, scopes=SCOPES)
        # Gmail userId, "me" refers to the authenticated user.
        self._user_id = user_id
        self._local = threading.local()

    @property
    def service(self):
        service = getattr(self._local, "service", None)
        if service is None:
            service = build("gmail", "v1", credentials=self._creds, cache_discovery=False)
            self._local.service = service
        return service

    def list_messages(self, query: str, page_size: int, page_token: Optional[str] = None) -> MessagePage:
        """
        List one page of message IDs matching a Gmail search query.
        Example query: 'after:1700000000'
        """
        params: Dict[str, Any] = {"userId": self._user_id, "q": query, "maxResults": page_size}
        if page_token:
            params["pageToken"] = page_token
        try:
            resp = self.service.users().messages().list(**params).execute()
        except _REQUEST_ERRORS as exc:
            raise ProviderError(f"Gmail list failed: {exc}") from exc

        return MessagePage(
            message_ids=[m["id"] for m in resp.get("messages", []) if m.get("id")],
            next_page_token=resp.get("nextPageToken") or None,
        )

    def get_message(self, message_id: str) -> Dict[str, Any]:
        """Fetch id, snippet, internalDate and the From/Subject/Date headers."""
        try:
            return (
                self.service.users()
                .messages()
                .get(
                    userId=self._user_id,
                    id=message_id,
                    format="metadata",
                    metadataHeaders=METADATA_HEADERS,
                )
                .execute()
            )
        except _REQUEST_ERRORS as exc:
            raise ProviderError(f"Gmail get failed for {message_id}: {exc}") from exc


class GoogleTokenRefresher:
    """Exchange a refresh token for a fresh access token at Google's token endpoint."""

    # Google access tokens live one hour; used when the response has no expiry.
    DEFAULT_LIFETIME = timedelta(hours=1)

    def __init__(self, cfg: GoogleOAuthConfig, request: Optional[Request] = None):
        self._cfg = cfg
        self._request = request

    @property
    def configured(self) -> bool:
        return self._cfg.configured

    def __call__(self, refresh_token: str) -> Tuple[str, datetime]:
        creds = Credentials(
            token=None,
            refresh_token=refresh_token,
            client_id=self._cfg.client_id,
            client_secret=self._cfg.client_secret,
            token_uri=self._cfg.token_uri,
            scopes=SCOPES,
        )
        try:
            creds.refresh(self._request or Request())
        except (RefreshError, TransportError) as exc:
            raise CredentialRefreshError(f"Token refresh failed: {exc}") from exc

        # google-auth reports expiry as a naive UTC datetime.
        if creds.expiry is not None:
            expires_at = creds.expiry.replace(tzinfo=timezone.utc)
        else:
            expires_at = datetime.now(timezone.utc) + self.DEFAULT_LIFETIME
        return creds.token, expires_at
