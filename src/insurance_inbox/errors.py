from __future__ import annotations


class ConfigError(ValueError):
    """Raised when settings are malformed."""


class IngestionError(RuntimeError):
    """Base class for failures raised by the mailbox sync."""


class SyncConfigurationError(IngestionError):
    """Missing provider credentials, refresh token or OAuth client config. Not retryable."""


class CredentialRefreshError(IngestionError):
    """The provider refused to exchange the refresh token."""


class ProviderError(IngestionError):
    """A mail provider request failed (HTTP error or transport failure)."""


class StorageError(IngestionError):
    """Writing or reading stored email records failed."""
