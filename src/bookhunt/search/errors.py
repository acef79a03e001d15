# ABOUTME: Exception taxonomy for the multi-provider search engine.
# ABOUTME: Provider-level errors are captured per provider; only setup errors reach callers.

from pathlib import Path


class SearchError(Exception):
    """Base class for all search engine errors."""


class NetworkUnavailableError(SearchError):
    """Raised when there is no connectivity; no search tasks are started."""


class CredentialsRequiredError(SearchError):
    """Raised by a provider that needs credentials the user has not configured."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"{provider}: credentials required")
        self.provider = provider


class ProviderSearchError(SearchError):
    """Raised when a provider fails to search or to parse a response."""

    def __init__(self, provider: str, cause: Exception | str) -> None:
        super().__init__(f"{provider}: {cause}")
        self.provider = provider
        self.cause = cause


class StorageError(SearchError):
    """Raised when a cover file cannot be written or deleted."""

    def __init__(self, path: Path | str, cause: Exception | str) -> None:
        super().__init__(f"{path}: {cause}")
        self.path = Path(path)
        self.cause = cause


class MissingCriteriaError(SearchError):
    """Programmer error: search() called without ISBN, external id, author or title."""


class SearchAlreadyRunningError(SearchError):
    """Programmer error: search() called while a session is still active."""
