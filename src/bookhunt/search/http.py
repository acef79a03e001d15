# ABOUTME: HTTP toolkit for provider adapters: JSON GET, cover download and a connectivity probe.
# ABOUTME: Provides rate limiting, retry with backoff, and injectable transport for testing.

import logging
import time
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import httpx

from bookhunt.search.errors import CredentialsRequiredError, ProviderSearchError, StorageError

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
_CREDENTIALS_STATUS_CODES = {401, 403}

USER_AGENT = "bookhunt/0.1.0"
NETWORK_PROBE_URL = "https://www.google.com/generate_204"


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for the HTTP calls provider adapters make."""

    def get(self, url: str, params: dict[str, str] | None = None) -> dict[str, Any]: ...

    def download(self, url: str, dest: Path) -> Path | None: ...


class ProviderHttpClient:
    """HTTP client bound to one provider, with rate limiting and retry.

    Wraps httpx.Client with a minimum request interval and exponential
    backoff for transient failures (429, 5xx). Failures are raised as the
    search error types, tagged with the provider name.
    """

    def __init__(
        self,
        provider: str,
        *,
        min_request_interval: float = 0.1,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        client_kwargs: dict[str, Any] = {
            "headers": {"User-Agent": USER_AGENT},
            "timeout": timeout,
            "follow_redirects": True,
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.Client(**client_kwargs)
        self.provider = provider
        self._min_interval = min_request_interval
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._last_request_time: float = 0.0

    def get(self, url: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        """Send a GET request and return the parsed JSON body.

        Raises:
            CredentialsRequiredError: On 401 / 403.
            ProviderSearchError: On other HTTP errors, transport errors,
                exhausted retries or a body that is not JSON.
        """
        response = self._request(url, params)
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderSearchError(self.provider, f"invalid JSON from {url}") from exc

    def download(self, url: str, dest: Path) -> Path | None:
        """Save the body of url to dest, for cover images.

        Returns:
            dest, or None when the server has no such file (404) or sent
            an empty body.

        Raises:
            StorageError: When the file cannot be written.
        """
        try:
            response = self._request(url, None)
        except ProviderSearchError as exc:
            if isinstance(exc.__cause__, _NotFound):
                logger.debug("%s: no image at %s", self.provider, url)
                return None
            raise

        if not response.content:
            return None
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_bytes(response.content)
        except OSError as exc:
            raise StorageError(dest, exc) from exc
        return dest

    def close(self) -> None:
        self._client.close()

    def _request(self, url: str, params: dict[str, str] | None) -> httpx.Response:
        self._rate_limit()

        attempts = 1 + self._max_retries
        last_status = 0
        for attempt in range(attempts):
            try:
                response = self._client.get(url, params=params)
                last_status = response.status_code
            except httpx.HTTPError as exc:
                raise ProviderSearchError(self.provider, exc) from exc

            if response.status_code == 200:
                return response

            if response.status_code in _CREDENTIALS_STATUS_CODES:
                raise CredentialsRequiredError(self.provider)

            if response.status_code == 404:
                raise ProviderSearchError(self.provider, f"HTTP 404 from {url}") from _NotFound()

            if response.status_code not in _RETRYABLE_STATUS_CODES:
                raise ProviderSearchError(self.provider, f"HTTP {response.status_code} from {url}")

            if attempt < attempts - 1:
                delay = self._retry_delay * (2**attempt)
                logger.warning(
                    "HTTP %d from %s, retrying in %.1fs (attempt %d/%d)",
                    response.status_code,
                    url,
                    delay,
                    attempt + 1,
                    self._max_retries,
                )
                time.sleep(delay)

        raise ProviderSearchError(
            self.provider, f"HTTP {last_status} from {url} after {attempts} attempts"
        )

    def _rate_limit(self) -> None:
        if self._min_interval <= 0:
            return
        now = time.monotonic()
        elapsed = now - self._last_request_time
        if elapsed < self._min_interval and self._last_request_time > 0:
            time.sleep(self._min_interval - elapsed)
        self._last_request_time = time.monotonic()


class _NotFound(Exception):
    """Marks a 404 so download() can tell "no cover" from a failure."""


def check_network(
    url: str = NETWORK_PROBE_URL,
    *,
    timeout: float = 5.0,
    transport: httpx.BaseTransport | None = None,
) -> bool:
    """Return True if url answers at all; any status code counts as connected."""
    client_kwargs: dict[str, Any] = {"timeout": timeout, "headers": {"User-Agent": USER_AGENT}}
    if transport is not None:
        client_kwargs["transport"] = transport
    try:
        with httpx.Client(**client_kwargs) as client:
            client.head(url)
    except httpx.HTTPError as exc:
        logger.debug("Network probe to %s failed: %s", url, exc)
        return False
    return True
